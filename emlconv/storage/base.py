from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StoredAttachment:
    path: str
    size_bytes: int


class AttachmentStoreError(RuntimeError):
    pass


class AttachmentStore:
    def put_bytes(
        self, *, filename: str, data: bytes, content_type: str | None
    ) -> StoredAttachment:  # pragma: no cover
        raise NotImplementedError
