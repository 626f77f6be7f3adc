from __future__ import annotations

import os
import re
from pathlib import Path

from emlconv.storage.base import AttachmentStore, AttachmentStoreError, StoredAttachment

_UNSAFE_CHARS_RE = re.compile(r"[\\/:*?\"<>|\x00-\x1f]")


def safe_filename(name: str, *, fallback: str = "attachment.bin") -> str:
    name = os.path.basename(name.replace("\\", "/").strip())
    name = _UNSAFE_CHARS_RE.sub("-", name)
    name = " ".join(name.split()).strip(". ")
    return name or fallback


class LocalAttachmentStore(AttachmentStore):
    def __init__(self, root_dir: str | os.PathLike[str]) -> None:
        self._root = Path(root_dir)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise AttachmentStoreError(str(e)) from e

    @property
    def root(self) -> Path:
        return self._root

    def _unique_path(self, filename: str) -> Path:
        path = self._root / filename
        counter = 1
        while path.exists():
            path = self._root / f"{Path(filename).stem}-{counter}{Path(filename).suffix}"
            counter += 1
        return path

    def put_bytes(self, *, filename: str, data: bytes, content_type: str | None) -> StoredAttachment:
        _ = content_type
        path = self._unique_path(safe_filename(filename))
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with open(tmp_path, "wb") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError as e:
            raise AttachmentStoreError(str(e)) from e
        return StoredAttachment(path=str(path), size_bytes=len(data))
