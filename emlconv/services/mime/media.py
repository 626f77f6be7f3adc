from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType

from emlconv.services.mime.headers import normalize_content_id
from emlconv.services.mime.types import ClassifiedEntry


class InlineMediaIndex(Mapping[str, ClassifiedEntry[bytes]]):
    """Content-ID -> decoded media. Keys keep their angle brackets (``<img1>``)."""

    def __init__(self, entries: Mapping[str, ClassifiedEntry[bytes]] | None = None) -> None:
        normalized: dict[str, ClassifiedEntry[bytes]] = {}
        for key, entry in (entries or {}).items():
            cid = normalize_content_id(key)
            if cid is not None:
                normalized[cid] = entry
        self._entries = MappingProxyType(normalized)

    def lookup(self, content_id: str) -> ClassifiedEntry[bytes] | None:
        cid = normalize_content_id(content_id)
        if cid is None:
            return None
        return self._entries.get(cid)

    def __getitem__(self, key: str) -> ClassifiedEntry[bytes]:
        entry = self.lookup(key)
        if entry is None:
            raise KeyError(key)
        return entry

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"InlineMediaIndex({list(self._entries)!r})"


class InlineMediaIndexBuilder:
    def __init__(self) -> None:
        self._entries: dict[str, ClassifiedEntry[bytes]] = {}

    def add(self, content_id: str, entry: ClassifiedEntry[bytes]) -> ClassifiedEntry[bytes] | None:
        """Store ``entry``; returns the entry it displaced when the id repeats."""
        cid = normalize_content_id(content_id)
        if cid is None:
            raise ValueError("content id must not be empty")
        displaced = self._entries.get(cid)
        self._entries[cid] = entry
        return displaced

    def build(self) -> InlineMediaIndex:
        return InlineMediaIndex(self._entries)
