from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from email.errors import HeaderParseError
from email.header import decode_header, make_header

from emlconv.models.enums import TransferEncoding

_TRANSFER_ENCODING_ALIASES = {
    "": TransferEncoding.bit7,
    "7-bit": TransferEncoding.bit7,
    "8-bit": TransferEncoding.bit8,
    "quoted printable": TransferEncoding.quoted_printable,
    "uuencode": TransferEncoding.x_uuencode,
    "x-uue": TransferEncoding.x_uuencode,
    "uue": TransferEncoding.x_uuencode,
}


@dataclass(frozen=True)
class Headers:
    """Ordered header fields; names compare case-insensitively, repeats are kept."""

    fields: tuple[tuple[str, str], ...] = ()

    def get(self, name: str, default: str | None = None) -> str | None:
        wanted = name.lower()
        for key, value in self.fields:
            if key.lower() == wanted:
                return value
        return default

    def get_all(self, name: str) -> list[str]:
        wanted = name.lower()
        return [value for key, value in self.fields if key.lower() == wanted]

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return self.get(name) is not None

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)


def decode_header_value(value: str) -> str:
    if "=?" not in value:
        return value
    try:
        return str(make_header(decode_header(value)))
    except (HeaderParseError, LookupError, UnicodeDecodeError, ValueError):
        return value


def normalize_content_id(value: str | None) -> str | None:
    if value is None:
        return None
    cid = value.strip().strip("<>").strip()
    if not cid:
        return None
    return f"<{cid}>"


def parse_transfer_encoding(value: str | None) -> TransferEncoding:
    token = (value or "").strip().strip("\"'").lower()
    try:
        return TransferEncoding(token)
    except ValueError:
        return _TRANSFER_ENCODING_ALIASES.get(token, TransferEncoding.unknown)
