from __future__ import annotations

import base64
import binascii
import codecs
import quopri
import re
from dataclasses import dataclass

from emlconv.models.enums import TransferEncoding
from emlconv.services.mime.errors import DecodeFailed
from emlconv.services.mime.types import MimeLeaf, ParserOptions

_BASE64_JUNK_RE = re.compile(rb"[^A-Za-z0-9+/]")
_UU_BEGIN_RE = re.compile(rb"^begin(?:-base64)?\s+[0-7]{3,4}\s", re.IGNORECASE)

# Labels mail clients put in charset parameters that Python has no codec for.
_CHARSET_ALIASES = {
    "utf8": "utf-8",
    "unicode-1-1-utf-8": "utf-8",
    "x-unknown": "",
    "unknown-8bit": "",
    "x-user-defined": "",
    "ks_c_5601-1987": "cp949",
    "iso-8859-8-i": "iso-8859-8",
    "x-mac-roman": "mac-roman",
}


@dataclass(frozen=True)
class DecodedText:
    text: str
    charset: str
    fell_back: bool


def decode_transfer(leaf: MimeLeaf, *, options: ParserOptions) -> bytes:
    data = leaf.raw_body
    encoding = leaf.transfer_encoding
    if encoding == TransferEncoding.base64:
        return _decode_base64(data, lenient=options.base64_ignore_errors)
    if encoding == TransferEncoding.quoted_printable:
        return quopri.decodestring(data)
    if encoding == TransferEncoding.x_uuencode:
        return _decode_uu(data, lenient=options.uudecode_ignore_missing_begin_end)
    if encoding == TransferEncoding.unknown and not options.ignore_unknown_encoding:
        raise DecodeFailed(
            f"unknown transfer encoding {leaf.headers.get('Content-Transfer-Encoding')!r}"
        )
    return data


def decode_text(data: bytes, charset: str | None, *, default_charset: str) -> DecodedText:
    codec = resolve_charset(charset)
    if codec is not None:
        try:
            return DecodedText(text=data.decode(codec), charset=codec, fell_back=False)
        except (UnicodeError, LookupError):
            pass
    return DecodedText(
        text=data.decode(default_charset, errors="replace"),
        charset=default_charset,
        fell_back=True,
    )


def resolve_charset(charset: str | None) -> str | None:
    label = (charset or "").strip().strip("\"'").lower()
    label = _CHARSET_ALIASES.get(label, label)
    if not label:
        return None
    try:
        info = codecs.lookup(label)
    except LookupError:
        return None
    # base64, hex, rot13 and friends are codecs but not charsets.
    if not getattr(info, "_is_text_encoding", True):
        return None
    return label


def _decode_base64(data: bytes, *, lenient: bool) -> bytes:
    if not lenient:
        try:
            return base64.b64decode(b"".join(data.split()), validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeFailed(f"invalid base64 payload: {e}") from e
    cleaned = _BASE64_JUNK_RE.sub(b"", data.split(b"=", 1)[0])
    if len(cleaned) % 4 == 1:
        cleaned = cleaned[:-1]
    cleaned += b"=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned)
    except (binascii.Error, ValueError) as e:
        raise DecodeFailed(f"invalid base64 payload: {e}") from e


def _decode_uu(data: bytes, *, lenient: bool) -> bytes:
    lines = data.splitlines()
    start = next((i for i, line in enumerate(lines) if _UU_BEGIN_RE.match(line)), None)
    if start is None:
        if not lenient:
            raise DecodeFailed("uuencoded payload has no begin line")
        body = lines
    else:
        body = lines[start + 1 :]

    out = bytearray()
    for line in body:
        stripped = line.strip()
        if stripped.lower() == b"end":
            break
        if not stripped:
            continue
        try:
            out += binascii.a2b_uu(line)
        except binascii.Error:
            # Some encoders pad lines; decode only the bytes the length char announces.
            nbytes = (((line[0] - 32) & 63) * 4 + 5) // 3
            try:
                out += binascii.a2b_uu(line[:nbytes])
            except binascii.Error as e:
                if not lenient:
                    raise DecodeFailed(f"invalid uuencoded line: {e}") from e
    else:
        if start is not None and not lenient:
            raise DecodeFailed("uuencoded payload has no end line")
    return bytes(out)
