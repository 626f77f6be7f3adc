from __future__ import annotations

import binascii

import pytest

from emlconv.services.mime.decode import decode_text, decode_transfer, resolve_charset
from emlconv.services.mime.errors import DecodeFailed
from emlconv.services.mime.headers import Headers
from emlconv.services.mime.types import MimeLeaf, ParserOptions


def _leaf(encoding: str, body: bytes) -> MimeLeaf:
    return MimeLeaf(headers=Headers((("Content-Transfer-Encoding", encoding),)), raw_body=body)


def _uu_line(data: bytes) -> bytes:
    return binascii.b2a_uu(data).rstrip(b"\n")


def test_base64_without_padding_is_accepted() -> None:
    leaf = _leaf("base64", b"SGVsbG8gV29ybGQ")
    assert decode_transfer(leaf, options=ParserOptions()) == b"Hello World"


def test_base64_with_line_breaks_and_junk() -> None:
    leaf = _leaf("base64", b"SGVs\r\nbG8g\r\n V29y*bGQ=\r\ntrailing garbage")
    assert decode_transfer(leaf, options=ParserOptions()) == b"Hello World"


def test_base64_strict_rejects_invalid_payload() -> None:
    leaf = _leaf("base64", b"SGVsbG8*")
    with pytest.raises(DecodeFailed):
        decode_transfer(leaf, options=ParserOptions(base64_ignore_errors=False))


def test_base64_strict_accepts_folded_payload() -> None:
    leaf = _leaf("base64", b"SGVs\r\nbG8=\r\n")
    assert decode_transfer(leaf, options=ParserOptions(base64_ignore_errors=False)) == b"Hello"


def test_quoted_printable_soft_breaks() -> None:
    leaf = _leaf("quoted-printable", b"Hello=\r\n World=3D")
    assert decode_transfer(leaf, options=ParserOptions()) == b"Hello World="


def test_identity_encodings_pass_through() -> None:
    for encoding in ("7bit", "8bit", "binary"):
        assert decode_transfer(_leaf(encoding, b"\xffraw"), options=ParserOptions()) == b"\xffraw"


def test_uuencode_with_begin_and_end() -> None:
    body = b"begin 644 note.txt\n" + _uu_line(b"hello uu") + b"\n`\nend\n"
    assert decode_transfer(_leaf("x-uuencode", body), options=ParserOptions()) == b"hello uu"


def test_uuencode_missing_begin_is_tolerated_by_default() -> None:
    body = _uu_line(b"hello uu") + b"\n"
    assert decode_transfer(_leaf("uuencode", body), options=ParserOptions()) == b"hello uu"


def test_uuencode_missing_begin_fails_when_strict() -> None:
    options = ParserOptions(uudecode_ignore_missing_begin_end=False)
    with pytest.raises(DecodeFailed):
        decode_transfer(_leaf("x-uuencode", _uu_line(b"hello uu")), options=options)


def test_uuencode_missing_end_fails_when_strict() -> None:
    options = ParserOptions(uudecode_ignore_missing_begin_end=False)
    body = b"begin 644 note.txt\n" + _uu_line(b"hello uu") + b"\n"
    with pytest.raises(DecodeFailed):
        decode_transfer(_leaf("x-uuencode", body), options=options)


def test_unknown_encoding_passes_through_by_default() -> None:
    leaf = _leaf("x-gzip64", b"opaque")
    assert decode_transfer(leaf, options=ParserOptions()) == b"opaque"


def test_unknown_encoding_fails_when_strict() -> None:
    leaf = _leaf("x-gzip64", b"opaque")
    with pytest.raises(DecodeFailed, match="x-gzip64"):
        decode_transfer(leaf, options=ParserOptions(ignore_unknown_encoding=False))


def test_decode_text_with_declared_charset() -> None:
    decoded = decode_text(b"caf\xe9", "ISO-8859-1", default_charset="utf-8")
    assert decoded.text == "café"
    assert decoded.charset == "iso-8859-1"
    assert decoded.fell_back is False


def test_decode_text_unknown_charset_falls_back() -> None:
    decoded = decode_text(b"caf\xc3\xa9", "no-such-charset", default_charset="utf-8")
    assert decoded.text == "café"
    assert decoded.charset == "utf-8"
    assert decoded.fell_back is True


def test_decode_text_invalid_bytes_are_replaced() -> None:
    decoded = decode_text(b"ok \xff", "utf-8", default_charset="utf-8")
    assert decoded.text == "ok \ufffd"
    assert decoded.fell_back is True


def test_decode_text_without_charset_uses_default() -> None:
    decoded = decode_text(b"caf\xe9", None, default_charset="latin-1")
    assert decoded.text == "café"
    assert decoded.charset == "latin-1"


@pytest.mark.parametrize(
    ("label", "expected"),
    [
        ("UTF8", "utf-8"),
        ('"ISO-8859-1"', "iso-8859-1"),
        ("ks_c_5601-1987", "cp949"),
        ("x-unknown", None),
        ("", None),
        (None, None),
        ("definitely-not-a-codec", None),
    ],
)
def test_resolve_charset(label: str | None, expected: str | None) -> None:
    assert resolve_charset(label) == expected


@pytest.mark.parametrize("label", ["base64", "hex", "rot13", "zlib"])
def test_non_text_codecs_are_not_charsets(label: str) -> None:
    assert resolve_charset(label) is None
    decoded = decode_text(b"Hello", label, default_charset="utf-8")
    assert decoded.text == "Hello"
    assert decoded.charset == "utf-8"
    assert decoded.fell_back is True
