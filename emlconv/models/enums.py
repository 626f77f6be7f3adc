from __future__ import annotations

import enum


class TransferEncoding(enum.StrEnum):
    bit7 = "7bit"
    bit8 = "8bit"
    binary = "binary"
    quoted_printable = "quoted-printable"
    base64 = "base64"
    x_uuencode = "x-uuencode"
    unknown = "unknown"


class DispositionKind(enum.StrEnum):
    inline = "inline"
    attachment = "attachment"


class ContainerKind(enum.StrEnum):
    mixed = "mixed"
    alternative = "alternative"
    related = "related"
    signed = "signed"
    report = "report"
    digest = "digest"
    parallel = "parallel"


class Bucket(enum.StrEnum):
    body = "body"
    inline_media = "inline_media"
    attachment = "attachment"


class DiagnosticKind(enum.StrEnum):
    header_malformed = "header_malformed"
    decode_failed = "decode_failed"
    charset_fallback = "charset_fallback"
    structure_too_deep = "structure_too_deep"
    framing_defect = "framing_defect"
    duplicate_content_id = "duplicate_content_id"
