from __future__ import annotations

import base64
import dataclasses
from dataclasses import dataclass, field
from email.message import Message
from email.utils import collapse_rfc2231_value
from functools import cached_property
from typing import TYPE_CHECKING, Generic, TypeVar

from emlconv.models.enums import ContainerKind, DiagnosticKind, DispositionKind, TransferEncoding
from emlconv.services.mime.headers import (
    Headers,
    decode_header_value,
    normalize_content_id,
    parse_transfer_encoding,
)
from emlconv.services.mime.normalize import normalize_disposition, repair

if TYPE_CHECKING:
    from emlconv.core.config import Settings

T = TypeVar("T", str, bytes)


def _header_params(header_name: str, value: str) -> list[tuple[str, str]]:
    holder = Message()
    holder[header_name] = value
    out: list[tuple[str, str]] = []
    for name, raw in holder.get_params(header=header_name)[1:]:
        out.append((name.lower(), collapse_rfc2231_value(raw).strip()))
    return out


@dataclass(frozen=True)
class ContentType:
    maintype: str = "text"
    subtype: str = "plain"
    params: dict[str, str] = field(default_factory=dict, hash=False)
    # True when the media type was unusable and replaced by text/plain.
    malformed: bool = False

    @classmethod
    def parse(cls, raw: str | None) -> ContentType:
        if raw is None or not raw.strip():
            return cls()
        fixed = repair(raw)
        media_type = fixed.value.split(";", 1)[0]
        maintype, _, subtype = media_type.partition("/")
        params: dict[str, str] = {}
        for name, value in _header_params("Content-Type", fixed.value):
            params.setdefault(name, value)
        return cls(maintype=maintype, subtype=subtype, params=params, malformed=fixed.substituted)

    @property
    def base_type(self) -> str:
        return f"{self.maintype}/{self.subtype}"

    @property
    def charset(self) -> str | None:
        return self.params.get("charset") or None

    def get_param(self, name: str, default: str | None = None) -> str | None:
        return self.params.get(name.lower(), default)

    def match(self, pattern: str) -> bool:
        maintype, _, subtype = pattern.lower().partition("/")
        if maintype not in ("*", self.maintype):
            return False
        return subtype in ("", "*", self.subtype)

    def with_param(self, name: str, value: str) -> ContentType:
        return dataclasses.replace(self, params={**self.params, name.lower(): value})

    def __str__(self) -> str:
        parts = [self.base_type]
        parts.extend(f'{k}="{v}"' for k, v in self.params.items())
        return "; ".join(parts)


@dataclass(frozen=True)
class ContentDisposition:
    kind: DispositionKind
    filename: str | None = None

    @classmethod
    def parse(cls, raw: str) -> ContentDisposition:
        value = normalize_disposition(raw)
        head = value.split(";", 1)[0]
        try:
            kind = DispositionKind(head)
        except ValueError:
            kind = DispositionKind.attachment
        params = dict(_header_params("Content-Disposition", value))
        filename = params.get("filename")
        return cls(kind=kind, filename=decode_header_value(filename) if filename else None)


class _PartView:
    """Header-derived attributes shared by leaves and containers."""

    headers: Headers

    @cached_property
    def content_type(self) -> ContentType:
        return ContentType.parse(self.headers.get("Content-Type"))

    @cached_property
    def disposition(self) -> ContentDisposition | None:
        raw = self.headers.get("Content-Disposition")
        if raw is None or not raw.strip():
            return None
        return ContentDisposition.parse(raw)

    @cached_property
    def filename(self) -> str | None:
        if self.disposition is not None and self.disposition.filename:
            return self.disposition.filename
        name = self.content_type.get_param("name")
        return decode_header_value(name) if name else None

    @cached_property
    def content_id(self) -> str | None:
        return normalize_content_id(self.headers.get("Content-ID"))

    @cached_property
    def transfer_encoding(self) -> TransferEncoding:
        return parse_transfer_encoding(self.headers.get("Content-Transfer-Encoding"))

    @property
    def disposed_as_attachment(self) -> bool:
        return self.disposition is not None and self.disposition.kind == DispositionKind.attachment


@dataclass(frozen=True, eq=False)
class MimeLeaf(_PartView):
    headers: Headers
    raw_body: bytes = b""
    # Set when the depth limit cut off a subtree and kept it as one opaque part.
    truncated: bool = False
    defects: tuple[str, ...] = ()


@dataclass(frozen=True, eq=False)
class MimeContainer(_PartView):
    headers: Headers
    children: tuple[MimeNode, ...]
    source: bytes = b""
    defects: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.children:
            raise ValueError("MimeContainer requires at least one child")

    @property
    def kind(self) -> ContainerKind:
        try:
            return ContainerKind(self.content_type.subtype)
        except ValueError:
            return ContainerKind.mixed


MimeNode = MimeLeaf | MimeContainer


@dataclass(frozen=True, eq=False)
class ClassifiedEntry(Generic[T]):
    content_type: ContentType
    payload: T
    node: MimeLeaf | None = None

    @property
    def charset(self) -> str | None:
        return self.content_type.charset

    def as_base64(self) -> str:
        data = self.payload if isinstance(self.payload, bytes) else self.payload.encode("utf-8")
        return base64.b64encode(data).decode("ascii")

    def data_uri(self) -> str:
        return f"data:{self.content_type.base_type};base64,{self.as_base64()}"


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    path: str
    detail: str


@dataclass(frozen=True)
class ParserOptions:
    ignore_missing_boundary: bool = True
    ignore_missing_end_boundary: bool = True
    strict_address_parsing: bool = False
    ignore_unknown_encoding: bool = True
    uudecode_ignore_missing_begin_end: bool = True
    base64_ignore_errors: bool = True
    max_depth: int = 32
    default_charset: str = "utf-8"

    @classmethod
    def from_settings(cls, settings: Settings) -> ParserOptions:
        return cls(
            ignore_missing_boundary=settings.MIME_IGNORE_MISSING_BOUNDARY,
            ignore_missing_end_boundary=settings.MIME_IGNORE_MISSING_END_BOUNDARY,
            strict_address_parsing=settings.MIME_STRICT_ADDRESS_PARSING,
            ignore_unknown_encoding=settings.MIME_IGNORE_UNKNOWN_ENCODING,
            uudecode_ignore_missing_begin_end=settings.MIME_UUDECODE_IGNORE_MISSING_BEGIN_END,
            base64_ignore_errors=settings.MIME_BASE64_IGNORE_ERRORS,
            max_depth=settings.MAX_MIME_DEPTH,
            default_charset=settings.DEFAULT_CHARSET,
        )
