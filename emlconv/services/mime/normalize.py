"""Repair of broken ``Content-Type`` and ``Content-Disposition`` values.

Real mail carries header values such as ``text/html; charset="utf-8`` (unmatched
quote), ``multipart/mixed boundary=abc`` (missing separator) or ``charset=utf-8``
(no media type at all). The functions here rewrite such values into a form the
stdlib parameter parser accepts, keeping every parameter that can be recovered.

All functions are pure and idempotent: feeding their output back in returns the
same string.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_MEDIA_TYPE = "text/plain"
DEFAULT_DISPOSITION = "attachment"

_LINE_BREAK_RE = re.compile(r"[\r\n\t]")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_SLASH_RE = re.compile(r"\s*/\s*")
_ESCAPE_RE = re.compile(r"\\(.)")
_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_PARAM_NAME_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9a-z]+$")
_MEDIA_TYPE_RE = re.compile(r"^[a-z0-9!#$&^_.+-]+/[a-z0-9!#$&^_.+-]+$")

_BARE_TYPE_ALIASES = {
    "text": "text/plain",
    "plain": "text/plain",
    "text/": "text/plain",
    "html": "text/html",
    "text/htm": "text/html",
}


@dataclass(frozen=True)
class ContentTypeRepair:
    value: str
    substituted: bool


def normalize(raw: str | None) -> str:
    return repair(raw).value


def repair(raw: str | None) -> ContentTypeRepair:
    head, params = _split(raw or "")
    media_type = _clean_media_type(head)
    substituted = media_type is None
    if media_type is None:
        media_type = DEFAULT_MEDIA_TYPE
        if "=" in head:
            params.insert(0, head)
    return ContentTypeRepair(value=_render(media_type, params), substituted=substituted)


def normalize_disposition(raw: str | None) -> str:
    head, params = _split(raw or "")
    kind = head.strip().strip("\"'").lower()
    if not kind or not _TOKEN_RE.match(kind):
        if "=" in head:
            params.insert(0, head)
        kind = DEFAULT_DISPOSITION
    return _render(kind, params)


def _split(raw: str) -> tuple[str, list[str]]:
    text = _CONTROL_RE.sub("", _LINE_BREAK_RE.sub(" ", raw)).strip()
    segments = _split_segments(text)
    head = segments[0].strip()
    rest = segments[1:]
    # "multipart/mixed boundary=abc": the separator after the type is missing.
    first, sep, tail = head.partition(" ")
    if sep and "=" in tail and "=" not in first:
        head = first
        rest.insert(0, tail)
    return head, rest


def _split_segments(text: str) -> list[str]:
    literal_quotes: set[int] = set()
    while True:
        segments, dangling = _scan(text, literal_quotes)
        if dangling is None:
            return segments
        literal_quotes.add(dangling)


def _scan(text: str, literal_quotes: set[int]) -> tuple[list[str], int | None]:
    segments: list[str] = []
    buf: list[str] = []
    in_quote = False
    escaped = False
    opened_at = -1
    for i, ch in enumerate(text):
        if in_quote:
            buf.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_quote = False
            continue
        if ch == '"' and i not in literal_quotes:
            in_quote = True
            opened_at = i
            buf.append(ch)
        elif ch == ";":
            segments.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
    segments.append("".join(buf))
    return segments, (opened_at if in_quote else None)


def _clean_media_type(head: str) -> str | None:
    if "=" in head:
        return None
    candidate = _SLASH_RE.sub("/", head.strip().strip("\"'")).lower().rstrip(",:")
    candidate = "".join(candidate.split())
    if candidate in _BARE_TYPE_ALIASES:
        return _BARE_TYPE_ALIASES[candidate]
    if _MEDIA_TYPE_RE.match(candidate):
        return candidate
    return None


def _render(head: str, segments: list[str]) -> str:
    seen: set[str] = set()
    parts = [head]
    for segment in segments:
        param = _clean_param(segment)
        if param is None:
            continue
        name, value = param
        if name in seen:
            continue
        seen.add(name)
        parts.append(f"{name}={_quote(value)}")
    return "; ".join(parts)


def _clean_param(segment: str) -> tuple[str, str] | None:
    name, sep, value = segment.partition("=")
    if not sep:
        return None
    name = name.strip().lower()
    if not _PARAM_NAME_RE.match(name):
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        value = _ESCAPE_RE.sub(r"\1", value[1:-1])
    else:
        value = value.replace('"', "").strip()
    if not value:
        return None
    return name, value


def _quote(value: str) -> str:
    if _TOKEN_RE.match(value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
