"""Build the immutable :class:`MimeNode` tree from raw message bytes.

Framing is left to :mod:`email.parser` with a compat32 policy whose
``Content-Type`` reads go through :mod:`emlconv.services.mime.normalize`, so
boundaries are found even in broken headers. What the stdlib parser cannot
recover (a missing boundary parameter, the strict end-boundary option, the
nesting limit) is handled here. Problems never raise; they are kept in the
``defects`` of the node they were met on.
"""

from __future__ import annotations

import re
from email import errors
from email.generator import BytesGenerator
from email.message import Message
from email.parser import BytesParser
from email.policy import Compat32, compat32
from email.utils import quote
from io import BytesIO

from emlconv.services.mime.errors import StructureTooDeep
from emlconv.services.mime.headers import Headers
from emlconv.services.mime.normalize import normalize
from emlconv.services.mime.types import MimeContainer, MimeLeaf, MimeNode, ParserOptions

_FOLD_RE = re.compile(r"\r?\n(?=[ \t])")
_GUESS_BOUNDARY_RE = re.compile(rb"^--(?P<boundary>[!-~][ -~]{0,69}?)[ \t]*\r?$", re.MULTILINE)

_DEFECT_MESSAGES: dict[type[errors.MessageDefect], str] = {
    errors.CloseBoundaryNotFoundDefect: "missing closing boundary",
    errors.StartBoundaryNotFoundDefect: "start boundary not found",
    errors.NoBoundaryInMultipartDefect: "multipart without boundary parameter",
    errors.MissingHeaderBodySeparatorDefect: "missing blank line between headers and body",
    errors.FirstHeaderLineIsContinuationDefect: "first header line is a continuation",
    errors.MisplacedEnvelopeHeaderDefect: "misplaced envelope header",
    errors.InvalidMultipartContentTransferEncodingDefect: "multipart with encoded body",
}


class _RepairingPolicy(Compat32):
    """compat32, except that ``Content-Type`` is repaired whenever the parser reads it."""

    def header_fetch_parse(self, name, value):
        value = super().header_fetch_parse(name, value)
        if name.lower() == "content-type" and isinstance(value, str):
            return normalize(value)
        return value


_PARSE_POLICY = _RepairingPolicy()
_FLATTEN_POLICY = compat32.clone(linesep="\r\n", max_line_length=0)


def parse_message(raw: bytes, *, options: ParserOptions | None = None) -> MimeNode:
    options = options or ParserOptions()
    parser = BytesParser(policy=_PARSE_POLICY)
    try:
        message = parser.parsebytes(raw)
    except RecursionError:
        # Nesting deep enough to exhaust the stdlib parser; keep the body unparsed.
        message = parser.parsebytes(raw, headersonly=True)
        return MimeLeaf(
            headers=_headers(message),
            raw_body=_payload_bytes(message),
            truncated=True,
            defects=("nesting too deep to parse",),
        )
    try:
        return _build(message, options=options, depth=0)
    except StructureTooDeep:
        return _truncated_leaf(message)


def _build(message: Message, *, options: ParserOptions, depth: int) -> MimeNode:
    headers = _headers(message)
    defects = [_describe(d) for d in message.defects]
    if message.get_content_maintype() != "multipart":
        return MimeLeaf(headers=headers, raw_body=_payload_bytes(message), defects=tuple(defects))

    if depth >= options.max_depth:
        raise StructureTooDeep(depth + 1, options.max_depth)

    if message.get_boundary() is None:
        guessed = (
            _guess_boundary(_payload_bytes(message)) if options.ignore_missing_boundary else None
        )
        if guessed is None:
            return MimeLeaf(
                headers=headers, raw_body=_payload_bytes(message), defects=tuple(defects)
            )
        defects = [
            _describe(d)
            for d in message.defects
            if not isinstance(d, errors.NoBoundaryInMultipartDefect)
        ]
        defects.append(f"boundary parameter missing, guessed {guessed!r}")
        message = _with_boundary(message, guessed)
        defects.extend(_describe(d) for d in message.defects)

    parts = message.get_payload()
    if not isinstance(parts, list) or not parts:
        defects.append("multipart without parts")
        return MimeLeaf(headers=headers, raw_body=_payload_bytes(message), defects=tuple(defects))

    closed = not any(isinstance(d, errors.CloseBoundaryNotFoundDefect) for d in message.defects)
    if not closed and not options.ignore_missing_end_boundary:
        defects.append("unterminated last part dropped")
        parts = parts[:-1]
        if not parts:
            return MimeLeaf(
                headers=headers, raw_body=_payload_bytes(message), defects=tuple(defects)
            )

    children: list[MimeNode] = []
    for part in parts:
        try:
            children.append(_build(part, options=options, depth=depth + 1))
        except StructureTooDeep:
            children.append(_truncated_leaf(part))
    return MimeContainer(
        headers=headers,
        children=tuple(children),
        source=_body_bytes(message),
        defects=tuple(defects),
    )


def _truncated_leaf(message: Message) -> MimeLeaf:
    return MimeLeaf(
        headers=_headers(message),
        raw_body=_body_bytes(message),
        truncated=True,
        defects=tuple(_describe(d) for d in message.defects),
    )


def _headers(message: Message) -> Headers:
    return Headers(tuple((name, _header_text(value)) for name, value in message.raw_items()))


def _header_text(value: str) -> str:
    raw = _FOLD_RE.sub("", value).encode("ascii", "surrogateescape")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def _describe(defect: errors.MessageDefect) -> str:
    return _DEFECT_MESSAGES.get(type(defect), type(defect).__name__)


def _payload_bytes(message: Message) -> bytes:
    # get_payload() re-decodes 8-bit text with the declared charset; the source bytes are wanted.
    payload = message._payload
    if payload is None:
        return b""
    if isinstance(payload, str):
        return payload.encode("ascii", "surrogateescape")
    return _body_bytes(message)


def _body_bytes(message: Message) -> bytes:
    out = BytesIO()
    try:
        BytesGenerator(out, mangle_from_=False, policy=_FLATTEN_POLICY).flatten(message)
    except RecursionError:
        return b""
    head = b"".join(_FLATTEN_POLICY.fold_binary(k, v) for k, v in message.raw_items())
    return out.getvalue()[len(head) + len(b"\r\n") :]


def _with_boundary(message: Message, boundary: str) -> Message:
    head = f'Content-Type: {message.get_content_type()}; boundary="{quote(boundary)}"\r\n\r\n'
    return BytesParser(policy=_PARSE_POLICY).parsebytes(
        head.encode("ascii") + _payload_bytes(message)
    )


def _guess_boundary(body: bytes) -> str | None:
    m = _GUESS_BOUNDARY_RE.search(body)
    if m is None:
        return None
    boundary = m.group("boundary").decode("ascii", errors="replace")
    if boundary.endswith("--"):
        boundary = boundary[:-2]
    return boundary or None
