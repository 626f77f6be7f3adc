from __future__ import annotations

from dataclasses import dataclass
from email.utils import getaddresses

from emlconv.services.mime.headers import decode_header_value
from emlconv.services.mime.types import MimeNode, ParserOptions


@dataclass(frozen=True)
class MessageSummary:
    subject: str | None
    sender: str | None
    recipients: list[str]
    date: str | None


def _unfold(value: str) -> str:
    return " ".join(value.split())


def _header_text(node: MimeNode, name: str) -> str | None:
    value = node.headers.get(name)
    if value is None:
        return None
    text = decode_header_value(_unfold(value)).strip()
    return text or None


def _split_recipients(raw: str, *, strict: bool) -> list[str]:
    if strict:
        out: list[str] = []
        for name, addr in getaddresses([raw]):
            if not addr:
                continue
            out.append(f"{decode_header_value(name)} <{addr}>" if name else addr)
        return out
    return [decode_header_value(r).strip() for r in raw.split(",") if r.strip()]


def summarize_headers(root: MimeNode, *, options: ParserOptions | None = None) -> MessageSummary:
    options = options or ParserOptions()
    sender = _header_text(root, "From") or _header_text(root, "Sender")

    recipients: list[str] = []
    for raw in root.headers.get_all("To"):
        recipients.extend(_split_recipients(_unfold(raw), strict=options.strict_address_parsing))

    return MessageSummary(
        subject=_header_text(root, "Subject"),
        sender=sender,
        recipients=recipients,
        date=_header_text(root, "Date"),
    )
