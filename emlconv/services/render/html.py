from __future__ import annotations

import html
import re

from emlconv.services.mime.media import InlineMediaIndex
from emlconv.services.mime.types import ClassifiedEntry
from emlconv.services.render.rewrite import embed_inline_media, embed_plain_media
from emlconv.services.render.sanitize import sanitize_html
from emlconv.services.render.summary import MessageSummary

HTML_CHARSET_TEMPLATE = (
    '<!DOCTYPE html><html><head><meta charset="{charset}"><title>{title}</title></head>'
    "<body>{body}</body></html>"
)
HTML_WRAPPER_TEMPLATE = (
    "<!DOCTYPE html><html><head><style>body{{font-size: 0.5cm;}}</style>"
    '<meta charset="{charset}"><title>{title}</title></head><body>{body}</body></html>'
)
HEADER_STYLE = "<style>.header-name {color:#9E9E9E; text-align:right;}</style>"
HEADER_TABLE_TEMPLATE = "<table style='border:1px solid #DDD; margin: 8px'>{rows}</table>"
HEADER_FIELD_TEMPLATE = '<tr><td class="header-name">{name}</td><td class="header-value">{value}</td></tr>'

_HTML_BODY_TAG_RE = re.compile(r"</?(html|body)\b[^>]*>", re.IGNORECASE)


def header_rows(summary: MessageSummary) -> str:
    rows: list[str] = []
    if summary.sender:
        rows.append(HEADER_FIELD_TEMPLATE.format(name="From", value=html.escape(summary.sender)))
    if summary.subject:
        rows.append(
            HEADER_FIELD_TEMPLATE.format(
                name="Subject", value=f"<b>{html.escape(summary.subject)}</b>"
            )
        )
    if summary.recipients:
        rows.append(
            HEADER_FIELD_TEMPLATE.format(
                name="To", value=html.escape(", ".join(summary.recipients))
            )
        )
    if summary.date:
        rows.append(HEADER_FIELD_TEMPLATE.format(name="Date", value=html.escape(summary.date)))
    return "".join(rows)


def plain_to_html(text: str) -> str:
    escaped = html.escape(text, quote=False)
    escaped = escaped.replace("\r\n", "\n").replace("\r", "")
    return escaped.replace("\n", "<br>").replace(" ", "&nbsp;")


def assemble_html(
    body: ClassifiedEntry[str],
    index: InlineMediaIndex,
    *,
    summary: MessageSummary | None = None,
    sanitize: bool = False,
) -> str:
    """Wrap the selected body in a standalone HTML document with inline media embedded.

    HTML bodies lose their own ``<html>``/``<body>`` tags and have ``cid:``
    references turned into ``data:`` URIs. Plain text bodies are escaped,
    keep their line breaks and spacing, and have ``[cid:...]`` markers turned
    into images. References without a matching part are left as they are.
    """
    charset = html.escape(body.charset or "utf-8")
    title = html.escape(summary.subject) if summary is not None and summary.subject else "title"

    if body.content_type.match("text/html"):
        content = _HTML_BODY_TAG_RE.sub("", body.payload)
        if sanitize:
            content = sanitize_html(content)
        content = embed_inline_media(content, index)
        document = HTML_CHARSET_TEMPLATE.format(charset=charset, title=title, body=content)
    else:
        content = plain_to_html(body.payload)
        document = HTML_WRAPPER_TEMPLATE.format(charset=charset, title=title, body=content)
        document = embed_plain_media(document, index)

    if summary is not None:
        rows = header_rows(summary)
        if rows:
            document = document.replace(
                "</head><body>",
                f"{HEADER_STYLE}</head><body>{HEADER_TABLE_TEMPLATE.format(rows=rows)}",
                1,
            )
    return document
