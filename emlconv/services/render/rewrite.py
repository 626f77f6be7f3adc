from __future__ import annotations

import re
from collections.abc import Callable
from urllib.parse import unquote

from emlconv.services.mime.media import InlineMediaIndex
from emlconv.services.mime.types import ClassifiedEntry

# src="cid:logo@x" / url(cid:logo@x): only the reference itself is replaced, quoting is kept.
CID_URL_RE = re.compile(r"\bcid:(?P<cid>[^\"'\s>)]+)", re.IGNORECASE)
# Plain text bodies mark images as "[cid:logo@x]".
CID_MARKER_RE = re.compile(r"\[cid:(?P<cid>[^\]]+?)\]", re.IGNORECASE | re.DOTALL)

Resolver = Callable[[str], ClassifiedEntry[bytes] | None]
Render = Callable[[ClassifiedEntry[bytes], re.Match[str]], str]


def rewrite(text: str, resolver: Resolver, *, pattern: re.Pattern[str], render: Render) -> str:
    """Replace every ``pattern`` match whose ``cid`` group resolves; copy the rest verbatim."""
    out: list[str] = []
    pos = 0
    for m in pattern.finditer(text):
        entry = resolver(m.group("cid"))
        if entry is None:
            continue
        out.append(text[pos : m.start()])
        out.append(render(entry, m))
        pos = m.end()
    out.append(text[pos:])
    return "".join(out)


def index_resolver(index: InlineMediaIndex) -> Resolver:
    def resolve(cid: str) -> ClassifiedEntry[bytes] | None:
        entry = index.lookup(cid)
        if entry is None and "%" in cid:
            entry = index.lookup(unquote(cid))
        return entry

    return resolve


def embed_inline_media(html: str, index: InlineMediaIndex) -> str:
    if not index:
        return html
    return rewrite(
        html,
        index_resolver(index),
        pattern=CID_URL_RE,
        render=lambda entry, _m: entry.data_uri(),
    )


def embed_plain_media(text: str, index: InlineMediaIndex) -> str:
    if not index:
        return text
    return rewrite(
        text,
        index_resolver(index),
        pattern=CID_MARKER_RE,
        render=lambda entry, _m: f'<img src="{entry.data_uri()}" />',
    )
