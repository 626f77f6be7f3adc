from __future__ import annotations

from collections.abc import Sequence

from emlconv.services.mime.types import ClassifiedEntry, ContentType

DEFAULT_CHARSET = "utf-8"


def select_body(
    candidates: Sequence[ClassifiedEntry[str]], *, default_charset: str = DEFAULT_CHARSET
) -> ClassifiedEntry[str]:
    """Pick the display body: last HTML candidate, else last plain text, else empty HTML."""
    for wanted in ("text/html", "text/plain"):
        for entry in reversed(candidates):
            if entry.content_type.match(wanted):
                return entry
    return empty_body(default_charset)


def empty_body(charset: str = DEFAULT_CHARSET) -> ClassifiedEntry[str]:
    return ClassifiedEntry(
        content_type=ContentType(maintype="text", subtype="html", params={"charset": charset}),
        payload="",
    )
