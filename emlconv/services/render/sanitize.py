from __future__ import annotations

from collections.abc import Callable

import bleach

ALLOWED_TAGS = [
    "a",
    "p",
    "br",
    "div",
    "span",
    "font",
    "center",
    "strong",
    "em",
    "b",
    "i",
    "u",
    "s",
    "small",
    "sub",
    "sup",
    "ul",
    "ol",
    "li",
    "blockquote",
    "code",
    "pre",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "table",
    "thead",
    "tbody",
    "tfoot",
    "tr",
    "td",
    "th",
    "hr",
    "img",
]

_LAYOUT_ATTRS = {"width", "height", "align", "valign", "colspan", "rowspan", "border"}
ALLOWED_PROTOCOLS = ["http", "https", "mailto", "cid", "data"]


def _filter_img_src(value: str) -> str | None:
    v = (value or "").strip()
    if v.lower().startswith(("cid:", "data:image/")):
        return v
    return None


def _attr_filter(tag: str, name: str, value: str) -> str | None:
    if tag == "a" and name == "href":
        v = (value or "").strip()
        if v.startswith(("http://", "https://", "mailto:")):
            return v
        return None
    if tag == "img" and name == "src":
        return _filter_img_src(value)
    if name in {"title", "alt"} or name in _LAYOUT_ATTRS:
        return value
    if tag == "font" and name in {"color", "face", "size"}:
        return value
    if tag == "a" and name in {"rel", "target"}:
        return value
    return None


def _attribute_callable(tag: str, name: str, value: str) -> bool:
    return _attr_filter(tag, name, value) is not None


def sanitize_html(html: str) -> str:
    """Strip scripts, event handlers and remote references; ``cid:`` images survive."""
    allowed_attrs: dict[str, Callable[[str, str, str], bool]] = {"*": _attribute_callable}
    cleaned = bleach.clean(
        html,
        tags=ALLOWED_TAGS,
        attributes=allowed_attrs,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
    )
    return bleach.linkify(cleaned, skip_tags=["pre", "code"])
