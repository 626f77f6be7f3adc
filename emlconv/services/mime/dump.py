from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from emlconv.services.mime.types import MimeContainer, MimeNode

T = TypeVar("T")

PLACEHOLDER = "<?>"
INDENT = "  "


def dump_structure(root: MimeNode) -> str:
    """Render the part tree, one line per node, indented by depth.

    Read-only and total: a field that cannot be rendered shows as ``<?>``.
    Iterative so that pathological nesting cannot exhaust the call stack.
    """
    lines: list[str] = []
    stack: list[tuple[MimeNode, int]] = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        lines.append(INDENT * depth + _describe(node))
        children = _safe(
            lambda: tuple(node.children) if isinstance(node, MimeContainer) else (), ()
        )
        stack.extend((child, depth + 1) for child in reversed(children))
    return "\n".join(lines)


def _describe(node: MimeNode) -> str:
    media_type = _safe(lambda: node.content_type.base_type, PLACEHOLDER)
    parts = [media_type]
    disposition = _safe(
        lambda: node.disposition.kind.value if node.disposition is not None else None,
        PLACEHOLDER,
    )
    if disposition:
        parts.append(f"[{disposition}]")
    filename = _safe(lambda: node.filename, PLACEHOLDER)
    if filename:
        parts.append(f"name={filename!r}" if filename != PLACEHOLDER else f"name={filename}")
    content_id = _safe(lambda: node.content_id, PLACEHOLDER)
    if content_id:
        parts.append(f"cid={content_id}")
    if _safe(lambda: getattr(node, "truncated", False), False):
        parts.append("(truncated)")
    return " ".join(parts)


def _safe(getter: Callable[[], T], fallback: T) -> T:
    try:
        return getter()
    except Exception:
        return fallback
