"""Single-pass classification of every leaf of a MIME tree.

Each leaf lands in exactly one bucket: body candidate, inline media or
attachment. Problems met on the way (broken headers, undecodable payloads,
excessive nesting) never abort the walk; a :class:`Diagnostic` is recorded and
the affected part is read as plain text or kept as an attachment.

Only direct children of a ``multipart/alternative`` group count as
alternatives. The "last alternative wins" rule needs no re-ranking here because
:func:`emlconv.services.mime.body.select_body` prefers the most recently
classified candidate.

``multipart/related`` contributes only its first child as body. Every later child,
whole subtrees included, donates inline media by Content-ID or is an attachment.
"""

from __future__ import annotations

from dataclasses import dataclass

from emlconv.models.enums import Bucket, ContainerKind, DiagnosticKind
from emlconv.services.mime.decode import decode_text, decode_transfer
from emlconv.services.mime.errors import DecodeFailed, HeaderMalformed, StructureTooDeep
from emlconv.services.mime.media import InlineMediaIndex, InlineMediaIndexBuilder
from emlconv.services.mime.types import (
    ClassifiedEntry,
    ContentType,
    Diagnostic,
    MimeContainer,
    MimeLeaf,
    MimeNode,
    ParserOptions,
)

BODY_TYPES = frozenset({"text/plain", "text/html"})
_NON_MEDIA_MAINTYPES = frozenset({"text", "multipart", "message"})
ROOT_PATH = "root"


@dataclass(frozen=True)
class Classification:
    body_candidates: tuple[ClassifiedEntry[str], ...]
    inline_media: InlineMediaIndex
    attachments: tuple[MimeLeaf, ...]
    diagnostics: tuple[Diagnostic, ...] = ()

    def bucket_of(self, leaf: MimeLeaf) -> Bucket | None:
        if any(entry.node is leaf for entry in self.body_candidates):
            return Bucket.body
        if any(entry.node is leaf for entry in self.inline_media.values()):
            return Bucket.inline_media
        if any(att is leaf for att in self.attachments):
            return Bucket.attachment
        return None


def classify(root: MimeNode, *, options: ParserOptions | None = None) -> Classification:
    walker = _Walker(options or ParserOptions())
    try:
        walker.visit(root, path=ROOT_PATH, depth=0)
    except StructureTooDeep as e:
        walker.truncate(root, path=ROOT_PATH, reason=str(e))
    return walker.result()


def child_path(path: str, index: int) -> str:
    if path == ROOT_PATH:
        return str(index)
    return f"{path}.{index}"


def opaque_leaf(node: MimeNode) -> MimeLeaf:
    if isinstance(node, MimeLeaf):
        return node
    return MimeLeaf(headers=node.headers, raw_body=node.source, truncated=True, defects=node.defects)


class _Walker:
    def __init__(self, options: ParserOptions) -> None:
        self._options = options
        self._bodies: list[ClassifiedEntry[str]] = []
        self._media = InlineMediaIndexBuilder()
        self._attachments: list[MimeLeaf] = []
        self._diagnostics: list[Diagnostic] = []

    def result(self) -> Classification:
        return Classification(
            body_candidates=tuple(self._bodies),
            inline_media=self._media.build(),
            attachments=tuple(self._attachments),
            diagnostics=tuple(self._diagnostics),
        )

    def visit(
        self,
        node: MimeNode,
        *,
        path: str,
        depth: int,
        donor: bool = False,
        detached: bool = False,
    ) -> None:
        if isinstance(node, MimeLeaf):
            self._visit_leaf(node, path=path, donor=donor, detached=detached)
            return

        if depth >= self._options.max_depth:
            raise StructureTooDeep(depth + 1, self._options.max_depth)
        self._note_defects(node, path)

        # A container disposed as attachment keeps its text leaves out of the body.
        detached = detached or node.disposed_as_attachment
        related = node.kind == ContainerKind.related
        for index, child in enumerate(node.children, start=1):
            sub_path = child_path(path, index)
            try:
                self.visit(
                    child,
                    path=sub_path,
                    depth=depth + 1,
                    donor=donor or (related and index > 1),
                    detached=detached,
                )
            except StructureTooDeep as e:
                self.truncate(child, path=sub_path, reason=str(e))

    def truncate(self, node: MimeNode, *, path: str, reason: str) -> None:
        self._note(DiagnosticKind.structure_too_deep, path, reason)
        self._attachments.append(opaque_leaf(node))

    def _visit_leaf(self, leaf: MimeLeaf, *, path: str, donor: bool, detached: bool) -> None:
        self._note_defects(leaf, path)
        if leaf.truncated:
            self._note(DiagnosticKind.structure_too_deep, path, "subtree kept as one opaque part")
            self._attachments.append(leaf)
            return

        try:
            content_type = _resolved_type(leaf)
        except HeaderMalformed as e:
            self._note(DiagnosticKind.header_malformed, path, str(e))
            # Classified as the substituted text/plain, recovered parameters included.
            content_type = leaf.content_type

        content_id = leaf.content_id
        if content_id is not None and (donor or _is_inline_media(leaf, content_type)):
            self._add_media(leaf, content_type, content_id, path=path)
        elif (
            content_type.base_type in BODY_TYPES
            and not donor
            and not detached
            and not leaf.disposed_as_attachment
        ):
            self._add_body(leaf, content_type, path=path)
        else:
            self._attachments.append(leaf)

    def _add_media(
        self, leaf: MimeLeaf, content_type: ContentType, content_id: str, *, path: str
    ) -> None:
        try:
            data = decode_transfer(leaf, options=self._options)
        except DecodeFailed as e:
            self._note(DiagnosticKind.decode_failed, path, str(e))
            self._attachments.append(leaf)
            return

        entry = ClassifiedEntry(content_type=content_type, payload=data, node=leaf)
        displaced = self._media.add(content_id, entry)
        if displaced is not None and displaced.node is not None:
            self._note(
                DiagnosticKind.duplicate_content_id,
                path,
                f"{content_id} repeated, earlier part moved to attachments",
            )
            self._attachments.append(displaced.node)

    def _add_body(self, leaf: MimeLeaf, content_type: ContentType, *, path: str) -> None:
        try:
            data = decode_transfer(leaf, options=self._options)
        except DecodeFailed as e:
            self._note(DiagnosticKind.decode_failed, path, str(e))
            self._attachments.append(leaf)
            return

        decoded = decode_text(
            data, content_type.charset, default_charset=self._options.default_charset
        )
        if decoded.fell_back and content_type.charset:
            self._note(
                DiagnosticKind.charset_fallback,
                path,
                f"charset {content_type.charset!r} unusable, decoded as {decoded.charset}",
            )
        self._bodies.append(
            ClassifiedEntry(
                content_type=content_type.with_param("charset", decoded.charset),
                payload=decoded.text,
                node=leaf,
            )
        )

    def _note_defects(self, node: MimeNode, path: str) -> None:
        for defect in node.defects:
            self._note(DiagnosticKind.framing_defect, path, defect)

    def _note(self, kind: DiagnosticKind, path: str, detail: str) -> None:
        self._diagnostics.append(Diagnostic(kind=kind, path=path, detail=detail))


def _resolved_type(leaf: MimeLeaf) -> ContentType:
    content_type = leaf.content_type
    if content_type.malformed:
        raise HeaderMalformed(
            f"unusable Content-Type {leaf.headers.get('Content-Type')!r}, "
            f"read as {content_type.base_type}"
        )
    return content_type


def _is_inline_media(leaf: MimeLeaf, content_type: ContentType) -> bool:
    if leaf.disposed_as_attachment:
        return False
    return content_type.maintype not in _NON_MEDIA_MAINTYPES
