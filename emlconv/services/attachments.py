from __future__ import annotations

import mimetypes
from dataclasses import dataclass

from emlconv.services.mime.decode import decode_transfer
from emlconv.services.mime.errors import DecodeFailed
from emlconv.services.mime.types import ContentType, MimeLeaf, ParserOptions
from emlconv.services.mime.walker import Classification
from emlconv.storage.base import AttachmentStore, StoredAttachment
from emlconv.storage.local import safe_filename

FALLBACK_EXTENSION = ".bin"


@dataclass(frozen=True)
class ExtractedAttachment:
    suggested_filename: str | None
    content_type: ContentType
    payload: bytes
    content_id: str | None
    decoded: bool


def extract_attachments(
    classification: Classification, *, options: ParserOptions | None = None
) -> list[ExtractedAttachment]:
    options = options or ParserOptions()
    return [_extract(leaf, options) for leaf in classification.attachments]


def _extract(leaf: MimeLeaf, options: ParserOptions) -> ExtractedAttachment:
    try:
        payload = decode_transfer(leaf, options=options)
        decoded = True
    except DecodeFailed:
        payload = leaf.raw_body
        decoded = False
    return ExtractedAttachment(
        suggested_filename=leaf.filename,
        content_type=leaf.content_type,
        payload=payload,
        content_id=leaf.content_id,
        decoded=decoded,
    )


def extension_for(content_type: ContentType) -> str:
    if content_type.malformed:
        return FALLBACK_EXTENSION
    return mimetypes.guess_extension(content_type.base_type, strict=False) or FALLBACK_EXTENSION


def attachment_filename(attachment: ExtractedAttachment, index: int) -> str:
    if attachment.suggested_filename and attachment.suggested_filename.strip():
        return safe_filename(attachment.suggested_filename)
    return f"nameless-{index}{extension_for(attachment.content_type)}"


def save_attachments(
    attachments: list[ExtractedAttachment], store: AttachmentStore
) -> list[StoredAttachment]:
    stored: list[StoredAttachment] = []
    for index, attachment in enumerate(attachments, start=1):
        stored.append(
            store.put_bytes(
                filename=attachment_filename(attachment, index),
                data=attachment.payload,
                content_type=attachment.content_type.base_type,
            )
        )
    return stored
