from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from emlconv.core.config import Settings, get_settings
from emlconv.core.metrics import observe_classification
from emlconv.services.attachments import ExtractedAttachment, extract_attachments
from emlconv.services.mime.body import select_body
from emlconv.services.mime.dump import dump_structure
from emlconv.services.mime.parser import parse_message
from emlconv.services.mime.types import ClassifiedEntry, Diagnostic, MimeNode, ParserOptions
from emlconv.services.mime.walker import Classification, classify
from emlconv.services.render.html import assemble_html
from emlconv.services.render.summary import MessageSummary, summarize_headers

logger = logging.getLogger("emlconv")


@dataclass(frozen=True)
class ResolvedMessage:
    root: MimeNode
    summary: MessageSummary
    classification: Classification
    body: ClassifiedEntry[str]


@dataclass(frozen=True)
class ConversionResult:
    html: str
    charset: str
    attachments: list[ExtractedAttachment]
    diagnostics: tuple[Diagnostic, ...]


def resolve_message(raw: bytes, *, options: ParserOptions | None = None) -> ResolvedMessage:
    options = options or ParserOptions()
    root = parse_message(raw, options=options)
    logger.info("Mime structure:\n%s", dump_structure(root))

    classification = classify(root, options=options)
    observe_classification(classification)
    for diagnostic in classification.diagnostics:
        logger.warning(
            json.dumps(
                {
                    "event": "mime.part.degraded",
                    "kind": diagnostic.kind.value,
                    "path": diagnostic.path,
                    "detail": diagnostic.detail,
                },
                separators=(",", ":"),
                sort_keys=True,
            )
        )

    body = select_body(classification.body_candidates, default_charset=options.default_charset)
    return ResolvedMessage(
        root=root,
        summary=summarize_headers(root, options=options),
        classification=classification,
        body=body,
    )


def convert_to_html(
    raw: bytes,
    *,
    settings: Settings | None = None,
    hide_headers: bool | None = None,
) -> ConversionResult:
    settings = settings or get_settings()
    options = ParserOptions.from_settings(settings)
    resolved = resolve_message(raw, options=options)
    if hide_headers is None:
        hide_headers = settings.HIDE_HEADERS

    body = resolved.body
    if not body.content_type.match("text/html"):
        logger.debug("No html body found, wrapping %s in html", body.content_type.base_type)

    document = assemble_html(
        body,
        resolved.classification.inline_media,
        summary=None if hide_headers else resolved.summary,
        sanitize=settings.SANITIZE_HTML,
    )
    attachments = extract_attachments(resolved.classification, options=options)

    logger.info(
        json.dumps(
            {
                "event": "mime.message.converted",
                "body_type": body.content_type.base_type,
                "charset": body.charset,
                "inline_media": len(resolved.classification.inline_media),
                "attachments": len(attachments),
                "diagnostics": len(resolved.classification.diagnostics),
            },
            separators=(",", ":"),
            sort_keys=True,
        )
    )
    return ConversionResult(
        html=document,
        charset=body.charset or options.default_charset,
        attachments=attachments,
        diagnostics=resolved.classification.diagnostics,
    )
