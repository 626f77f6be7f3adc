from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import orjson

from emlconv.core.config import get_settings
from emlconv.services.attachments import save_attachments
from emlconv.services.convert import ConversionResult, convert_to_html, resolve_message
from emlconv.services.mime.dump import dump_structure
from emlconv.services.mime.parser import parse_message
from emlconv.services.mime.types import ParserOptions
from emlconv.storage.local import LocalAttachmentStore


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="emlconv", description="Convert an .eml file to HTML.")
    parser.add_argument("input", type=Path, help="path of the .eml file")
    parser.add_argument("-o", "--output", type=Path, help="html output path (default: INPUT.html)")
    parser.add_argument("--hide-headers", action="store_true", default=None)
    parser.add_argument("--extract-attachments", action="store_true")
    parser.add_argument("--attachments-dir", type=Path)
    parser.add_argument("--dump-structure", action="store_true", help="print the part tree and exit")
    parser.add_argument("--json", action="store_true", help="print a json summary and exit")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    return parser


def _summary_json(raw: bytes, options: ParserOptions) -> bytes:
    resolved = resolve_message(raw, options=options)
    classification = resolved.classification
    payload = {
        "subject": resolved.summary.subject,
        "from": resolved.summary.sender,
        "to": resolved.summary.recipients,
        "date": resolved.summary.date,
        "body": {
            "content_type": resolved.body.content_type.base_type,
            "charset": resolved.body.charset,
            "length": len(resolved.body.payload),
        },
        "inline_media": {
            cid: entry.content_type.base_type for cid, entry in classification.inline_media.items()
        },
        "attachments": [
            {"filename": leaf.filename, "content_type": leaf.content_type.base_type}
            for leaf in classification.attachments
        ],
        "diagnostics": [
            {"kind": d.kind.value, "path": d.path, "detail": d.detail}
            for d in classification.diagnostics
        ],
    }
    return orjson.dumps(payload, option=orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2)


def _write_outputs(args: argparse.Namespace, result: ConversionResult) -> None:
    output = args.output or args.input.with_suffix(".html")
    output.write_bytes(result.html.encode(result.charset, errors="xmlcharrefreplace"))
    print(f"wrote {output}")

    if not args.extract_attachments:
        return
    attachments_dir = args.attachments_dir or args.input.with_name(
        f"{args.input.stem}-attachments"
    )
    store = LocalAttachmentStore(attachments_dir)
    for stored in save_attachments(result.attachments, store):
        print(f"wrote {stored.path} ({stored.size_bytes} bytes)")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()

    level = settings.LOG_LEVEL
    if args.verbose == 1:
        level = "INFO"
    elif args.verbose >= 2:
        level = "DEBUG"
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    try:
        raw = args.input.read_bytes()
    except OSError as e:
        print(f"error: cannot read {args.input}: {e}", file=sys.stderr)
        return 1

    options = ParserOptions.from_settings(settings)
    if args.dump_structure:
        print(dump_structure(parse_message(raw, options=options)))
        return 0
    if args.json:
        sys.stdout.buffer.write(_summary_json(raw, options) + b"\n")
        return 0

    result = convert_to_html(raw, settings=settings, hide_headers=args.hide_headers)
    _write_outputs(args, result)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
