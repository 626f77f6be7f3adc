from __future__ import annotations

from pathlib import Path

import orjson
import pytest
from prometheus_client import REGISTRY
from pydantic import ValidationError

from emlconv.__main__ import main
from emlconv.core.config import Settings, get_settings
from emlconv.services.convert import convert_to_html, resolve_message
from emlconv.services.mime.types import ParserOptions
from tests.factories import multipart, part

MESSAGE = multipart(
    "mixed",
    [
        multipart(
            "related",
            [
                multipart(
                    "alternative",
                    [
                        part([("Content-Type", "text/plain")], "Hello [cid:img1]"),
                        part(
                            [("Content-Type", "text/html; charset=utf-8")],
                            '<p>Hello</p><img src="cid:img1">',
                        ),
                    ],
                    boundary="alt",
                ),
                part(
                    [
                        ("Content-Type", "image/png"),
                        ("Content-ID", "<img1>"),
                        ("Content-Transfer-Encoding", "base64"),
                    ],
                    "iVBORw0KGgo=",
                ),
            ],
            boundary="rel",
        ),
        part(
            [
                ("Content-Type", "application/pdf"),
                ("Content-Disposition", 'attachment; filename="report.pdf"'),
                ("Content-Transfer-Encoding", "base64"),
            ],
            "JVBERi0xLjQ=",
        ),
    ],
    boundary="mix",
    headers=[
        ("From", "Ann <ann@example.com>"),
        ("To", "bob@example.com"),
        ("Subject", "Quarterly report"),
    ],
)


def _sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_resolve_message() -> None:
    resolved = resolve_message(MESSAGE)
    assert resolved.body.payload == '<p>Hello</p><img src="cid:img1">'
    assert resolved.summary.subject == "Quarterly report"
    assert list(resolved.classification.inline_media) == ["<img1>"]
    assert [leaf.filename for leaf in resolved.classification.attachments] == ["report.pdf"]


def test_convert_embeds_inline_media_and_headers() -> None:
    result = convert_to_html(MESSAGE)
    assert "data:image/png;base64,iVBORw0KGgo=" in result.html
    assert "cid:img1" not in result.html
    assert "<title>Quarterly report</title>" in result.html
    assert "Ann &lt;ann@example.com&gt;" in result.html
    assert result.charset == "utf-8"
    assert [a.payload for a in result.attachments] == [b"%PDF-1.4"]
    assert result.diagnostics == ()


def test_convert_can_hide_headers() -> None:
    assert "<table" not in convert_to_html(MESSAGE, hide_headers=True).html


def test_hide_headers_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("HIDE_HEADERS", "true")
    get_settings.cache_clear()
    assert "<table" not in convert_to_html(MESSAGE).html
    assert "<table" in convert_to_html(MESSAGE, hide_headers=False).html


def test_plain_only_message_is_wrapped() -> None:
    raw = part([("Subject", "plain"), ("Content-Type", "text/plain")], "line one\nline two")
    result = convert_to_html(raw, hide_headers=True)
    assert "line&nbsp;one<br>line&nbsp;two" in result.html


def test_metrics_are_recorded() -> None:
    raw = part([("Content-Type", "text/plain; charset=bogus-8")], "hi")
    bodies = _sample("emlconv_parts_classified_total", {"bucket": "body"})
    fallbacks = _sample("emlconv_part_diagnostics_total", {"kind": "charset_fallback"})

    resolve_message(raw)

    assert _sample("emlconv_parts_classified_total", {"bucket": "body"}) == bodies + 1
    assert _sample("emlconv_part_diagnostics_total", {"kind": "charset_fallback"}) == fallbacks + 1


def test_degraded_parts_are_logged(caplog) -> None:
    raw = part([("Content-Type", "text/plain; charset=bogus-8")], "hi")
    with caplog.at_level("WARNING", logger="emlconv"):
        resolve_message(raw)
    events = [orjson.loads(r.getMessage()) for r in caplog.records if r.name == "emlconv"]
    assert events == [
        {
            "event": "mime.part.degraded",
            "kind": "charset_fallback",
            "path": "root",
            "detail": events[0]["detail"],
        }
    ]


def test_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("DEFAULT_CHARSET", " LATIN-1 ")
    monkeypatch.setenv("MAX_MIME_DEPTH", "4")
    settings = Settings()
    assert settings.DEFAULT_CHARSET == "latin-1"
    options = ParserOptions.from_settings(settings)
    assert options.max_depth == 4
    assert options.default_charset == "latin-1"


def test_log_level_is_upper_cased(monkeypatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", " debug ")
    assert Settings().LOG_LEVEL == "DEBUG"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("DEFAULT_CHARSET", "nope"),
        ("DEFAULT_CHARSET", "base64"),
        ("MAX_MIME_DEPTH", "0"),
        ("LOG_LEVEL", "verbose"),
    ],
)
def test_invalid_settings_are_rejected(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        Settings()


def test_cli_writes_html_and_attachments(tmp_path: Path) -> None:
    source = tmp_path / "msg.eml"
    source.write_bytes(MESSAGE)

    assert main([str(source), "--extract-attachments"]) == 0

    html = (tmp_path / "msg.html").read_text(encoding="utf-8")
    assert "data:image/png;base64," in html
    assert (tmp_path / "msg-attachments" / "report.pdf").read_bytes() == b"%PDF-1.4"


def test_cli_output_path(tmp_path: Path) -> None:
    source = tmp_path / "msg.eml"
    source.write_bytes(MESSAGE)
    target = tmp_path / "out" / "page.html"
    target.parent.mkdir()

    assert main([str(source), "-o", str(target), "--hide-headers"]) == 0
    assert "<table" not in target.read_text(encoding="utf-8")


def test_cli_json_summary(tmp_path: Path, capsys) -> None:
    source = tmp_path / "msg.eml"
    source.write_bytes(MESSAGE)

    assert main([str(source), "--json"]) == 0

    summary = orjson.loads(capsys.readouterr().out)
    assert summary["subject"] == "Quarterly report"
    assert summary["to"] == ["bob@example.com"]
    assert summary["body"]["content_type"] == "text/html"
    assert summary["inline_media"] == {"<img1>": "image/png"}
    assert summary["attachments"] == [{"content_type": "application/pdf", "filename": "report.pdf"}]
    assert summary["diagnostics"] == []


def test_cli_dump_structure(tmp_path: Path, capsys) -> None:
    source = tmp_path / "msg.eml"
    source.write_bytes(MESSAGE)

    assert main([str(source), "--dump-structure"]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[:3] == ["multipart/mixed", "  multipart/related", "    multipart/alternative"]


def test_cli_missing_input(tmp_path: Path, capsys) -> None:
    assert main([str(tmp_path / "missing.eml")]) == 1
    assert "cannot read" in capsys.readouterr().err
