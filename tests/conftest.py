from __future__ import annotations

import pytest

from emlconv.core.config import get_settings


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch) -> None:
    # Settings are cached process-wide; every test starts from the environment it sets up.
    for name in ("DEFAULT_CHARSET", "MAX_MIME_DEPTH", "HIDE_HEADERS", "SANITIZE_HTML"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
