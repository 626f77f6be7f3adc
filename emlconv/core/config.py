from __future__ import annotations

import codecs
import logging
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    VERSION: str = "0.1.0"
    LOG_LEVEL: str = "WARNING"

    # Charset used when a part declares none, an unknown one, or one that fails to decode.
    DEFAULT_CHARSET: str = "utf-8"
    MAX_MIME_DEPTH: int = 32

    # Leniency switches for malformed mail.
    MIME_IGNORE_MISSING_BOUNDARY: bool = True
    MIME_IGNORE_MISSING_END_BOUNDARY: bool = True
    MIME_STRICT_ADDRESS_PARSING: bool = False
    MIME_IGNORE_UNKNOWN_ENCODING: bool = True
    MIME_UUDECODE_IGNORE_MISSING_BEGIN_END: bool = True
    MIME_BASE64_IGNORE_ERRORS: bool = True

    SANITIZE_HTML: bool = False
    HIDE_HEADERS: bool = False

    @field_validator("MAX_MIME_DEPTH")
    @classmethod
    def _validate_max_depth(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MAX_MIME_DEPTH must be at least 1")
        return v

    @field_validator("DEFAULT_CHARSET")
    @classmethod
    def _validate_default_charset(cls, v: str) -> str:
        v = v.strip().lower()
        try:
            info = codecs.lookup(v)
        except LookupError as e:
            raise ValueError(f"DEFAULT_CHARSET is not a known codec: {v}") from e
        if not getattr(info, "_is_text_encoding", True):
            raise ValueError(f"DEFAULT_CHARSET is not a text encoding: {v}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL is not a logging level: {v}")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
