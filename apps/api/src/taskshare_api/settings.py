from __future__ import annotations

import os
from dataclasses import dataclass

from taskshare_api.validation import MAX_PAGE_SIZE


def _env_or_default(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    trimmed = value.strip()
    return trimmed if trimmed else default


def _parse_csv_env(name: str, default: str = "") -> list[str]:
    value = _env_or_default(name, default)
    return [item.strip() for item in value.split(",") if item.strip()]


def _int_env(name: str, default: int) -> int:
    raw = _env_or_default(name, str(default))
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from exc


@dataclass(frozen=True)
class Settings:
    state_file: str | None
    cors_allow_origins: list[str]
    cors_allow_origin_regex: str
    log_level: str
    default_page_size: int
    max_page_size: int

    @classmethod
    def from_env(cls) -> "Settings":
        max_page_size = _int_env("API_MAX_PAGE_SIZE", MAX_PAGE_SIZE)
        default_page_size = _int_env("API_DEFAULT_PAGE_SIZE", 10)
        if max_page_size < 1:
            raise ValueError("API_MAX_PAGE_SIZE must be at least 1")
        if not 1 <= default_page_size <= max_page_size:
            raise ValueError("API_DEFAULT_PAGE_SIZE must be between 1 and API_MAX_PAGE_SIZE")

        return cls(
            state_file=os.getenv("API_STATE_FILE"),
            cors_allow_origins=_parse_csv_env("API_CORS_ALLOW_ORIGINS", default="null"),
            cors_allow_origin_regex=_env_or_default(
                "API_CORS_ALLOW_ORIGIN_REGEX",
                r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
            ),
            log_level=_env_or_default("API_LOG_LEVEL", "INFO").upper(),
            default_page_size=default_page_size,
            max_page_size=max_page_size,
        )
