from __future__ import annotations

import re

MAX_EMAIL_LENGTH = 254
MAX_PAGE_SIZE = 100

_EMAIL_RE = re.compile(r"^[^@]+@[^@]+$")


def normalize_email(value: str | None) -> str:
    if value is None:
        return ""
    return value.strip().lower()


def is_valid_email(normalized: str) -> bool:
    if not normalized or len(normalized) > MAX_EMAIL_LENGTH:
        return False
    return _EMAIL_RE.match(normalized) is not None


def validate_paging(page: int, page_size: int, *, max_page_size: int = MAX_PAGE_SIZE) -> str | None:
    """Return the first paging rule the arguments break, or None."""
    if page < 1:
        return "Page must be at least 1."
    if page_size < 1 or page_size > max_page_size:
        return f"PageSize must be between 1 and {max_page_size}."
    return None


def page_slice(page: int, page_size: int) -> slice:
    start = (page - 1) * page_size
    return slice(start, start + page_size)
