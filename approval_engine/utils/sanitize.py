"""
Input sanitization for values that end up inside query predicates.

Filter values arrive from the browser and are embedded as string literals, so
they are stripped of markup-like content, bounded in length and escaped for the
query language. Field names are restricted to plain identifiers.
"""

from __future__ import annotations

import re
from typing import Optional

MAX_VALUE_LENGTH = 255

_IDENTIFIER = re.compile(r"^[A-Za-z0-9_]+$")
_SORT_PATH = re.compile(r"^[A-Za-z][A-Za-z0-9_]*(\.[A-Za-z][A-Za-z0-9_]*)*$")
_EVENT_HANDLER = re.compile(r"on\w+=", re.IGNORECASE)
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)


def escape_literal(value: str) -> str:
    """Escape a string for use inside a single-quoted query literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def quote(value: str) -> str:
    return f"'{escape_literal(value)}'"


def sanitize_filter_field(value: Optional[str]) -> str:
    """Return the trimmed field name, or '' if it is not a plain identifier."""
    if not value:
        return ""
    trimmed = str(value).strip()
    return trimmed if _IDENTIFIER.match(trimmed) else ""


def sanitize_filter_value(value: Optional[str]) -> Optional[str]:
    """
    Clean a user supplied filter value.

    Returns None when nothing usable is left (empty or quote-only input). The
    result is NOT escaped; escaping happens when the literal is rendered.
    """
    if value is None or not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed or trimmed in {"'", "''"}:
        return None

    cleaned = re.sub(r"[<>]", "", trimmed)
    cleaned = _JS_PROTOCOL.sub("", cleaned)
    cleaned = _EVENT_HANDLER.sub("", cleaned)
    cleaned = cleaned.replace("\0", "").strip()
    if len(cleaned) > MAX_VALUE_LENGTH:
        cleaned = cleaned[:MAX_VALUE_LENGTH]
    return cleaned or None


def is_sort_path(value: Optional[str]) -> bool:
    """True for identifiers and dotted relationship paths (`A__r.Name`)."""
    return bool(value) and bool(_SORT_PATH.match(value))


__all__ = [
    "MAX_VALUE_LENGTH",
    "escape_literal",
    "quote",
    "sanitize_filter_field",
    "sanitize_filter_value",
    "is_sort_path",
]
