"""
Utilities package for the approval review engine.

Exports shared helpers for logging, profiling, and input sanitization.
Keep this package lightweight and free of domain-specific logic.
"""

from approval_engine.utils.logging import configure_logging, get_logger
from approval_engine.utils.profiler import ProfileStats, profile_block
from approval_engine.utils.sanitize import (
    escape_literal,
    is_sort_path,
    quote,
    sanitize_filter_field,
    sanitize_filter_value,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
    "escape_literal",
    "is_sort_path",
    "quote",
    "sanitize_filter_field",
    "sanitize_filter_value",
]
