"""
Error taxonomy for the approval review engine.

Every failure is scoped to the single request that triggered it. Callers decide
how each class degrades:

- ConfigurationError: target object or a required role is missing; reads return
  empty/zero results with a warning.
- ResolutionError: a hierarchical filter chain is broken; the predicate matches
  nothing.
- PlatformError: the remote platform rejected a call.
- TransientIOError: network failure or timeout after retries; retryable.
- RequestTimeoutError: the whole request exceeded its time budget; retryable.
- PartialAggregateError: a single aggregate query failed; its metric is zero.
"""

from __future__ import annotations

from typing import Optional


class ApprovalEngineError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(ApprovalEngineError):
    """The target object or one of its roles could not be resolved."""


class ResolutionError(ApprovalEngineError):
    """A multi-hop filter could not be resolved to a set of ids."""


class PlatformError(ApprovalEngineError):
    """The remote platform returned an error response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class ObjectNotFoundError(PlatformError):
    """The requested object type does not exist on the platform."""


class TransientIOError(ApprovalEngineError):
    """Network failure or timeout talking to the platform. Safe to retry."""

    retryable = True


class RequestTimeoutError(TransientIOError):
    """A request exceeded its overall time budget."""


class PartialAggregateError(ApprovalEngineError):
    """One aggregate query in a summary failed."""

    def __init__(self, metric: str, cause: BaseException) -> None:
        super().__init__(f"Aggregate '{metric}' failed: {cause}")
        self.metric = metric
        self.cause = cause


__all__ = [
    "ApprovalEngineError",
    "ConfigurationError",
    "ResolutionError",
    "PlatformError",
    "ObjectNotFoundError",
    "TransientIOError",
    "RequestTimeoutError",
    "PartialAggregateError",
]
