"""
Process-wide cache of the discovered SchemaMap.

The map is computed lazily on first use and reused until it expires (when a
TTL is configured) or `invalidate()` is called. Concurrent first calls may both
run discovery; the last assignment wins and both results are equivalent.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Tuple

from approval_engine.domain.models import SchemaMap
from approval_engine.engine.abstract import SchemaDiscoverer
from approval_engine.utils.logging import get_logger

log = get_logger(__name__)


class SchemaRegistry:
    """
    Cached access to a SchemaDiscoverer.

    Parameters
    ----------
    discoverer : SchemaDiscoverer
        Source of the schema map.
    ttl_seconds : float
        Lifetime of a cached map; 0 or less keeps it until invalidated.
    clock : Callable[[], float]
        Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        discoverer: SchemaDiscoverer,
        ttl_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.discoverer = discoverer
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[Tuple[SchemaMap, float]] = None

    def _expired(self, stored_at: float) -> bool:
        return self.ttl_seconds > 0 and self._clock() - stored_at >= self.ttl_seconds

    def get(self) -> SchemaMap:
        entry = self._entry
        if entry is not None and not self._expired(entry[1]):
            return entry[0]
        return self.refresh()

    def refresh(self) -> SchemaMap:
        """Run discovery now and replace the cached map."""
        schema = self.discoverer.discover()
        self._entry = (schema, self._clock())
        log.debug("schema cache refreshed", extra={"object": schema.object_name})
        return schema

    def invalidate(self) -> None:
        self._entry = None

    @property
    def cached(self) -> Optional[SchemaMap]:
        return self._entry[0] if self._entry else None


__all__ = ["SchemaRegistry"]
