"""
Aggregation summarizer for the review dashboard.

Six SUM queries share the caller's filter predicate; the pending ones AND the
pending-status clause onto it. They run concurrently, and a failing query only
zeroes its own metric.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from approval_engine.config import Settings, get_settings
from approval_engine.domain.models import SchemaMap, SummaryMetrics
from approval_engine.domain.roles import LogicalRole
from approval_engine.engine.fanout import gather_tolerant, run_sync
from approval_engine.engine.soql import and_join, or_equals, sum_query
from approval_engine.errors import PartialAggregateError
from approval_engine.infrastructure.platform_client import PlatformClient
from approval_engine.utils.logging import get_logger

log = get_logger(__name__)

_ALIAS = "total"


@dataclass(frozen=True)
class AggregateSpec:
    metric: str
    role: LogicalRole
    pending: bool


AGGREGATES: Tuple[AggregateSpec, ...] = (
    AggregateSpec("total_pending_hours", LogicalRole.HOURS_SELF_REPORTED, True),
    AggregateSpec("total_pending_units", LogicalRole.UNITS_SELF_REPORTED, True),
    AggregateSpec("total_payment", LogicalRole.TOTAL_PAYMENT, True),
    AggregateSpec("total_hours", LogicalRole.HOURS_SELF_REPORTED, False),
    AggregateSpec("total_system_tracked", LogicalRole.HOURS_SYSTEM_TRACKED, False),
    AggregateSpec("system_tracked", LogicalRole.HOURS_SYSTEM_TRACKED, True),
)


class Summarizer:
    """Compute SummaryMetrics for a predicate."""

    def __init__(self, client: PlatformClient, settings: Optional[Settings] = None) -> None:
        self.client = client
        self.settings = settings or get_settings()

    def _pending_clause(self, schema: SchemaMap) -> Optional[str]:
        status = schema.field(LogicalRole.STATUS)
        if not status or not self.settings.pending_statuses:
            return None
        return or_equals(status, self.settings.pending_statuses)

    def aggregate(self, schema: SchemaMap, spec: AggregateSpec, base_where: Optional[str]) -> float:
        """Run one SUM query; 0.0 when the role is unbound or nothing matches."""
        field = schema.field(spec.role)
        if not field or not schema.object_name:
            return 0.0
        where = and_join(base_where, self._pending_clause(schema) if spec.pending else None)
        response = self.client.query(sum_query(schema.object_name, field, where, alias=_ALIAS))
        records = response.get("records") or []
        if not records:
            return 0.0
        value = records[0].get(_ALIAS, records[0].get("expr0"))
        return float(value or 0.0)

    def _guarded(self, schema: SchemaMap, spec: AggregateSpec, base_where: Optional[str]) -> float:
        try:
            return self.aggregate(schema, spec, base_where)
        except Exception as exc:
            raise PartialAggregateError(spec.metric, exc) from exc

    async def summarize_async(
        self, schema: SchemaMap, base_where: Optional[str] = None
    ) -> SummaryMetrics:
        if not schema.available:
            return SummaryMetrics()

        calls = {
            spec.metric: (lambda spec=spec: self._guarded(schema, spec, base_where))
            for spec in AGGREGATES
        }
        outcomes = await gather_tolerant(
            calls, concurrency=self.settings.summary_workers, tolerate=(PartialAggregateError,)
        )

        values: Dict[str, float] = {}
        failed = []
        for spec in AGGREGATES:
            value, error = outcomes[spec.metric]
            if error is not None:
                log.warning(str(error), extra={"metric": spec.metric, "error": str(error.cause)})
                failed.append(spec.metric)
                value = 0.0
            values[spec.metric] = round(float(value or 0.0), 2)

        return SummaryMetrics(
            self_reported_time=values["total_pending_hours"],
            failed_metrics=failed,
            **values,
        )

    def summarize(self, schema: SchemaMap, base_where: Optional[str] = None) -> SummaryMetrics:
        """Synchronous wrapper around `summarize_async`."""
        return run_sync(lambda: self.summarize_async(schema, base_where), "summarize")


__all__ = ["AggregateSpec", "AGGREGATES", "Summarizer"]
