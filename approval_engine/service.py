"""
Approval review service.

Wires schema discovery, filter compilation, pagination, flattening, aggregation
and the option loader behind the operations the HTTP surface and the CLI
expose. Reads degrade to empty results with a warning when the reviewable
object is unavailable; writes report it as a ConfigurationError.

Usage:
    from approval_engine.service import build_service

    service = build_service()
    page = service.list_records(filter_field="accountName", filter_value="Acme")
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from approval_engine.config import Settings, get_settings
from approval_engine.domain.models import (
    ApprovalRecord,
    FilterOptions,
    FilterSpec,
    QueryCursor,
    SchemaMap,
    SummaryMetrics,
    UpdateOutcome,
)
from approval_engine.domain.roles import LogicalRole
from approval_engine.engine.discovery import PlatformSchemaDiscoverer
from approval_engine.engine.fanout import run_sync
from approval_engine.engine.filters import FilterCompiler
from approval_engine.engine.flattener import flatten, flatten_all
from approval_engine.engine.options import FilterOptionsLoader
from approval_engine.engine.paginator import CursorPaginator
from approval_engine.engine.registry import SchemaRegistry
from approval_engine.engine.soql import ASC, DESC, SelectQuery, select_fields
from approval_engine.engine.summarizer import Summarizer
from approval_engine.errors import ConfigurationError
from approval_engine.infrastructure.platform_client import PlatformClient, get_platform_client
from approval_engine.utils.logging import get_logger
from approval_engine.utils.profiler import profile_block
from approval_engine.utils.sanitize import is_sort_path, quote, sanitize_filter_value

log = get_logger(__name__)

UNAVAILABLE_WARNING = (
    "Approval object not found on the platform. Please configure the reviewable object."
)

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ListResult(BaseModel):
    records: List[ApprovalRecord] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False
    offset: int = 0
    batch_size: int = 0
    effective_offset: int = 0
    unique_count_in_batch: int = 0
    truncated: bool = False
    warning: Optional[str] = None

    model_config = _CAMEL


class SummaryResult(BaseModel):
    data: SummaryMetrics = Field(default_factory=SummaryMetrics)
    warning: Optional[str] = None

    model_config = _CAMEL


class FilterOptionsResult(BaseModel):
    filters: FilterOptions = Field(default_factory=FilterOptions)
    warning: Optional[str] = None

    model_config = _CAMEL


class ApprovalReviewService:
    """
    Entry point for the review operations.

    Parameters
    ----------
    client : PlatformClient
        Remote platform used by every component.
    settings : Settings, optional
        Defaults to the cached application settings.
    registry : SchemaRegistry, optional
        Schema cache; built around a PlatformSchemaDiscoverer when omitted.
    """

    def __init__(
        self,
        client: PlatformClient,
        settings: Optional[Settings] = None,
        registry: Optional[SchemaRegistry] = None,
    ) -> None:
        self.client = client
        self.settings = settings or get_settings()
        self.registry = registry or SchemaRegistry(
            PlatformSchemaDiscoverer(client, settings=self.settings),
            ttl_seconds=self.settings.schema_cache_ttl_seconds,
        )
        self.compiler = FilterCompiler(client, self.settings)
        self.paginator = CursorPaginator(client, self.settings)
        self.summarizer = Summarizer(client, self.settings)
        self.options = FilterOptionsLoader(client, self.settings)

    def schema(self) -> SchemaMap:
        return self.registry.get()

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def resolve_sort(
        self, schema: SchemaMap, sort_by: Optional[str], sort_order: Optional[str]
    ) -> Tuple[str, str]:
        """
        Physical sort key and direction.

        Accepts a logical role name, a field name or a dotted relationship
        path; anything else falls back to the transaction date.
        """
        direction = (sort_order or DESC).upper()
        if direction not in (ASC, DESC):
            direction = DESC

        fallback = schema.field(LogicalRole.TRANSACTION_DATE) or "CreatedDate"
        if not sort_by:
            return fallback, direction
        roles = {role.value: role for role in LogicalRole}
        if sort_by in roles:
            return schema.field(roles[sort_by]) or fallback, direction
        if is_sort_path(sort_by):
            return sort_by, direction
        log.warning("invalid sort key ignored", extra={"sort_by": sort_by})
        return fallback, direction

    def list_records(
        self,
        filter_field: Optional[str] = None,
        filter_value: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> ListResult:
        batch_size = max(1, int(limit or self.settings.batch_size))
        offset = max(0, int(offset or 0))
        schema = self.schema()
        if not schema.available:
            return ListResult(offset=offset, batch_size=batch_size, warning=UNAVAILABLE_WARNING)

        spec = FilterSpec.from_request(filter_field, filter_value)
        compiled = self.compiler.compile(spec, schema)
        where = compiled.where if not compiled.empty else self.compiler.default_predicate(schema)
        sort_field, direction = self.resolve_sort(schema, sort_by, sort_order)

        query = SelectQuery(
            object_name=schema.object_name,
            fields=select_fields(schema),
            where=where,
        )
        cursor = QueryCursor(requested_offset=offset, batch_size=batch_size)
        with profile_block("list-batch") as stats:
            page = self.paginator.fetch_page(query, cursor, sort_field=sort_field, direction=direction)
            records = flatten_all(page.records, schema)
        log.info(
            "list served",
            extra={
                **stats.as_log_fields(),
                "filter_field": spec.logical_field if spec else None,
                "returned": len(records),
                "total": page.total,
            },
        )

        return ListResult(
            records=records,
            total=page.total,
            has_more=page.has_more,
            offset=offset,
            batch_size=batch_size,
            effective_offset=page.next_cursor.requested_offset,
            unique_count_in_batch=len({r.id for r in records if r.id}),
            truncated=compiled.truncated,
        )

    async def summary_async(
        self, filter_field: Optional[str] = None, filter_value: Optional[str] = None
    ) -> SummaryResult:
        schema = self.schema()
        if not schema.available:
            return SummaryResult(warning=UNAVAILABLE_WARNING)
        spec = FilterSpec.from_request(filter_field, filter_value)
        compiled = self.compiler.compile(spec, schema)
        metrics = await self.summarizer.summarize_async(schema, compiled.where)
        return SummaryResult(data=metrics)

    def summary(
        self, filter_field: Optional[str] = None, filter_value: Optional[str] = None
    ) -> SummaryResult:
        return run_sync(lambda: self.summary_async(filter_field, filter_value), "summary")

    async def filter_options_async(self) -> FilterOptionsResult:
        schema = self.schema()
        options = await self.options.load_async(schema)
        warning = None if schema.available else UNAVAILABLE_WARNING
        return FilterOptionsResult(filters=options, warning=warning)

    def filter_options(self) -> FilterOptionsResult:
        return run_sync(self.filter_options_async, "filter_options")

    def get_record(self, transaction_id: str) -> Optional[ApprovalRecord]:
        """Look a record up by transaction id, then by record Id."""
        schema = self._require_schema()
        value = sanitize_filter_value(transaction_id)
        if value is None:
            return None

        keys = list(dict.fromkeys([schema.field(LogicalRole.TRANSACTION_ID) or "Id", "Id"]))
        for key in keys:
            query = SelectQuery(
                object_name=schema.object_name,
                fields=select_fields(schema),
                where=f"{key} = {quote(value)}",
                limit=1,
            )
            rows = self.client.query(query.render()).get("records") or []
            if rows:
                return flatten(rows[0], schema)
        return None

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def _require_schema(self) -> SchemaMap:
        schema = self.schema()
        if not schema.available:
            raise ConfigurationError(UNAVAILABLE_WARNING)
        return schema

    def _set_status(
        self, record_ids: Sequence[str], status: str, comment: Optional[str]
    ) -> UpdateOutcome:
        schema = self._require_schema()
        status_field = schema.field(LogicalRole.STATUS)
        if not status_field:
            raise ConfigurationError(f"No status field found on {schema.object_name}")

        ids = [i for i in (sanitize_filter_value(r) for r in record_ids) if i]
        if not ids:
            raise ValueError("Transaction IDs are required")

        changes: Dict[str, Any] = {status_field: status}
        comment_field = schema.field(LogicalRole.REVIEW_COMMENT)
        clean_comment = sanitize_filter_value(comment) if comment else None
        if comment_field and clean_comment:
            changes[comment_field] = clean_comment

        outcome = UpdateOutcome()
        size = max(1, self.settings.update_chunk_size)
        for start in range(0, len(ids), size):
            chunk = ids[start : start + size]
            results = self.client.update_records(
                schema.object_name, [{"Id": record_id, **changes} for record_id in chunk]
            )
            for result in results:
                if result.get("success"):
                    outcome.succeeded += 1
                else:
                    outcome.failed += 1
                    errors = result.get("errors") or []
                    message = errors[0].get("message") if errors else None
                    outcome.errors.append(message or "Unknown error")
        log.info(
            "status update applied",
            extra={"status": status, "succeeded": outcome.succeeded, "failed": outcome.failed},
        )
        return outcome

    def approve(self, record_ids: Sequence[str], comment: Optional[str] = None) -> UpdateOutcome:
        return self._set_status(record_ids, self.settings.approved_status, comment)

    def reject(self, record_ids: Sequence[str], reason: Optional[str] = None) -> UpdateOutcome:
        return self._set_status(record_ids, self.settings.rejected_status, reason)


def build_service(settings: Optional[Settings] = None) -> ApprovalReviewService:
    """Create a service over the REST platform client."""
    settings = settings or get_settings()
    client: PlatformClient = get_platform_client(settings)
    return ApprovalReviewService(client, settings=settings)


__all__ = [
    "ApprovalReviewService",
    "FilterOptionsResult",
    "ListResult",
    "SummaryResult",
    "UNAVAILABLE_WARNING",
    "build_service",
]
