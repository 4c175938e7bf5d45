"""
Domain models for the approval review engine.

Defines the platform describe metadata, the discovered schema map, filter and
predicate values, the paging cursor, and the flattened/aggregated outputs. The
HTTP surface serializes these with camelCase aliases.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from approval_engine.domain.roles import LogicalRole
from approval_engine.utils.sanitize import sanitize_filter_field, sanitize_filter_value

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)
_FROZEN_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class FieldDescribe(BaseModel):
    """One field of an object describe response."""

    name: str
    type: str = "string"
    reference_to: List[str] = Field(default_factory=list)
    relationship_name: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore"
    )

    @property
    def is_reference(self) -> bool:
        return self.type == "reference"

    def references(self, object_name: str) -> bool:
        return self.is_reference and object_name in self.reference_to


class ObjectDescribe(BaseModel):
    """Describe response for an object type (fields only)."""

    name: str
    fields: List[FieldDescribe] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="ignore")

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def field(self, name: Optional[str]) -> Optional[FieldDescribe]:
        if not name:
            return None
        for candidate in self.fields:
            if candidate.name == name:
                return candidate
        return None


class FieldBinding(BaseModel):
    """
    Physical location of a logical role on the target object.

    `relationship_path` is the traversal used to read the related record in the
    same query; it is dotted when an intermediate join object sits in between.
    `reference_to` is the object type the bound lookup field points at.
    """

    field: Optional[str] = None
    relationship_path: Optional[str] = None
    reference_to: Optional[str] = None

    model_config = _FROZEN_CAMEL

    @property
    def bound(self) -> bool:
        return self.field is not None


UNBOUND = FieldBinding()


class SchemaMap(BaseModel):
    """Discovered mapping from logical roles to physical fields."""

    object_name: Optional[str] = None
    roles: Dict[LogicalRole, FieldBinding] = Field(default_factory=dict)

    model_config = _FROZEN_CAMEL

    @property
    def available(self) -> bool:
        return self.object_name is not None

    def binding(self, role: LogicalRole) -> FieldBinding:
        return self.roles.get(role, UNBOUND)

    def field(self, role: LogicalRole) -> Optional[str]:
        return self.binding(role).field

    def path(self, role: LogicalRole) -> Optional[str]:
        return self.binding(role).relationship_path


class FilterSpec(BaseModel):
    """A single active (logical field, value) filter with a sanitized value."""

    logical_field: str
    raw_value: str

    model_config = _FROZEN_CAMEL

    @classmethod
    def from_request(
        cls, field: Optional[str], value: Optional[str]
    ) -> Optional["FilterSpec"]:
        """Build a spec from untrusted input; None when either part is unusable."""
        clean_field = sanitize_filter_field(field)
        clean_value = sanitize_filter_value(value)
        if not clean_field or clean_value is None:
            return None
        return cls(logical_field=clean_field, raw_value=clean_value)


class CompiledPredicate(BaseModel):
    """Predicate clauses (AND-joined) produced by the filter compiler."""

    clauses: Tuple[str, ...] = ()
    truncated: bool = False
    matches_nothing: bool = False

    model_config = _FROZEN_CAMEL

    @property
    def where(self) -> Optional[str]:
        return " AND ".join(self.clauses) if self.clauses else None

    @property
    def empty(self) -> bool:
        return not self.clauses


class QueryCursor(BaseModel):
    """Request-scoped paging position."""

    requested_offset: int = Field(0, ge=0)
    batch_size: int = Field(5000, gt=0)
    last_seen_id: Optional[str] = None
    last_sort_value: Any = None
    pages_fetched_this_batch: int = 0

    model_config = _FROZEN_CAMEL


class PageResult(BaseModel):
    """Raw rows of one batch plus the continuation state."""

    records: List[Dict[str, Any]] = Field(default_factory=list)
    next_cursor: QueryCursor
    has_more: bool = False
    total: int = 0

    model_config = _CAMEL


class ApprovalRecord(BaseModel):
    """Flat view of one approval row."""

    id: Optional[str] = None
    transaction_id: Optional[str] = None
    contributor_id: Optional[str] = None
    contributor_name: str = ""
    email: str = ""
    objective_id: Optional[str] = None
    objective_name: str = ""
    project_name: str = ""
    account_name: str = ""
    transaction_date: Optional[str] = None
    weekending_date: Optional[str] = None
    self_reported_hours: float = 0.0
    self_reported_units: float = 0.0
    system_tracked_hours: float = 0.0
    system_tracked_units: float = 0.0
    variance_percent: float = 0.0
    pay_rate: float = 0.0
    total_payment: float = 0.0
    status: str = ""

    model_config = _FROZEN_CAMEL


class SummaryMetrics(BaseModel):
    """Dashboard totals; recomputed on every request."""

    total_pending_hours: float = 0.0
    total_hours: float = 0.0
    self_reported_time: float = 0.0
    system_tracked: float = 0.0
    total_system_tracked: float = 0.0
    total_payment: float = 0.0
    total_pending_units: float = 0.0
    failed_metrics: List[str] = Field(default_factory=list)

    model_config = _CAMEL


class ObjectiveOption(BaseModel):
    id: str
    name: str

    model_config = _FROZEN_CAMEL


class FilterOptions(BaseModel):
    accounts: List[str] = Field(default_factory=list)
    projects: List[str] = Field(default_factory=list)
    objectives: List[ObjectiveOption] = Field(default_factory=list)
    emails: List[str] = Field(default_factory=list)

    model_config = _CAMEL


class UpdateOutcome(BaseModel):
    """Per-batch result of an approve/reject update."""

    succeeded: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)

    model_config = _CAMEL


__all__ = [
    "FieldDescribe",
    "ObjectDescribe",
    "FieldBinding",
    "UNBOUND",
    "SchemaMap",
    "FilterSpec",
    "CompiledPredicate",
    "QueryCursor",
    "PageResult",
    "ApprovalRecord",
    "SummaryMetrics",
    "ObjectiveOption",
    "FilterOptions",
    "UpdateOutcome",
]
