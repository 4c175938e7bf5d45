"""
Domain package for the approval review engine.

Exports the value types exchanged between the engine components and the
logical roles they are keyed by. Keep this package focused on data definitions
and validation concerns.
"""

from approval_engine.domain.models import (
    ApprovalRecord,
    CompiledPredicate,
    FieldBinding,
    FieldDescribe,
    FilterOptions,
    FilterSpec,
    ObjectDescribe,
    ObjectiveOption,
    PageResult,
    QueryCursor,
    SchemaMap,
    SummaryMetrics,
    UpdateOutcome,
)
from approval_engine.domain.roles import ROLE_SPECS, LogicalRole, match_field

__all__ = [
    "ApprovalRecord",
    "CompiledPredicate",
    "FieldBinding",
    "FieldDescribe",
    "FilterOptions",
    "FilterSpec",
    "ObjectDescribe",
    "ObjectiveOption",
    "PageResult",
    "QueryCursor",
    "SchemaMap",
    "SummaryMetrics",
    "UpdateOutcome",
    "LogicalRole",
    "ROLE_SPECS",
    "match_field",
]
