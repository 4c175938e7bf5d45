"""
Approval review engine - schema-adaptive query engine for approval workflows.

This package serves the approval-review workflow on top of a remote CRM-style
record platform whose approval object is configured by administrators:

- Runtime discovery of the physical fields behind fixed logical roles
- Filter compilation, including filters on ancestors several lookups away
- Pagination beyond the platform's offset cap
- Flattening of nested rows with derived productivity variance
- Parallel aggregate summaries and filter-option loading

Entry points are the Typer CLI (`approval_engine.main`) and the FastAPI router
(`approval_engine.api`).
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from approval_engine.config import Settings, get_settings
from approval_engine.domain.models import ApprovalRecord, SchemaMap, SummaryMetrics
from approval_engine.domain.roles import LogicalRole
from approval_engine.engine.abstract import SchemaDiscoverer
from approval_engine.engine.registry import SchemaRegistry
from approval_engine.service import ApprovalReviewService, build_service
from approval_engine.utils.logging import configure_logging, get_logger
from approval_engine.utils.profiler import ProfileStats, profile_block

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Service
    "ApprovalReviewService",
    "build_service",
    # Schema
    "LogicalRole",
    "SchemaDiscoverer",
    "SchemaMap",
    "SchemaRegistry",
    # Results
    "ApprovalRecord",
    "SummaryMetrics",
    # Logging
    "configure_logging",
    "get_logger",
    # Profiling
    "ProfileStats",
    "profile_block",
]
