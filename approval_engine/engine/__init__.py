"""
Engine package for the approval review engine.

Re-exports the schema discovery, filter compilation, pagination, flattening
and aggregation components so callers can import from `approval_engine.engine`.
"""

from approval_engine.engine.abstract import (
    AbstractSchemaDiscoverer,
    SchemaDiscoverer,
    StaticSchemaDiscoverer,
)
from approval_engine.engine.discovery import PlatformSchemaDiscoverer
from approval_engine.engine.filters import FilterCompiler
from approval_engine.engine.flattener import compute_variance, flatten, flatten_all
from approval_engine.engine.options import FilterOptionsLoader
from approval_engine.engine.paginator import CursorPaginator
from approval_engine.engine.registry import SchemaRegistry
from approval_engine.engine.summarizer import Summarizer

__all__ = [
    # Abstracts
    "AbstractSchemaDiscoverer",
    "SchemaDiscoverer",
    "StaticSchemaDiscoverer",
    # Components
    "CursorPaginator",
    "FilterCompiler",
    "FilterOptionsLoader",
    "PlatformSchemaDiscoverer",
    "SchemaRegistry",
    "Summarizer",
    # Flattening
    "compute_variance",
    "flatten",
    "flatten_all",
]
