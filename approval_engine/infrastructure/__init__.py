"""
Infrastructure package for the approval review engine.

Centralizes remote platform connectivity (authentication, retries, paging of
raw query responses). Keep this layer focused on I/O, decoupled from schema
discovery and query assembly.
"""

from approval_engine.infrastructure.platform_client import (
    PlatformClient,
    RestPlatformClient,
    get_platform_client,
    iter_query_pages,
    query_all,
)

__all__ = [
    "PlatformClient",
    "RestPlatformClient",
    "get_platform_client",
    "iter_query_pages",
    "query_all",
]
