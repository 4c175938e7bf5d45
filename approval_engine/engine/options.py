"""
Filter-option loader.

Collects the values offered in the filter dropdowns: account names, project
names, reviewable objectives and contributor emails. The four loaders are
independent; one failing leaves its list empty.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

from approval_engine.config import Settings, get_settings
from approval_engine.domain.models import FilterOptions, ObjectiveOption, SchemaMap
from approval_engine.domain.roles import (
    ACCOUNT_OBJECT,
    OBJECTIVE_OBJECT,
    PROJECT_ACCOUNT_REL,
    PROJECT_OBJECT,
    LogicalRole,
)
from approval_engine.engine.fanout import gather_tolerant, run_sync
from approval_engine.engine.soql import read_path
from approval_engine.errors import ApprovalEngineError
from approval_engine.infrastructure.platform_client import PlatformClient, query_all
from approval_engine.utils.logging import get_logger

log = get_logger(__name__)

OPTION_MAX_PAGES = 5


def distinct_sorted(values: Iterable[Any]) -> List[str]:
    """Trimmed, non-empty, de-duplicated and sorted (case-insensitive)."""
    cleaned = {str(v).strip() for v in values if v is not None and str(v).strip()}
    return sorted(cleaned, key=str.lower)


class FilterOptionsLoader:
    """Load FilterOptions for a schema."""

    def __init__(
        self,
        client: PlatformClient,
        settings: Optional[Settings] = None,
        max_pages: int = OPTION_MAX_PAGES,
    ) -> None:
        self.client = client
        self.settings = settings or get_settings()
        self.max_pages = max_pages

    def _names(self, soql: str, path: str) -> List[str]:
        rows = query_all(self.client, soql, max_pages=self.max_pages)
        return distinct_sorted(read_path(row, path) for row in rows)

    def accounts(self) -> List[str]:
        try:
            names = self._names(
                f"SELECT {PROJECT_ACCOUNT_REL}.Name FROM {PROJECT_OBJECT} "
                f"WHERE Account__c != null",
                f"{PROJECT_ACCOUNT_REL}.Name",
            )
        except ApprovalEngineError as exc:
            log.warning("project account names unavailable", extra={"error": str(exc)})
            names = []
        if names:
            return names
        return self._names(f"SELECT Name FROM {ACCOUNT_OBJECT} ORDER BY Name", "Name")

    def projects(self) -> List[str]:
        return self._names(f"SELECT Name FROM {PROJECT_OBJECT} ORDER BY Name", "Name")

    def objectives(self, schema: SchemaMap) -> List[ObjectiveOption]:
        binding = schema.binding(LogicalRole.OBJECTIVE)
        if not schema.available or not binding.field or not binding.relationship_path:
            return []
        path = binding.relationship_path
        direct = binding.reference_to in (None, OBJECTIVE_OBJECT)
        id_path = binding.field if direct else f"{path}.Id"
        fields = list(dict.fromkeys([binding.field, id_path, f"{path}.Name"]))
        rows = query_all(
            self.client,
            f"SELECT {', '.join(fields)} FROM {schema.object_name} WHERE {binding.field} != null",
            max_pages=self.max_pages,
        )
        seen: Dict[str, str] = {}
        for row in rows:
            objective_id = read_path(row, id_path)
            name = read_path(row, f"{path}.Name")
            if objective_id and name and objective_id not in seen:
                seen[objective_id] = str(name).strip()
        options = [ObjectiveOption(id=k, name=v) for k, v in seen.items() if v]
        return sorted(options, key=lambda o: o.name.lower())

    def emails(self, schema: SchemaMap) -> List[str]:
        path = schema.path(LogicalRole.CONTRIBUTOR)
        if not schema.available or not path:
            return []
        return self._names(
            f"SELECT {path}.Email FROM {schema.object_name} WHERE {path}.Email != null",
            f"{path}.Email",
        )

    async def load_async(self, schema: SchemaMap) -> FilterOptions:
        calls: Dict[str, Callable[[], Any]] = {
            "accounts": self.accounts,
            "projects": self.projects,
            "objectives": lambda: self.objectives(schema),
            "emails": lambda: self.emails(schema),
        }
        outcomes = await gather_tolerant(calls, concurrency=4)
        values: Dict[str, Any] = {}
        for key, (value, error) in outcomes.items():
            if error is not None:
                log.warning("filter options loader failed", extra={"loader": key, "error": str(error)})
            values[key] = value or []
        return FilterOptions(**values)

    def load(self, schema: SchemaMap) -> FilterOptions:
        return run_sync(lambda: self.load_async(schema), "load")


__all__ = ["FilterOptionsLoader", "distinct_sorted", "OPTION_MAX_PAGES"]
