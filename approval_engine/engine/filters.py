"""
Filter compilation.

Turns a single user filter into predicate clauses over the reviewable object.
Direct filters compare one bound field or relationship path. Hierarchical
filters (account, project) name an ancestor several lookups away; they are
resolved to the id set of the object the objective binding points at by
walking the hierarchy one level at a time, then rendered as chunked IN lists.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from approval_engine.config import Settings, get_settings
from approval_engine.domain.models import CompiledPredicate, FilterSpec, SchemaMap
from approval_engine.domain.roles import (
    ACCOUNT_OBJECT,
    HIERARCHY,
    OBJECTIVE_OBJECT,
    PROJECT_OBJECT,
    LogicalRole,
)
from approval_engine.engine.soql import chunk_ids, in_clause, or_equals, render_literal
from approval_engine.errors import ApprovalEngineError, ResolutionError
from approval_engine.infrastructure.platform_client import PlatformClient, query_all
from approval_engine.utils.logging import get_logger
from approval_engine.utils.sanitize import quote

log = get_logger(__name__)

NEVER = "Id = null"

# Logical filter name -> ancestor object whose Name is matched.
HIERARCHICAL_FILTERS: Dict[str, str] = {
    "accountName": ACCOUNT_OBJECT,
    "projectName": PROJECT_OBJECT,
}

DIRECT_FILTERS = frozenset(
    {"transactionId", "contributorName", "email", "objectiveName", "projectObjectiveName", "status"}
)


def _never(field: Optional[str] = None) -> CompiledPredicate:
    clause = f"{field} = null" if field else NEVER
    return CompiledPredicate(clauses=(clause,), matches_nothing=True)


class FilterCompiler:
    """
    Compile FilterSpec values into CompiledPredicate values.

    Parameters
    ----------
    client : PlatformClient
        Used for the id lookups of hierarchical filters.
    settings : Settings, optional
        Chunk sizes, page budgets and workflow status values.
    """

    def __init__(self, client: PlatformClient, settings: Optional[Settings] = None) -> None:
        self.client = client
        self.settings = settings or get_settings()
        self._direct: Dict[str, Callable[[SchemaMap], Optional[str]]] = {
            "transactionId": lambda s: s.field(LogicalRole.TRANSACTION_ID),
            "contributorName": lambda s: self._related(s, LogicalRole.CONTRIBUTOR, "Name"),
            "email": lambda s: self._related(s, LogicalRole.CONTRIBUTOR, "Email", direct=False),
            "objectiveName": lambda s: self._related(s, LogicalRole.OBJECTIVE, "Name"),
            "projectObjectiveName": lambda s: self._related(s, LogicalRole.OBJECTIVE, "Name"),
            "status": lambda s: s.field(LogicalRole.STATUS),
        }

    @staticmethod
    def _related(
        schema: SchemaMap, role: LogicalRole, attribute: str, direct: bool = True
    ) -> Optional[str]:
        binding = schema.binding(role)
        if binding.relationship_path:
            return f"{binding.relationship_path}.{attribute}"
        # A plain text field can stand in for the related record's name.
        if direct and binding.field and binding.reference_to is None:
            return binding.field
        return None

    def compile(self, spec: Optional[FilterSpec], schema: SchemaMap) -> CompiledPredicate:
        if spec is None:
            return CompiledPredicate()

        name = spec.logical_field
        if name in self._direct:
            target = self._direct[name](schema)
            if target is None:
                log.warning("filter field not bound", extra={"filter_field": name})
                return _never()
            return CompiledPredicate(clauses=(f"{target} = {quote(spec.raw_value)}",))

        if name in HIERARCHICAL_FILTERS:
            return self._compile_hierarchical(HIERARCHICAL_FILTERS[name], spec.raw_value, schema)

        log.warning("unknown filter field ignored", extra={"filter_field": name})
        return CompiledPredicate()

    def default_predicate(self, schema: SchemaMap) -> Optional[str]:
        """Pending-review status clause, or None when no status field is bound."""
        status = schema.field(LogicalRole.STATUS)
        if not status or not self.settings.pending_statuses:
            return None
        return or_equals(status, self.settings.pending_statuses)

    # ------------------------------------------------------------------ #
    # Hierarchical resolution
    # ------------------------------------------------------------------ #

    def _compile_hierarchical(
        self, ancestor: str, value: str, schema: SchemaMap
    ) -> CompiledPredicate:
        binding = schema.binding(LogicalRole.OBJECTIVE)
        if not binding.field:
            log.warning("hierarchical filter without objective field", extra={"ancestor": ancestor})
            return _never()

        stop_object = binding.reference_to or OBJECTIVE_OBJECT
        try:
            ids = self.resolve_descendant_ids(ancestor, value, stop_object)
        except ApprovalEngineError as exc:
            log.warning(
                "hierarchical filter resolved to nothing",
                extra={"ancestor": ancestor, "stop_object": stop_object, "error": str(exc)},
            )
            return _never(binding.field)

        clause, truncated = in_clause(
            binding.field,
            ids,
            chunk_size=self.settings.id_chunk_size,
            max_chunks=self.settings.max_or_chunks,
        )
        if truncated:
            log.warning(
                "id list truncated at chunk cap",
                extra={
                    "ids": len(ids),
                    "kept": self.settings.id_chunk_size * self.settings.max_or_chunks,
                },
            )
        return CompiledPredicate(clauses=(clause,), truncated=truncated)

    def resolve_descendant_ids(self, ancestor: str, name: str, stop_object: str) -> List[str]:
        """
        Ids of `stop_object` records below the ancestor records called `name`.

        Raises
        ------
        ResolutionError
            If `stop_object` is not below `ancestor` or any level is empty.
        """
        objects = [level.object_name for level in HIERARCHY]
        if ancestor not in objects or stop_object not in objects:
            raise ResolutionError(f"No hierarchy path from {ancestor} to {stop_object}")
        start, stop = objects.index(ancestor), objects.index(stop_object)
        if stop < start:
            raise ResolutionError(f"{stop_object} is not below {ancestor}")

        rows = query_all(
            self.client,
            f"SELECT Id FROM {ancestor} WHERE Name = {quote(name)}",
            max_pages=self.settings.lookup_max_pages,
        )
        ids = [row["Id"] for row in rows if row.get("Id")]
        if not ids:
            raise ResolutionError(f"No {ancestor} named {name!r}")

        for level in HIERARCHY[start + 1 : stop + 1]:
            ids = self._child_ids(level.object_name, level.parent_field, ids)
            if not ids:
                raise ResolutionError(f"No {level.object_name} records below {ancestor} {name!r}")
        return ids

    def _child_ids(self, object_name: str, parent_field: str, parent_ids: List[str]) -> List[str]:
        found: Dict[str, None] = {}
        for chunk in chunk_ids(parent_ids, self.settings.lookup_batch_size):
            values = ", ".join(render_literal(v) for v in chunk)
            rows = query_all(
                self.client,
                f"SELECT Id FROM {object_name} WHERE {parent_field} IN ({values})",
                max_pages=self.settings.lookup_max_pages,
            )
            for row in rows:
                if row.get("Id"):
                    found[row["Id"]] = None
        log.debug("hierarchy level resolved", extra={"object": object_name, "ids": len(found)})
        return list(found)


__all__ = ["FilterCompiler", "HIERARCHICAL_FILTERS", "DIRECT_FILTERS", "NEVER"]
