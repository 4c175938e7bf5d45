"""
Record flattener and metric deriver.

Raw rows are nested: lookups come back as relationship objects, sometimes two
levels deep, and some platforms flatten them into dotted keys instead. Every
related value is read through one resolver over an ordered list of candidate
paths; when all of them miss, relationship-shaped properties of the row are
scanned for a node that looks right. Flattening never raises.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from approval_engine.domain.models import ApprovalRecord, FieldBinding, SchemaMap
from approval_engine.domain.roles import (
    OBJECTIVE_OBJECT,
    OBJECTIVE_PROJECT_REL,
    PROJECT_ACCOUNT_REL,
    LogicalRole,
)
from approval_engine.engine.soql import read_path

Row = Dict[str, Any]
NodePredicate = Callable[[Dict[str, Any]], bool]

CONTRIBUTOR_FALLBACK_PATHS: Sequence[str] = (
    "Contact__r",
    "Contributor__r",
    "Contributor_Project__r.Contributor__r",
    "Contributor_Project__r.Contact__r",
)

OBJECTIVE_FALLBACK_PATHS: Sequence[str] = (
    "Project_Objective__r",
    "Contributor_Project__r.Project_Objective__r",
    "Objective__r",
)


def _present(value: Any) -> bool:
    return value is not None and value != ""


def _candidates(discovered: Optional[str], fallbacks: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(p for p in (discovered, *fallbacks) if p))


def resolve_first(row: Row, paths: Iterable[str]) -> Any:
    """Value at the first path that yields something non-empty."""
    for path in paths:
        value = read_path(row, path)
        if _present(value):
            return value
    return None


def iter_relationship_nodes(row: Row) -> Iterator[Dict[str, Any]]:
    """Relationship-shaped properties of `row`, then one level below them."""
    top = [v for k, v in row.items() if k != "attributes" and isinstance(v, dict)]
    yield from top
    for node in top:
        for key, value in node.items():
            if key != "attributes" and isinstance(value, dict):
                yield value


def scan_for(row: Row, predicate: NodePredicate) -> Optional[Dict[str, Any]]:
    for node in iter_relationship_nodes(row):
        if predicate(node):
            return node
    return None


def _is_person(node: Dict[str, Any]) -> bool:
    return "Email" in node and "Name" in node


def _is_objective(node: Dict[str, Any]) -> bool:
    return OBJECTIVE_PROJECT_REL in node


def _number(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def compute_variance(self_reported: float, system_tracked: float) -> float:
    """
    Percent difference of self-reported over system-tracked time.

    No tracked time with some reported time counts as +100%.
    """
    if system_tracked > 0:
        variance = (self_reported - system_tracked) / system_tracked * 100
    elif self_reported > 0:
        variance = 100.0
    else:
        variance = 0.0
    return round(variance, 1)


def _is_text(binding: FieldBinding) -> bool:
    """A bound field that is not a lookup holds the related record's name."""
    return bool(binding.field) and binding.relationship_path is None and binding.reference_to is None


def _related(
    row: Row,
    paths: Sequence[str],
    attribute: str,
    fallback: Optional[Dict[str, Any]],
) -> Any:
    value = resolve_first(row, [f"{p}.{attribute}" for p in paths])
    if _present(value):
        return value
    if fallback is not None:
        return fallback.get(attribute)
    return None


def flatten(row: Row, schema: SchemaMap) -> ApprovalRecord:
    """Flatten one raw row into an ApprovalRecord."""

    def field_value(role: LogicalRole) -> Any:
        return read_path(row, schema.field(role))

    contributor = schema.binding(LogicalRole.CONTRIBUTOR)
    person_paths = _candidates(contributor.relationship_path, CONTRIBUTOR_FALLBACK_PATHS)
    person = None
    if resolve_first(row, [f"{p}.Name" for p in person_paths]) is None:
        person = scan_for(row, _is_person)

    objective = schema.binding(LogicalRole.OBJECTIVE)
    objective_paths = _candidates(objective.relationship_path, OBJECTIVE_FALLBACK_PATHS)
    objective_node = None
    if resolve_first(row, [f"{p}.Name" for p in objective_paths]) is None:
        objective_node = scan_for(row, _is_objective)

    project_paths = [f"{p}.{OBJECTIVE_PROJECT_REL}" for p in objective_paths]
    project_node = (objective_node or {}).get(OBJECTIVE_PROJECT_REL) or None
    account_paths = [f"{p}.{PROJECT_ACCOUNT_REL}" for p in project_paths]
    account_node = (project_node or {}).get(PROJECT_ACCOUNT_REL) or None

    objective_text = field_value(LogicalRole.OBJECTIVE) if _is_text(objective) else None
    if not _is_text(objective) and objective.reference_to in (None, OBJECTIVE_OBJECT):
        objective_id = field_value(LogicalRole.OBJECTIVE)
    else:
        objective_id = None
    if not _present(objective_id):
        objective_id = _related(row, objective_paths, "Id", objective_node)
    objective_name = objective_text if _present(objective_text) else _related(
        row, objective_paths, "Name", objective_node
    )

    contributor_text = field_value(LogicalRole.CONTRIBUTOR) if _is_text(contributor) else None
    contributor_id = None if _is_text(contributor) else field_value(LogicalRole.CONTRIBUTOR)
    if not _present(contributor_id):
        contributor_id = _related(row, person_paths, "Id", person)
    contributor_name = contributor_text if _present(contributor_text) else _related(
        row, person_paths, "Name", person
    )

    self_hours = _number(field_value(LogicalRole.HOURS_SELF_REPORTED))
    system_hours = _number(field_value(LogicalRole.HOURS_SYSTEM_TRACKED))
    pay_rate = _number(field_value(LogicalRole.PAY_RATE))

    precomputed = field_value(LogicalRole.VARIANCE)
    if _present(precomputed) and isinstance(precomputed, (int, float, str)):
        variance = round(_number(precomputed), 1)
    else:
        variance = compute_variance(self_hours, system_hours)

    payment = field_value(LogicalRole.TOTAL_PAYMENT)
    total_payment = _number(payment) if _present(payment) else round(self_hours * pay_rate, 2)

    return ApprovalRecord(
        id=row.get("Id"),
        transaction_id=_text(field_value(LogicalRole.TRANSACTION_ID) or row.get("Id")) or None,
        contributor_id=_text(contributor_id) or None,
        contributor_name=_text(contributor_name),
        email=_text(_related(row, person_paths, "Email", person)),
        objective_id=_text(objective_id) or None,
        objective_name=_text(objective_name),
        project_name=_text(_related(row, project_paths, "Name", project_node)),
        account_name=_text(_related(row, account_paths, "Name", account_node)),
        transaction_date=_text(field_value(LogicalRole.TRANSACTION_DATE)) or None,
        weekending_date=_text(field_value(LogicalRole.WEEKENDING_DATE)) or None,
        self_reported_hours=self_hours,
        self_reported_units=_number(field_value(LogicalRole.UNITS_SELF_REPORTED)),
        system_tracked_hours=system_hours,
        system_tracked_units=_number(field_value(LogicalRole.UNITS_SYSTEM_TRACKED)),
        variance_percent=variance,
        pay_rate=pay_rate,
        total_payment=total_payment,
        status=_text(field_value(LogicalRole.STATUS)),
    )


def flatten_all(rows: Iterable[Row], schema: SchemaMap) -> List[ApprovalRecord]:
    return [flatten(row, schema) for row in rows]


__all__ = [
    "CONTRIBUTOR_FALLBACK_PATHS",
    "OBJECTIVE_FALLBACK_PATHS",
    "compute_variance",
    "flatten",
    "flatten_all",
    "iter_relationship_nodes",
    "resolve_first",
    "scan_for",
]
