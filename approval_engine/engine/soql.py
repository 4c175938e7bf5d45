"""
Query text assembly for the platform query language.

Everything that turns values into query text lives here: literal rendering,
IN-list chunking, total ordering, keyset continuation predicates, and the
select list derived from a SchemaMap. Callers never concatenate user values
themselves.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from approval_engine.domain.models import SchemaMap
from approval_engine.domain.roles import (
    OBJECTIVE_OBJECT,
    OBJECTIVE_PROJECT_REL,
    PROJECT_ACCOUNT_REL,
    LogicalRole,
)
from approval_engine.utils.sanitize import quote

ASC = "ASC"
DESC = "DESC"

_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATETIME = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?)(Z|[+-]\d{2}:?\d{2})$"
)


def _datetime_literal(match: "re.Match[str]") -> str:
    stamp, offset = match.groups()
    if offset in ("Z", "+0000", "+00:00", "-0000", "-00:00"):
        return f"{stamp}Z"
    if ":" not in offset:
        offset = f"{offset[:3]}:{offset[3:]}"
    return f"{stamp}{offset}"


def render_literal(value: Any) -> str:
    """
    Render a Python value as a query literal.

    Date and datetime values (including ISO strings as returned by the
    platform) are rendered unquoted; other strings are quoted and escaped.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.isoformat(timespec="seconds") + "Z"
    if isinstance(value, date):
        return value.isoformat()
    text = str(value)
    if _DATE.match(text):
        return text
    match = _DATETIME.match(text)
    if match:
        return _datetime_literal(match)
    return quote(text)


def and_join(*clauses: Optional[str]) -> Optional[str]:
    """AND-join the non-empty clauses; None when nothing is left."""
    parts = [c for c in clauses if c]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return " AND ".join(f"({c})" if " OR " in c else c for c in parts)


def or_equals(field_name: str, values: Sequence[Any]) -> str:
    """`(f = a OR f = b)`, used for small fixed value sets like statuses."""
    inner = " OR ".join(f"{field_name} = {render_literal(v)}" for v in values)
    return f"({inner})"


def chunk_ids(ids: Sequence[str], chunk_size: int) -> List[List[str]]:
    return [list(ids[i : i + chunk_size]) for i in range(0, len(ids), chunk_size)]


def in_clause(
    field_name: str,
    ids: Sequence[str],
    chunk_size: int = 500,
    max_chunks: int = 100,
) -> Tuple[str, bool]:
    """
    Membership test over `ids`, split into OR-joined chunks.

    Returns the clause and whether ids beyond `max_chunks * chunk_size` were
    dropped. An empty id list yields a never-matching equality.
    """
    unique = list(dict.fromkeys(ids))
    if not unique:
        return f"{field_name} = null", False
    chunks = chunk_ids(unique, chunk_size)
    truncated = len(chunks) > max_chunks
    chunks = chunks[:max_chunks]
    parts = [
        f"{field_name} IN ({', '.join(render_literal(v) for v in chunk)})" for chunk in chunks
    ]
    if len(parts) == 1:
        return parts[0], truncated
    return f"({' OR '.join(parts)})", truncated


def order_by(sort_field: str, direction: str) -> List[str]:
    """Total ordering: sort key with explicit null placement, then Id."""
    direction = DESC if direction.upper() == DESC else ASC
    if sort_field == "Id":
        return [f"Id {direction}"]
    nulls = "NULLS LAST" if direction == DESC else "NULLS FIRST"
    return [f"{sort_field} {direction} {nulls}", f"Id {direction}"]


def keyset_predicate(
    sort_field: str, direction: str, last_value: Any, last_id: str
) -> str:
    """
    Rows strictly after (last_value, last_id) under `order_by(sort_field, direction)`.
    """
    desc = direction.upper() == DESC
    id_op = "<" if desc else ">"
    id_lit = render_literal(last_id)
    if sort_field == "Id":
        return f"Id {id_op} {id_lit}"

    if last_value is None:
        if desc:
            # Nulls come last: only the remaining nulls are left.
            return f"({sort_field} = null AND Id < {id_lit})"
        return f"(({sort_field} = null AND Id > {id_lit}) OR {sort_field} != null)"

    value_lit = render_literal(last_value)
    after = (
        f"{sort_field} {id_op} {value_lit} OR "
        f"({sort_field} = {value_lit} AND Id {id_op} {id_lit})"
    )
    if desc:
        return f"({after} OR {sort_field} = null)"
    return f"({after})"


@dataclass(frozen=True)
class SelectQuery:
    """A single-object select statement."""

    object_name: str
    fields: Tuple[str, ...] = ("Id",)
    where: Optional[str] = None
    order: Tuple[str, ...] = field(default_factory=tuple)
    limit: Optional[int] = None
    offset: Optional[int] = None

    def render(self) -> str:
        parts = [f"SELECT {', '.join(self.fields)} FROM {self.object_name}"]
        if self.where:
            parts.append(f"WHERE {self.where}")
        if self.order:
            parts.append(f"ORDER BY {', '.join(self.order)}")
        if self.limit is not None:
            parts.append(f"LIMIT {int(self.limit)}")
        if self.offset:
            parts.append(f"OFFSET {int(self.offset)}")
        return " ".join(parts)

    def with_(self, **changes: Any) -> "SelectQuery":
        return replace(self, **changes)

    def count(self) -> str:
        return count_query(self.object_name, self.where)


def count_query(object_name: str, where: Optional[str]) -> str:
    return f"SELECT COUNT() FROM {object_name}" + (f" WHERE {where}" if where else "")


def sum_query(object_name: str, field_name: str, where: Optional[str], alias: str = "total") -> str:
    soql = f"SELECT SUM({field_name}) {alias} FROM {object_name}"
    return soql + (f" WHERE {where}" if where else "")


def read_path(row: Optional[Dict[str, Any]], path: Optional[str]) -> Any:
    """
    Read a dotted path from a nested row.

    Some platforms return relationship values flattened under the dotted key
    itself; that key wins when present.
    """
    if row is None or not path:
        return None
    if path in row:
        return row[path]
    node: Any = row
    for part in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
        if node is None:
            return None
    return node


def select_fields(schema: SchemaMap) -> Tuple[str, ...]:
    """
    Columns needed to flatten a row of the target object.

    Only bound fields and discovered relationship paths are requested; a
    field that does not exist would fail the whole query.
    """
    fields: List[str] = ["Id"]

    def add(name: Optional[str]) -> None:
        if name and name not in fields:
            fields.append(name)

    add(schema.field(LogicalRole.TRANSACTION_ID))

    contributor = schema.binding(LogicalRole.CONTRIBUTOR)
    add(contributor.field)
    if contributor.relationship_path:
        add(f"{contributor.relationship_path}.Name")
        add(f"{contributor.relationship_path}.Email")

    objective = schema.binding(LogicalRole.OBJECTIVE)
    add(objective.field)
    if objective.relationship_path:
        path = objective.relationship_path
        if objective.reference_to != OBJECTIVE_OBJECT:
            add(f"{path}.Id")
        add(f"{path}.Name")
        add(f"{path}.{OBJECTIVE_PROJECT_REL}.Name")
        add(f"{path}.{OBJECTIVE_PROJECT_REL}.{PROJECT_ACCOUNT_REL}.Name")

    for role in (
        LogicalRole.TRANSACTION_DATE,
        LogicalRole.WEEKENDING_DATE,
        LogicalRole.HOURS_SELF_REPORTED,
        LogicalRole.UNITS_SELF_REPORTED,
        LogicalRole.HOURS_SYSTEM_TRACKED,
        LogicalRole.UNITS_SYSTEM_TRACKED,
        LogicalRole.PAY_RATE,
        LogicalRole.TOTAL_PAYMENT,
        LogicalRole.STATUS,
        LogicalRole.VARIANCE,
    ):
        add(schema.field(role))
    add("CreatedDate")
    add("LastModifiedDate")
    return tuple(fields)


def fetch_budget(offset: int, batch_size: int, page_size: int, minimum: int) -> int:
    """Response pages needed for rows [0, offset + batch) plus slack."""
    needed = math.ceil((offset + batch_size) / max(1, page_size))
    return max(minimum, needed + 2)


def unique_preserving(values: Iterable[Any]) -> List[Any]:
    return list(dict.fromkeys(v for v in values if v is not None))


__all__ = [
    "ASC",
    "DESC",
    "SelectQuery",
    "and_join",
    "chunk_ids",
    "count_query",
    "fetch_budget",
    "in_clause",
    "keyset_predicate",
    "or_equals",
    "order_by",
    "read_path",
    "render_literal",
    "select_fields",
    "sum_query",
    "unique_preserving",
]
