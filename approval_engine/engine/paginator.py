"""
Cursor paginator for the reviewable object.

The platform refuses OFFSET values above a fixed cap and returns at most one
response page (2000 rows) per call, handing out a continuation token for the
rest. A batch is assembled as follows:

- offset <= cap: `LIMIT batch OFFSET offset`, following tokens to fill it;
- offset > cap: read from the start in a total order up to `offset + batch`
  rows and drop the first `offset` in memory.

When a token is missing while rows are still expected, the next rows are read
with a keyset predicate on (sort value, Id). Rows are deduplicated by Id, and
the number of fetches is bounded.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from approval_engine.config import Settings, get_settings
from approval_engine.domain.models import PageResult, QueryCursor
from approval_engine.engine.soql import (
    ASC,
    SelectQuery,
    and_join,
    fetch_budget,
    keyset_predicate,
    order_by,
    read_path,
)
from approval_engine.infrastructure.platform_client import PlatformClient, QueryResponse
from approval_engine.utils.logging import get_logger

log = get_logger(__name__)

RESPONSE_PAGE_SIZE = 2000


class CursorPaginator:
    """
    Assemble bounded batches at arbitrary offsets.

    Parameters
    ----------
    client : PlatformClient
        Platform used for the count and row queries.
    settings : Settings, optional
        Offset cap and fetch budget.
    page_size : int
        Rows the platform returns per response page.
    """

    def __init__(
        self,
        client: PlatformClient,
        settings: Optional[Settings] = None,
        page_size: int = RESPONSE_PAGE_SIZE,
    ) -> None:
        self.client = client
        self.settings = settings or get_settings()
        self.page_size = page_size

    def count(self, query: SelectQuery) -> int:
        response = self.client.query(query.count())
        return int(response.get("totalSize") or 0)

    def fetch_page(
        self,
        query: SelectQuery,
        cursor: QueryCursor,
        sort_field: str = "Id",
        direction: str = ASC,
    ) -> PageResult:
        """
        Fetch the batch starting at `cursor.requested_offset`.

        `query` carries the object, select list and predicate; ordering, LIMIT
        and OFFSET are set here.
        """
        offset = cursor.requested_offset
        batch = cursor.batch_size
        total = self.count(query)
        if offset >= total:
            return PageResult(
                records=[],
                next_cursor=cursor.model_copy(update={"pages_fetched_this_batch": 0}),
                has_more=False,
                total=total,
            )

        ordered = query.with_(order=tuple(order_by(sort_field, direction)), limit=None, offset=None)
        within_cap = offset <= self.settings.offset_cap
        if within_cap:
            skip = 0
            expected = min(batch, total - offset)
            first = ordered.with_(limit=batch, offset=offset)
        else:
            skip = offset
            expected = min(offset + batch, total)
            first = ordered.with_(limit=offset + batch)

        budget = fetch_budget(
            0 if within_cap else offset, batch, self.page_size, self.settings.max_page_fetches
        )
        rows: Dict[str, Dict[str, Any]] = {}
        response = self.client.query(first.render())
        fetches = 1
        added = self._absorb(rows, response)

        while len(rows) < expected:
            if fetches >= budget:
                log.warning(
                    "page fetch budget exhausted",
                    extra={"offset": offset, "rows": len(rows), "budget": budget},
                )
                break
            token = response.get("nextRecordsUrl")
            if not response.get("done", True) and token:
                response = self.client.query_more(token)
            else:
                if not added or not rows:
                    break
                last = next(reversed(rows.values()))
                continuation = keyset_predicate(
                    sort_field, direction, read_path(last, sort_field), last["Id"]
                )
                follow = ordered.with_(
                    where=and_join(query.where, continuation),
                    limit=expected - len(rows),
                )
                log.debug("keyset continuation", extra={"after_id": last["Id"]})
                response = self.client.query(follow.render())
            fetches += 1
            added = self._absorb(rows, response)

        records = list(rows.values())[skip : skip + batch]
        returned = len(records)
        last_row = records[-1] if records else None
        next_cursor = QueryCursor(
            requested_offset=offset + returned,
            batch_size=batch,
            last_seen_id=last_row.get("Id") if last_row else cursor.last_seen_id,
            last_sort_value=read_path(last_row, sort_field) if last_row else cursor.last_sort_value,
            pages_fetched_this_batch=fetches,
        )
        log.info(
            "batch assembled",
            extra={
                "offset": offset,
                "returned": returned,
                "total": total,
                "fetches": fetches,
                "mode": "offset" if within_cap else "skip",
            },
        )
        return PageResult(
            records=records,
            next_cursor=next_cursor,
            has_more=offset + returned < total,
            total=total,
        )

    @staticmethod
    def _absorb(rows: Dict[str, Dict[str, Any]], response: QueryResponse) -> int:
        """Add new rows keyed by Id; returns how many were new."""
        added = 0
        batch: List[Dict[str, Any]] = response.get("records") or []
        for row in batch:
            row_id = row.get("Id")
            if row_id is None or row_id in rows:
                continue
            rows[row_id] = row
            added += 1
        return added


__all__ = ["CursorPaginator", "RESPONSE_PAGE_SIZE"]
