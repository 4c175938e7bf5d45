from __future__ import annotations

import pytest

from approval_engine.domain.models import SchemaMap
from approval_engine.engine.summarizer import AGGREGATES, Summarizer
from scripts.generate_data import TRANSACTION_OBJECT

PENDING = {"PM Review", "Contributor Approved"}


def _expected(platform, field: str, pending: bool) -> float:
    rows = platform.tables[TRANSACTION_OBJECT]
    if pending:
        rows = [r for r in rows if r["Status__c"] in PENDING]
    return round(sum(r[field] or 0.0 for r in rows), 2)


def test_summary_matches_row_sums(flat_platform, flat_schema, test_settings) -> None:
    metrics = Summarizer(flat_platform, test_settings).summarize(flat_schema)

    assert metrics.failed_metrics == []
    assert metrics.total_pending_hours == pytest.approx(_expected(flat_platform, "Self_Reported_Hours__c", True))
    assert metrics.total_hours == pytest.approx(_expected(flat_platform, "Self_Reported_Hours__c", False))
    assert metrics.total_payment == pytest.approx(_expected(flat_platform, "Payment_Amount__c", True))
    assert metrics.system_tracked == pytest.approx(_expected(flat_platform, "System_Tracked_Hours__c", True))
    assert metrics.total_system_tracked == pytest.approx(
        _expected(flat_platform, "System_Tracked_Hours__c", False)
    )
    assert metrics.self_reported_time == metrics.total_pending_hours


def test_one_query_per_aggregate(flat_platform, flat_schema, test_settings) -> None:
    Summarizer(flat_platform, test_settings).summarize(flat_schema, "Status__c = 'Rejected'")

    sums = [q for q in flat_platform.queries if "SUM(" in q]
    assert len(sums) == len(AGGREGATES)
    assert all("Status__c = 'Rejected'" in q for q in sums)
    pending = [q for q in sums if "PM Review" in q]
    assert len(pending) == sum(1 for spec in AGGREGATES if spec.pending)


def test_failing_aggregate_only_zeroes_its_metric(make_platform, discover, test_settings) -> None:
    platform = make_platform(rows=50, fail_on=["SUM(Payment_Amount__c)"])

    metrics = Summarizer(platform, test_settings).summarize(discover(platform))

    assert metrics.failed_metrics == ["total_payment"]
    assert metrics.total_payment == 0.0
    assert metrics.total_hours > 0


class _GarbledPayments:
    """Delegates to a platform but fails payment sums with a decode error."""

    def __init__(self, platform) -> None:
        self.platform = platform

    def query(self, soql: str):
        if "SUM(Payment_Amount__c)" in soql:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.platform.query(soql)


def test_non_engine_error_only_zeroes_its_metric(flat_platform, flat_schema, test_settings) -> None:
    metrics = Summarizer(_GarbledPayments(flat_platform), test_settings).summarize(flat_schema)

    assert metrics.failed_metrics == ["total_payment"]
    assert metrics.total_payment == 0.0
    assert metrics.total_hours == pytest.approx(_expected(flat_platform, "Self_Reported_Hours__c", False))


def test_unavailable_schema_yields_zeros(flat_platform, test_settings) -> None:
    metrics = Summarizer(flat_platform, test_settings).summarize(SchemaMap())
    assert metrics.total_hours == 0.0
    assert flat_platform.queries == []


def test_unbound_role_is_zero_without_query(flat_platform, test_settings) -> None:
    schema = SchemaMap(object_name=TRANSACTION_OBJECT)
    metrics = Summarizer(flat_platform, test_settings).summarize(schema)
    assert metrics.total_pending_units == 0.0
    assert flat_platform.queries == []


@pytest.mark.asyncio
async def test_sync_wrapper_refuses_running_loop(flat_platform, flat_schema, test_settings) -> None:
    summarizer = Summarizer(flat_platform, test_settings)
    with pytest.raises(RuntimeError):
        summarizer.summarize(flat_schema)

    metrics = await summarizer.summarize_async(flat_schema)
    assert metrics.total_hours > 0
