from __future__ import annotations

import pytest

from approval_engine.domain.models import FieldBinding, FilterSpec, SchemaMap
from approval_engine.domain.roles import ACCOUNT_OBJECT, OBJECTIVE_OBJECT, PROJECT_OBJECT, LogicalRole
from approval_engine.engine.filters import NEVER, FilterCompiler
from approval_engine.errors import ResolutionError
from scripts.generate_data import TRANSACTION_OBJECT


def _spec(field: str, value: str) -> FilterSpec:
    return FilterSpec(logical_field=field, raw_value=value)


def _matching(platform, where: str):
    soql = f"SELECT Id, Project_Objective__r.Project__r.Account__r.Name FROM {TRANSACTION_OBJECT} WHERE {where}"
    return platform.query(soql)["records"]


def test_no_filter_compiles_to_empty_predicate(flat_platform, flat_schema, test_settings) -> None:
    compiled = FilterCompiler(flat_platform, test_settings).compile(None, flat_schema)
    assert compiled.empty
    assert compiled.where is None


@pytest.mark.parametrize(
    ("field", "value", "expected"),
    [
        ("transactionId", "TX-000001", "Transaction_ID__c = 'TX-000001'"),
        ("contributorName", "Contributor 001", "Contact__r.Name = 'Contributor 001'"),
        ("email", "a@example.com", "Contact__r.Email = 'a@example.com'"),
        ("objectiveName", "Objective 01", "Project_Objective__r.Name = 'Objective 01'"),
        ("projectObjectiveName", "Objective 01", "Project_Objective__r.Name = 'Objective 01'"),
        ("status", "PM Review", "Status__c = 'PM Review'"),
    ],
)
def test_direct_filters(flat_platform, flat_schema, test_settings, field, value, expected) -> None:
    compiled = FilterCompiler(flat_platform, test_settings).compile(_spec(field, value), flat_schema)
    assert compiled.clauses == (expected,)
    assert not compiled.matches_nothing


def test_direct_filter_values_are_escaped(flat_platform, flat_schema, test_settings) -> None:
    spec = FilterSpec.from_request("contributorName", "O'Brien \\ Co")
    compiled = FilterCompiler(flat_platform, test_settings).compile(spec, flat_schema)
    assert compiled.where == "Contact__r.Name = 'O\\'Brien \\\\ Co'"


def test_text_contributor_field_is_filtered_by_name(flat_platform, test_settings) -> None:
    schema = SchemaMap(
        object_name=TRANSACTION_OBJECT,
        roles={LogicalRole.CONTRIBUTOR: FieldBinding(field="Contributor_Name__c")},
    )
    compiled = FilterCompiler(flat_platform, test_settings).compile(_spec("contributorName", "Ada"), schema)
    assert compiled.clauses == ("Contributor_Name__c = 'Ada'",)


def test_unknown_filter_field_is_ignored(flat_platform, flat_schema, test_settings) -> None:
    compiled = FilterCompiler(flat_platform, test_settings).compile(_spec("favouriteColour", "blue"), flat_schema)
    assert compiled.empty
    assert flat_platform.queries == []


def test_unbound_filter_field_matches_nothing(flat_platform, test_settings) -> None:
    schema = SchemaMap(object_name=TRANSACTION_OBJECT)
    compiled = FilterCompiler(flat_platform, test_settings).compile(_spec("email", "x@example.com"), schema)
    assert compiled.matches_nothing
    assert compiled.where == NEVER


def test_account_filter_selects_only_that_account(flat_platform, flat_schema, test_settings) -> None:
    compiled = FilterCompiler(flat_platform, test_settings).compile(_spec("accountName", "Account 00"), flat_schema)

    assert compiled.where.startswith("Project_Objective__c IN (")
    rows = _matching(flat_platform, compiled.where)
    assert rows
    assert {r["Project_Objective__r"]["Project__r"]["Account__r"]["Name"] for r in rows} == {"Account 00"}


def test_project_filter_stops_at_objective_level(flat_platform, flat_schema, test_settings) -> None:
    compiler = FilterCompiler(flat_platform, test_settings)
    compiled = compiler.compile(_spec("projectName", "Project 00"), flat_schema)

    project_id = flat_platform.tables[PROJECT_OBJECT][0]["Id"]
    objective_ids = [o["Id"] for o in flat_platform.tables[OBJECTIVE_OBJECT] if o["Project__c"] == project_id]
    assert compiled.where == "Project_Objective__c IN ({})".format(", ".join(f"'{i}'" for i in objective_ids))


def test_large_id_sets_are_chunked(make_platform, discover, test_settings) -> None:
    platform = make_platform(rows=10, accounts=1, projects_per_account=1, objectives_per_project=1200)
    schema = discover(platform)

    compiled = FilterCompiler(platform, test_settings).compile(_spec("accountName", "Account 00"), schema)

    assert compiled.where.count("Project_Objective__c IN (") == 3
    assert " OR " in compiled.where
    assert not compiled.truncated
    assert len(_matching(platform, compiled.where)) == 10


def test_id_sets_beyond_chunk_cap_are_truncated(make_platform, discover, test_settings) -> None:
    platform = make_platform(rows=10, accounts=1, projects_per_account=1, objectives_per_project=1200)
    settings = test_settings.model_copy(update={"max_or_chunks": 2})

    compiled = FilterCompiler(platform, settings).compile(_spec("accountName", "Account 00"), discover(platform))

    assert compiled.truncated
    assert compiled.where.count(" IN (") == 2


def test_unknown_account_matches_nothing(flat_platform, flat_schema, test_settings) -> None:
    compiled = FilterCompiler(flat_platform, test_settings).compile(_spec("accountName", "Nobody Inc"), flat_schema)

    assert compiled.matches_nothing
    assert compiled.where == "Project_Objective__c = null"
    count = flat_platform.query(f"SELECT COUNT() FROM {TRANSACTION_OBJECT} WHERE {compiled.where}")
    assert count["totalSize"] == 0


def test_failed_lookup_matches_nothing(make_platform, discover, test_settings) -> None:
    platform = make_platform(rows=10, fail_on=["FROM Project__c WHERE"])
    compiled = FilterCompiler(platform, test_settings).compile(_spec("accountName", "Account 00"), discover(platform))
    assert compiled.matches_nothing


def test_nested_account_filter_resolves_to_assignments(nested_platform, nested_schema, test_settings) -> None:
    compiled = FilterCompiler(nested_platform, test_settings).compile(_spec("accountName", "Account 01"), nested_schema)

    assert compiled.where.startswith("Contributor_Project__c IN (")
    rows = nested_platform.query(
        "SELECT Id, Contributor_Project__r.Project_Objective__r.Project__r.Account__r.Name "
        f"FROM {TRANSACTION_OBJECT} WHERE {compiled.where}"
    )["records"]
    names = {
        r["Contributor_Project__r"]["Project_Objective__r"]["Project__r"]["Account__r"]["Name"] for r in rows
    }
    assert names <= {"Account 01"}


def test_lookups_are_batched(make_platform, test_settings) -> None:
    platform = make_platform(rows=5, accounts=1, projects_per_account=5)
    settings = test_settings.model_copy(update={"lookup_batch_size": 2})

    ids = FilterCompiler(platform, settings).resolve_descendant_ids(ACCOUNT_OBJECT, "Account 00", OBJECTIVE_OBJECT)

    assert len(ids) == 10
    objective_lookups = [q for q in platform.queries if q.startswith(f"SELECT Id FROM {OBJECTIVE_OBJECT}")]
    assert len(objective_lookups) == 3


def test_resolution_refuses_upward_paths(flat_platform, test_settings) -> None:
    with pytest.raises(ResolutionError):
        FilterCompiler(flat_platform, test_settings).resolve_descendant_ids(OBJECTIVE_OBJECT, "x", ACCOUNT_OBJECT)


def test_default_predicate_selects_pending_statuses(flat_platform, flat_schema, test_settings) -> None:
    clause = FilterCompiler(flat_platform, test_settings).default_predicate(flat_schema)
    assert clause == "(Status__c = 'PM Review' OR Status__c = 'Contributor Approved')"
    assert FilterCompiler(flat_platform, test_settings).default_predicate(SchemaMap(object_name="X")) is None
