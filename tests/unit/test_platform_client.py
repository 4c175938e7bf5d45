from __future__ import annotations

import json
from typing import Any, List

import pytest
import requests
from tenacity import wait_none

from approval_engine.errors import (
    ConfigurationError,
    ObjectNotFoundError,
    PlatformError,
    TransientIOError,
)
from approval_engine.infrastructure.platform_client import RestPlatformClient, query_all


class _Response:
    def __init__(self, status_code: int = 200, body: Any = None, raw: bytes = b"") -> None:
        self.status_code = status_code
        self.content = raw if body is None else json.dumps(body).encode()
        self.text = self.content.decode()

    def json(self) -> Any:
        if not self.content:
            raise ValueError("no body")
        return json.loads(self.content)


class _Session:
    """Replays queued responses (or raises queued exceptions) and records calls."""

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.calls: List[dict] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _Response:
        self.calls.append({"method": method, "url": url, **kwargs})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(test_settings, session: _Session, **overrides: Any) -> RestPlatformClient:
    settings = test_settings.model_copy(update=overrides) if overrides else test_settings
    client = RestPlatformClient(settings=settings, session=session)
    client._retrying = client._retrying.copy(wait=wait_none())
    return client


def test_describe_parses_fields(test_settings) -> None:
    session = _Session(
        _Response(
            200,
            {
                "name": "Contact",
                "fields": [
                    {"name": "Id", "type": "id", "referenceTo": []},
                    {"name": "AccountId", "type": "reference", "referenceTo": ["Account"], "relationshipName": "Account"},
                ],
            },
        )
    )

    describe = _client(test_settings, session).describe("Contact")

    assert describe.field_names == ["Id", "AccountId"]
    assert describe.field("AccountId").references("Account")
    call = session.calls[0]
    assert call["url"] == "https://example.my.platform.test/services/data/v59.0/sobjects/Contact/describe"
    assert call["headers"]["Authorization"] == "Bearer test-token"


def test_query_sends_soql_as_parameter(test_settings) -> None:
    session = _Session(_Response(200, {"totalSize": 0, "done": True, "records": []}))

    _client(test_settings, session).query("SELECT Id FROM Account")

    assert session.calls[0]["params"] == {"q": "SELECT Id FROM Account"}


def test_query_all_follows_tokens(test_settings) -> None:
    session = _Session(
        _Response(
            200,
            {
                "totalSize": 3,
                "done": False,
                "records": [{"Id": "1"}, {"Id": "2"}],
                "nextRecordsUrl": "/services/data/v59.0/query/01g-2",
            },
        ),
        _Response(200, {"totalSize": 3, "done": True, "records": [{"Id": "3"}]}),
    )

    rows = query_all(_client(test_settings, session), "SELECT Id FROM Account")

    assert [r["Id"] for r in rows] == ["1", "2", "3"]
    assert session.calls[1]["url"] == "https://example.my.platform.test/services/data/v59.0/query/01g-2"


def test_query_all_respects_page_budget(test_settings) -> None:
    page = {"totalSize": 9, "done": False, "records": [{"Id": "1"}], "nextRecordsUrl": "/next"}
    session = _Session(_Response(200, page), _Response(200, page))

    rows = query_all(_client(test_settings, session), "SELECT Id FROM Account", max_pages=2)

    assert len(rows) == 2
    assert len(session.calls) == 2


@pytest.mark.parametrize(
    ("status", "body", "expected"),
    [
        (404, [{"message": "The requested resource does not exist", "errorCode": "NOT_FOUND"}], ObjectNotFoundError),
        (400, [{"message": "sObject type 'X' is not supported", "errorCode": "INVALID_TYPE"}], ObjectNotFoundError),
        (400, [{"message": "unexpected token", "errorCode": "MALFORMED_QUERY"}], PlatformError),
    ],
)
def test_error_responses_are_mapped(test_settings, status, body, expected) -> None:
    session = _Session(_Response(status, body))

    with pytest.raises(expected) as info:
        _client(test_settings, session).query("SELECT Id FROM X")

    assert info.value.status_code == status
    if body:
        assert str(info.value) == body[0]["message"]
        assert info.value.error_code == body[0]["errorCode"]


def test_transport_failures_are_retried(test_settings) -> None:
    session = _Session(
        requests.ConnectionError("reset"),
        _Response(200, {"totalSize": 0, "done": True, "records": []}),
    )

    response = _client(test_settings, session, retry_attempts=2).query("SELECT Id FROM Account")

    assert response["done"] is True
    assert len(session.calls) == 2


def test_exhausted_retries_raise_transient_error(test_settings) -> None:
    session = _Session(requests.Timeout("slow"), requests.Timeout("slow"))

    with pytest.raises(TransientIOError):
        _client(test_settings, session, retry_attempts=2).query("SELECT Id FROM Account")
    assert len(session.calls) == 2


def test_server_errors_are_retried(test_settings) -> None:
    session = _Session(
        _Response(503, raw=b"Service Unavailable"),
        _Response(200, {"totalSize": 0, "done": True, "records": []}),
    )

    response = _client(test_settings, session, retry_attempts=2).query("SELECT Id FROM Account")

    assert response["done"] is True
    assert len(session.calls) == 2


@pytest.mark.parametrize("status", [500, 502, 503])
def test_persistent_server_errors_are_transient(test_settings, status) -> None:
    session = _Session(_Response(status, raw=b"upstream down"), _Response(status, raw=b"upstream down"))

    with pytest.raises(TransientIOError) as info:
        _client(test_settings, session, retry_attempts=2).describe("Contact")

    assert str(status) in str(info.value)
    assert len(session.calls) == 2


def test_non_json_success_body_is_a_platform_error(test_settings) -> None:
    session = _Session(_Response(200, raw=b"<html>maintenance</html>"))

    with pytest.raises(PlatformError) as info:
        _client(test_settings, session).query("SELECT Id FROM Account")

    assert info.value.error_code == "MALFORMED_RESPONSE"


def test_password_grant_and_reauthentication(test_settings) -> None:
    token = {"access_token": "fresh", "instance_url": "https://org.platform.test"}
    session = _Session(
        _Response(200, token),
        _Response(401, [{"message": "Session expired", "errorCode": "INVALID_SESSION_ID"}]),
        _Response(200, token),
        _Response(200, {"totalSize": 0, "done": True, "records": []}),
    )
    client = _client(
        test_settings,
        session,
        platform_access_token=None,
        platform_client_id="cid",
        platform_username="reviewer@example.com",
        platform_password="secret",
        platform_security_token="TOKEN",
    )

    client.query("SELECT Id FROM Account")

    login = session.calls[0]
    assert login["url"] == "https://login.salesforce.com/services/oauth2/token"
    assert login["data"]["password"] == "secretTOKEN"
    assert session.calls[3]["url"].startswith("https://org.platform.test/services/data/v59.0/query")
    assert session.calls[3]["headers"]["Authorization"] == "Bearer fresh"


def test_missing_credentials_is_a_configuration_error(test_settings) -> None:
    client = _client(test_settings, _Session(), platform_access_token=None)
    with pytest.raises(ConfigurationError):
        client.query("SELECT Id FROM Account")


def test_update_records_uses_composite_patch(test_settings) -> None:
    results = [{"id": "a04", "success": True, "errors": []}]
    session = _Session(_Response(200, results))

    out = _client(test_settings, session).update_records("Obj__c", [{"Id": "a04", "Status__c": "PM Approved"}])

    assert out == results
    call = session.calls[0]
    assert call["method"] == "PATCH"
    assert call["url"].endswith("/services/data/v59.0/composite/sobjects")
    assert call["json"]["allOrNone"] is False
    assert call["json"]["records"][0] == {"attributes": {"type": "Obj__c"}, "Id": "a04", "Status__c": "PM Approved"}
