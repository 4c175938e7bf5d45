"""
REST client for the remote record platform.

Provides the four calls the engine needs (describe, query, query-more and a
batched update-by-id) behind the `PlatformClient` protocol, plus a
`requests`-based implementation. Transport failures and 5xx responses are retried
with tenacity and surface as `TransientIOError`; other error responses surface
as `PlatformError`.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Protocol, runtime_checkable

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from approval_engine.config import Settings, get_settings
from approval_engine.domain.models import ObjectDescribe
from approval_engine.errors import (
    ConfigurationError,
    ObjectNotFoundError,
    PlatformError,
    TransientIOError,
)
from approval_engine.utils.logging import get_logger

log = get_logger(__name__)

# Error codes the platform uses for an unknown object type.
_NOT_FOUND_CODES = frozenset({"NOT_FOUND", "INVALID_TYPE", "INVALID_TYPE_FOR_OPERATION"})
_TRANSIENT_EXCEPTIONS = (requests.ConnectionError, requests.Timeout)


class _ServerError(Exception):
    """A 5xx response; retried like a transport failure."""

    def __init__(self, response: requests.Response) -> None:
        super().__init__(f"HTTP {response.status_code}: {response.text[:200]}")
        self.response = response

QueryResponse = Dict[str, Any]


@runtime_checkable
class PlatformClient(Protocol):
    """
    Outbound interface to the remote platform.

    `query` and `query_more` return the raw response envelope:
    ``{"totalSize": int, "done": bool, "records": [...], "nextRecordsUrl": str?}``.
    """

    def describe(self, object_name: str) -> ObjectDescribe:
        ...

    def query(self, soql: str) -> QueryResponse:
        ...

    def query_more(self, next_records_url: str) -> QueryResponse:
        ...

    def update_records(
        self, object_name: str, records: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """
        Update records by Id, all-or-none disabled.

        Returns one result per input record: ``{"id", "success", "errors"}``.
        """
        ...


def iter_query_pages(
    client: PlatformClient, soql: str, max_pages: Optional[int] = None
) -> Iterator[QueryResponse]:
    """
    Yield the response pages of a query, following continuation tokens.

    Stops after `max_pages` pages when given, even if the platform reports more.
    """
    response = client.query(soql)
    pages = 1
    yield response
    while not response.get("done", True) and response.get("nextRecordsUrl"):
        if max_pages is not None and pages >= max_pages:
            log.warning(
                "query page budget exhausted",
                extra={"max_pages": max_pages, "soql_head": soql[:120]},
            )
            return
        response = client.query_more(response["nextRecordsUrl"])
        pages += 1
        yield response


def query_all(
    client: PlatformClient, soql: str, max_pages: Optional[int] = None
) -> List[Dict[str, Any]]:
    """Collect the records of every page of a query."""
    records: List[Dict[str, Any]] = []
    for page in iter_query_pages(client, soql, max_pages=max_pages):
        records.extend(page.get("records") or [])
    return records


class RestPlatformClient:
    """
    `PlatformClient` over the platform REST API using a `requests.Session`.

    The session is authenticated lazily: with the configured access token when
    one is set, otherwise with the OAuth password grant.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.session = session or requests.Session()
        self._instance_url: Optional[str] = self.settings.platform_instance_url.rstrip("/") or None
        self._access_token: Optional[str] = self.settings.platform_access_token
        self._retrying = Retrying(
            stop=stop_after_attempt(max(1, self.settings.retry_attempts)),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(_TRANSIENT_EXCEPTIONS + (_ServerError,)),
            reraise=True,
        )

    # ------------------------------------------------------------------ #
    # Session
    # ------------------------------------------------------------------ #

    def _has_password_grant(self) -> bool:
        s = self.settings
        return bool(s.platform_client_id and s.platform_username and s.platform_password)

    def authenticate(self) -> None:
        """Obtain an access token with the OAuth password grant."""
        s = self.settings
        if not self._has_password_grant():
            raise ConfigurationError(
                "No platform access token configured and password grant credentials are incomplete"
            )
        url = f"{s.platform_login_url.rstrip('/')}/services/oauth2/token"
        data = {
            "grant_type": "password",
            "client_id": s.platform_client_id,
            "client_secret": s.platform_client_secret or "",
            "username": s.platform_username,
            "password": f"{s.platform_password}{s.platform_security_token}",
        }
        response = self._send("POST", url, data=data)
        if response.status_code >= 400:
            raise PlatformError(
                f"Authentication failed: {response.text[:200]}",
                status_code=response.status_code,
                error_code="AUTH_FAILED",
            )
        payload = response.json()
        self._access_token = payload["access_token"]
        self._instance_url = payload.get("instance_url", self._instance_url or "").rstrip("/")
        log.info("platform session established", extra={"instance_url": self._instance_url})

    def _ensure_session(self) -> None:
        if not self._access_token:
            self.authenticate()
        if not self._instance_url:
            raise ConfigurationError("PLATFORM_INSTANCE_URL is not configured")

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def _attempt(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        response = self.session.request(method, url, **kwargs)
        if response.status_code >= 500:
            raise _ServerError(response)
        return response

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", self.settings.call_timeout_seconds)
        try:
            return self._retrying(self._attempt, method, url, **kwargs)
        except _TRANSIENT_EXCEPTIONS + (_ServerError,) as exc:
            raise TransientIOError(f"{method} {url} failed: {exc}") from exc

    def _request(
        self, method: str, path: str, *, refreshed: bool = False, **kwargs: Any
    ) -> Any:
        self._ensure_session()
        url = path if path.startswith("http") else f"{self._instance_url}{path}"
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
        }
        response = self._send(method, url, headers=headers, **kwargs)

        if response.status_code == 401 and not refreshed and self._has_password_grant():
            self._access_token = None
            return self._request(method, path, refreshed=True, **kwargs)
        if response.status_code >= 400:
            raise self._error_from(response)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise PlatformError(
                f"Malformed response from {method} {url}: {response.text[:200]}",
                status_code=response.status_code,
                error_code="MALFORMED_RESPONSE",
            ) from exc

    @staticmethod
    def _error_from(response: requests.Response) -> PlatformError:
        message = response.text[:500]
        error_code: Optional[str] = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, list) and body and isinstance(body[0], dict):
            message = body[0].get("message", message)
            error_code = body[0].get("errorCode")
        elif isinstance(body, dict):
            message = body.get("message", message)
            error_code = body.get("errorCode")

        if response.status_code == 404 or error_code in _NOT_FOUND_CODES:
            return ObjectNotFoundError(message, status_code=response.status_code, error_code=error_code)
        return PlatformError(message, status_code=response.status_code, error_code=error_code)

    # ------------------------------------------------------------------ #
    # PlatformClient
    # ------------------------------------------------------------------ #

    def describe(self, object_name: str) -> ObjectDescribe:
        payload = self._request(
            "GET", f"{self.settings.api_base_path}/sobjects/{object_name}/describe"
        )
        return ObjectDescribe.model_validate(
            {"name": payload.get("name", object_name), "fields": payload.get("fields", [])}
        )

    def query(self, soql: str) -> QueryResponse:
        log.debug("query", extra={"soql": soql})
        return self._request("GET", f"{self.settings.api_base_path}/query", params={"q": soql})

    def query_more(self, next_records_url: str) -> QueryResponse:
        return self._request("GET", next_records_url)

    def update_records(
        self, object_name: str, records: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        body = {
            "allOrNone": False,
            "records": [{"attributes": {"type": object_name}, **record} for record in records],
        }
        return self._request(
            "PATCH", f"{self.settings.api_base_path}/composite/sobjects", json=body
        ) or []


def get_platform_client(settings: Optional[Settings] = None) -> PlatformClient:
    """Create the default REST client from settings."""
    return RestPlatformClient(settings=settings)


__all__ = [
    "PlatformClient",
    "QueryResponse",
    "RestPlatformClient",
    "get_platform_client",
    "iter_query_pages",
    "query_all",
]
