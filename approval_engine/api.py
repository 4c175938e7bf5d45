"""
HTTP surface for the approval review workflow.

Exposes the review operations under `/api/approvals`. Every handler runs the
blocking service call on a worker thread bounded by the request timeout; a
request that overruns is answered with a retryable 504 and its worker is left
to finish on its own.
"""

from __future__ import annotations

import asyncio
from functools import lru_cache
from typing import Annotated, Any, Callable, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from approval_engine.errors import (
    ApprovalEngineError,
    ConfigurationError,
    PlatformError,
    RequestTimeoutError,
    TransientIOError,
)
from approval_engine.service import ApprovalReviewService, build_service
from approval_engine.utils.logging import get_logger

log = get_logger(__name__)

router = APIRouter(prefix="/api/approvals", tags=["Approvals"])


@lru_cache(maxsize=1)
def get_service() -> ApprovalReviewService:
    return build_service()


service_dep = Annotated[ApprovalReviewService, Depends(get_service)]


class ApproveRequest(BaseModel):
    transaction_ids: List[str] = Field(default_factory=list)
    comment: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RejectRequest(BaseModel):
    transaction_ids: List[str] = Field(default_factory=list)
    reason: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


async def _call(service: ApprovalReviewService, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    timeout = service.settings.request_timeout_seconds
    try:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args, **kwargs), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise RequestTimeoutError(f"Request timed out after {timeout:g}s") from exc


def _payload(model: BaseModel) -> dict:
    return {"success": True, **model.model_dump(mode="json", by_alias=True, exclude_none=True)}


@router.get("/list")
async def list_records(
    service: service_dep,
    filter_field: Annotated[Optional[str], Query(alias="filterField")] = None,
    filter_value: Annotated[Optional[str], Query(alias="filterValue")] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[Optional[int], Query(gt=0)] = None,
    sort_by: Annotated[Optional[str], Query(alias="sortBy")] = None,
    sort_order: Annotated[Optional[str], Query(alias="sortOrder")] = None,
):
    """Return one batch of approval records."""
    result = await _call(
        service,
        service.list_records,
        filter_field=filter_field,
        filter_value=filter_value,
        offset=offset,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return _payload(result)


@router.get("/summary")
async def summary(
    service: service_dep,
    filter_field: Annotated[Optional[str], Query(alias="filterField")] = None,
    filter_value: Annotated[Optional[str], Query(alias="filterValue")] = None,
):
    """Return dashboard totals for the current filter."""
    result = await _call(service, service.summary, filter_field, filter_value)
    return _payload(result)


@router.get("/filters")
async def filters(service: service_dep):
    result = await _call(service, service.filter_options)
    return _payload(result)


@router.get("/records/{transaction_id}")
async def get_record(transaction_id: str, service: service_dep):
    record = await _call(service, service.get_record, transaction_id)
    if record is None:
        return JSONResponse(
            status_code=404, content={"success": False, "error": "Record not found"}
        )
    return {"success": True, "record": record.model_dump(mode="json", by_alias=True)}


@router.post("/approve")
async def approve(body: ApproveRequest, service: service_dep):
    outcome = await _call(service, service.approve, body.transaction_ids, body.comment)
    return {
        "success": True,
        "approved": outcome.succeeded,
        "failed": outcome.failed,
        "errors": outcome.errors,
    }


@router.post("/reject")
async def reject(body: RejectRequest, service: service_dep):
    outcome = await _call(service, service.reject, body.transaction_ids, body.reason)
    return {
        "success": True,
        "rejected": outcome.succeeded,
        "failed": outcome.failed,
        "errors": outcome.errors,
    }


def _error(status_code: int, exc: Exception, retryable: bool = False) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": str(exc), "retryable": retryable},
    )


def install_error_handlers(app: FastAPI) -> None:
    """Map engine errors to HTTP responses."""

    @app.exception_handler(RequestTimeoutError)
    async def _timeout(request: Request, exc: RequestTimeoutError) -> JSONResponse:
        log.warning("request timed out", extra={"path": request.url.path})
        return _error(504, exc, retryable=True)

    @app.exception_handler(TransientIOError)
    async def _transient(request: Request, exc: TransientIOError) -> JSONResponse:
        log.warning("platform unreachable", extra={"path": request.url.path, "error": str(exc)})
        return _error(503, exc, retryable=True)

    @app.exception_handler(ConfigurationError)
    async def _configuration(request: Request, exc: ConfigurationError) -> JSONResponse:
        return _error(404, exc)

    @app.exception_handler(PlatformError)
    async def _platform(request: Request, exc: PlatformError) -> JSONResponse:
        log.error(
            "platform rejected request",
            extra={"path": request.url.path, "status_code": exc.status_code, "error_code": exc.error_code},
        )
        return _error(502, exc)

    @app.exception_handler(ApprovalEngineError)
    async def _engine(request: Request, exc: ApprovalEngineError) -> JSONResponse:
        log.error("request failed", extra={"path": request.url.path, "error": str(exc)})
        return _error(500, exc)

    @app.exception_handler(ValueError)
    async def _bad_request(request: Request, exc: ValueError) -> JSONResponse:
        return _error(400, exc)


def create_app() -> FastAPI:
    app = FastAPI(title="Approval Review API")
    app.include_router(router)
    install_error_handlers(app)
    return app


__all__ = ["ApproveRequest", "RejectRequest", "create_app", "get_service", "router"]
