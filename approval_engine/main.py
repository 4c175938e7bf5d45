from __future__ import annotations

import json
import sys
from typing import List, Optional

import typer

from approval_engine.config import get_settings
from approval_engine.errors import ApprovalEngineError
from approval_engine.reporter import (
    print_filter_options,
    print_records,
    print_schema,
    print_summary,
)
from approval_engine.service import ApprovalReviewService, build_service
from approval_engine.utils.logging import configure_logging

app = typer.Typer(help="Approval review engine CLI.")


def _service() -> ApprovalReviewService:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return build_service(settings)


def _emit_json(payload: dict) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"platform={settings.platform_instance_url or '<unset>'} api=v{settings.platform_api_version} | "
        f"batch={settings.batch_size} offset_cap={settings.offset_cap} "
        f"chunk={settings.id_chunk_size}x{settings.max_or_chunks} "
        f"candidates={','.join(settings.candidate_objects)}"
    )


@app.command()
def discover(
    as_json: bool = typer.Option(False, "--json", help="Print the schema map as JSON."),
) -> None:
    """
    Describe the platform and print the resolved schema map.
    """
    service = _service()
    schema = service.registry.refresh()
    if as_json:
        _emit_json(schema.model_dump(mode="json", by_alias=True))
        return
    print_schema(schema)


@app.command("list")
def list_records(
    filter_field: Optional[str] = typer.Option(None, "--filter-field", "-f", help="e.g. accountName, email, status."),
    filter_value: Optional[str] = typer.Option(None, "--filter-value", "-v"),
    offset: int = typer.Option(0, "--offset", "-o", min=0),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", min=1, help="Batch size (default from settings)."),
    sort_by: Optional[str] = typer.Option(None, "--sort-by"),
    sort_order: str = typer.Option("DESC", "--sort-order"),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """
    Fetch one batch of approval records.
    """
    result = _service().list_records(
        filter_field=filter_field,
        filter_value=filter_value,
        offset=offset,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    if as_json:
        _emit_json(result.model_dump(mode="json", by_alias=True, exclude_none=True))
        return
    print_records(result.records, total=result.total, has_more=result.has_more, warning=result.warning)
    if result.truncated:
        typer.echo("Warning: filter matched more ids than the predicate limit; results are truncated.", err=True)
    if result.has_more:
        typer.echo(f"Next offset: {result.effective_offset}")


@app.command()
def summary(
    filter_field: Optional[str] = typer.Option(None, "--filter-field", "-f"),
    filter_value: Optional[str] = typer.Option(None, "--filter-value", "-v"),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """
    Show the dashboard totals.
    """
    result = _service().summary(filter_field, filter_value)
    if as_json:
        _emit_json(result.model_dump(mode="json", by_alias=True, exclude_none=True))
        return
    print_summary(result.data, warning=result.warning)


@app.command()
def filters(as_json: bool = typer.Option(False, "--json")) -> None:
    """
    List the available filter values.
    """
    result = _service().filter_options()
    if as_json:
        _emit_json(result.model_dump(mode="json", by_alias=True, exclude_none=True))
        return
    if result.warning:
        typer.echo(result.warning, err=True)
    print_filter_options(result.filters)


@app.command()
def show(transaction_id: str = typer.Argument(..., help="Transaction id or record Id.")) -> None:
    """
    Print one record as JSON.
    """
    record = _service().get_record(transaction_id)
    if record is None:
        typer.echo(f"Record '{transaction_id}' not found.", err=True)
        raise typer.Exit(code=1)
    _emit_json(record.model_dump(mode="json", by_alias=True))


@app.command()
def approve(
    record_ids: List[str] = typer.Argument(..., help="Record Ids to approve."),
    comment: Optional[str] = typer.Option(None, "--comment", "-c"),
) -> None:
    """
    Mark records as approved.
    """
    outcome = _service().approve(record_ids, comment)
    _emit_json({"approved": outcome.succeeded, "failed": outcome.failed, "errors": outcome.errors})


@app.command()
def reject(
    record_ids: List[str] = typer.Argument(..., help="Record Ids to reject."),
    reason: Optional[str] = typer.Option(None, "--reason", "-r"),
) -> None:
    """
    Mark records as rejected.
    """
    outcome = _service().reject(record_ids, reason)
    _emit_json({"rejected": outcome.succeeded, "failed": outcome.failed, "errors": outcome.errors})


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
    except ApprovalEngineError as exc:
        typer.echo(f"Error: {exc}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
