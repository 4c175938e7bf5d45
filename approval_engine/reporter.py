from __future__ import annotations

from typing import Iterable, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from approval_engine.domain.models import ApprovalRecord, FilterOptions, SchemaMap, SummaryMetrics


def _hours(value: float) -> str:
    return f"{value:,.2f}"


def _variance_style(value: float) -> str:
    if value > 20:
        return "bold red"
    if value < -20:
        return "yellow"
    return "green"


def print_schema(schema: SchemaMap, console: Optional[Console] = None) -> None:
    """Render the discovered role bindings."""
    console = console or Console()
    if not schema.available:
        console.print("[yellow]No reviewable object found on the platform.[/yellow]")
        return

    table = Table(title=f"Schema map: {schema.object_name}", box=box.ROUNDED)
    table.add_column("Role", style="cyan")
    table.add_column("Field")
    table.add_column("Relationship path")
    table.add_column("References")
    for role, binding in sorted(schema.roles.items(), key=lambda item: item[0].value):
        table.add_row(
            role.value,
            binding.field or "[dim]unbound[/dim]",
            binding.relationship_path or "",
            binding.reference_to or "",
        )
    console.print(table)


def print_records(
    records: Iterable[ApprovalRecord],
    total: int,
    has_more: bool,
    warning: Optional[str] = None,
    console: Optional[Console] = None,
) -> None:
    """
    Render a batch of approval records as a rich table.
    """
    console = console or Console()
    if warning:
        console.print(f"[yellow]{warning}[/yellow]")

    rows = list(records)
    if not rows:
        console.print("[yellow]No records to display.[/yellow]")
        return

    table = Table(
        title=f"Approval records ({len(rows)} of {total}{', more available' if has_more else ''})",
        box=box.SIMPLE_HEAVY,
    )
    table.add_column("Transaction", style="cyan", no_wrap=True)
    table.add_column("Contributor")
    table.add_column("Objective")
    table.add_column("Account")
    table.add_column("Date")
    table.add_column("Self hrs", justify="right")
    table.add_column("System hrs", justify="right")
    table.add_column("Variance %", justify="right")
    table.add_column("Payment", justify="right")
    table.add_column("Status")

    for record in rows:
        table.add_row(
            record.transaction_id or record.id or "",
            record.contributor_name or record.email,
            record.objective_name,
            record.account_name,
            record.transaction_date or "",
            _hours(record.self_reported_hours),
            _hours(record.system_tracked_hours),
            f"[{_variance_style(record.variance_percent)}]{record.variance_percent:.1f}[/]",
            f"{record.total_payment:,.2f}",
            record.status,
        )
    console.print(table)


def print_summary(
    metrics: SummaryMetrics, warning: Optional[str] = None, console: Optional[Console] = None
) -> None:
    console = console or Console()
    if warning:
        console.print(f"[yellow]{warning}[/yellow]")

    table = Table(title="Approval summary", box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Pending hours (self reported)", _hours(metrics.total_pending_hours))
    table.add_row("Pending units", _hours(metrics.total_pending_units))
    table.add_row("Pending system tracked hours", _hours(metrics.system_tracked))
    table.add_row("Pending payment", f"{metrics.total_payment:,.2f}")
    table.add_row("Total hours", _hours(metrics.total_hours))
    table.add_row("Total system tracked hours", _hours(metrics.total_system_tracked))
    console.print(table)
    if metrics.failed_metrics:
        console.print(
            "[red]Unavailable metrics (shown as 0): " + ", ".join(metrics.failed_metrics) + "[/red]"
        )


def print_filter_options(options: FilterOptions, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title="Filter options", box=box.ROUNDED)
    table.add_column("Filter", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Sample")
    samples = {
        "accounts": options.accounts,
        "projects": options.projects,
        "objectives": [o.name for o in options.objectives],
        "emails": options.emails,
    }
    for name, values in samples.items():
        table.add_row(name, str(len(values)), ", ".join(values[:5]))
    console.print(table)


__all__ = ["print_filter_options", "print_records", "print_schema", "print_summary"]
