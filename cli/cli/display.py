"""Rich output formatting for the ``tyre-schema`` CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that machine-readable output on *stdout* is never
polluted with human-readable decoration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

if TYPE_CHECKING:
    from schema_reconciler.models.plan import ReconciliationPlan, SchemaDriftWarning
    from schema_reconciler.models.result import ReconciliationResult
    from schema_reconciler.models.schema import TableSpec


# ---------------------------------------------------------------------------
# Status colour mapping
# ---------------------------------------------------------------------------

_STATUS_COLOURS: dict[str, str] = {
    "SUCCESS": "green",
    "PARTIAL": "yellow",
    "FAILED": "red",
    "CREATED": "green",
    "PATCHED": "cyan",
    "ALREADY_EXISTS": "dim",
    "APPLIED": "green",
    "ALREADY_PRESENT": "dim",
    "SKIPPED": "dim red",
}


def _coloured_status(status: str) -> str:
    """Return a Rich markup string with the status colour-coded."""
    colour = _STATUS_COLOURS.get(status, "white")
    return f"[{colour}]{status}[/{colour}]"


# ---------------------------------------------------------------------------
# Reconciliation result
# ---------------------------------------------------------------------------


def display_reconciliation_result(console: Console, result: ReconciliationResult) -> None:
    """Render the outcome of a reconciliation pass.

    Parameters
    ----------
    console:
        Rich console to write to (typically stderr).
    result:
        The result returned by the reconciler.
    """
    summary = result.summary()
    header_lines = [
        f"[bold]Status:[/bold]     {_coloured_status(result.status.value)}",
        f"[bold]Plan ID:[/bold]    {result.plan_id[:16] + '...' if result.plan_id else '(none)'}",
        f"[bold]Operations:[/bold] {summary['operations']}",
        f"[bold]Duration:[/bold]   {summary['duration_ms']} ms",
    ]
    if result.error:
        kind = result.error_kind.value if result.error_kind else "ERROR"
        header_lines.append(f"[bold red]{kind}:[/bold red] {result.error}")
    console.print(Panel("\n".join(header_lines), title="Schema Reconciliation", border_style="blue"))

    if result.tables:
        table = Table(title="Tables", show_lines=False, pad_edge=True, expand=False)
        table.add_column("#", style="dim", width=4, justify="right")
        table.add_column("Table", style="bold")
        table.add_column("Outcome")
        table.add_column("Reason")
        for idx, entry in enumerate(result.tables, start=1):
            table.add_row(
                str(idx),
                entry.table,
                _coloured_status(entry.outcome.value),
                "\n".join(entry.reasons) or "-",
            )
        console.print(table)

    applied = [op for op in result.operations if op.outcome.value != "ALREADY_PRESENT"]
    if applied:
        ops_table = Table(title="Operations", show_lines=False, pad_edge=True, expand=False)
        ops_table.add_column("Operation")
        ops_table.add_column("Outcome")
        ops_table.add_column("Duration", justify="right")
        for op in applied:
            ops_table.add_row(op.description, _coloured_status(op.outcome.value), f"{op.duration_ms:.1f} ms")
        console.print(ops_table)

    display_drift_warnings(console, result.drift_warnings)


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------


def display_plan(
    console: Console,
    plan: ReconciliationPlan,
    statements: dict[int, list[str]] | None = None,
) -> None:
    """Render a dry-run plan, optionally with the DDL each operation issues."""
    header_lines = [
        f"[bold]Plan ID:[/bold]    {plan.plan_id[:16]}...",
        f"[bold]Tables:[/bold]     {len(plan.table_order)}",
        f"[bold]Operations:[/bold] {len(plan.operations)}",
        f"[bold]Drift:[/bold]      {len(plan.drift_warnings)}",
    ]
    console.print(Panel("\n".join(header_lines), title="Reconciliation Plan", border_style="blue"))

    if plan.is_empty:
        console.print("[green]Schema is up to date. Nothing to apply.[/green]")
    else:
        table = Table(title="Operations", show_lines=False, pad_edge=True, expand=False)
        table.add_column("#", style="dim", width=4, justify="right")
        table.add_column("Table", style="bold")
        table.add_column("Kind", style="cyan")
        table.add_column("Operation")
        for idx, op in enumerate(plan.operations, start=1):
            table.add_row(str(idx), op.table_name, op.kind.value, op.describe())
        console.print(table)

    if statements:
        for idx in sorted(statements):
            console.print(Syntax(";\n\n".join(statements[idx]) + ";", "sql", word_wrap=True))

    display_drift_warnings(console, plan.drift_warnings)


def display_drift_warnings(console: Console, warnings: list[SchemaDriftWarning]) -> None:
    if not warnings:
        return
    console.print()
    table = Table(title="Schema Drift (not corrected)", show_lines=False, pad_edge=True, expand=False)
    table.add_column("Table", style="bold")
    table.add_column("Object")
    table.add_column("Drift", style="yellow")
    table.add_column("Expected")
    table.add_column("Actual")
    for warning in warnings:
        table.add_row(
            warning.table,
            warning.object_name,
            warning.drift_type.value,
            warning.expected,
            warning.actual,
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Declared tables and connectivity
# ---------------------------------------------------------------------------


def display_table_list(
    console: Console,
    tables: list[TableSpec],
    dependents: dict[str, list[str]] | None = None,
) -> None:
    """Render declared tables in creation order, with the tables that depend
    on each one when *dependents* is given."""
    dependents = dependents or {}
    table = Table(title="Declared Tables (creation order)", show_lines=False, pad_edge=True, expand=False)
    table.add_column("#", style="dim", width=4, justify="right")
    table.add_column("Table", style="bold")
    table.add_column("Columns", justify="right")
    table.add_column("Indexes", justify="right")
    table.add_column("References")
    table.add_column("Dependents")

    for idx, spec in enumerate(tables, start=1):
        table.add_row(
            str(idx),
            spec.name,
            str(len(spec.columns)),
            str(len(spec.indexes)),
            ", ".join(sorted(spec.referenced_tables())) or "-",
            ", ".join(dependents.get(spec.name, [])) or "-",
        )
    console.print(table)


def display_connection(console: Console, target: str, tables: list[str]) -> None:
    """Render the outcome of a successful connection check."""
    console.print(
        Panel(
            f"[green]Connected[/green] to [bold]{target}[/bold]\n[bold]Tables:[/bold] {len(tables)}",
            title="Database Connection",
            border_style="green",
        )
    )
    for name in tables:
        console.print(f"  - {name}")
