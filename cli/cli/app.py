"""``tyre-schema`` CLI application -- Typer-based operator interface.

Provides commands to reconcile the database schema, preview the plan
without applying it, check database connectivity, and list the declared
tables.  Human-readable output goes to *stderr* via Rich; ``--json`` writes
machine-readable output to *stdout* so that pipelines can compose cleanly.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any

import typer
from rich.console import Console
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import AsyncEngine

from cli.display import (
    display_connection,
    display_plan,
    display_reconciliation_result,
    display_table_list,
)
from schema_reconciler.config import SchemaProfile, Settings, load_settings

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="tyre-schema",
    help="Tyre management schema reconciler - additive, idempotent schema migrations.",
    no_args_is_help=True,
)
console = Console(stderr=True)

# Mutable global options populated by the Typer callback.
_json_output: bool = False
_database_url: str | None = None


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of human-readable output.",
    ),
    database_url: str | None = typer.Option(
        None,
        "--database-url",
        help="SQLAlchemy URL overriding the DB_* settings (e.g. sqlite+aiosqlite:///./local.db).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log reconciler activity to stderr.",
    ),
) -> None:
    """Global options applied to every command."""
    global _json_output, _database_url  # noqa: PLW0603
    _json_output = json_mode
    _database_url = database_url
    if verbose:
        from schema_reconciler.logging_config import configure_logging

        configure_logging("INFO")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _settings(profile: SchemaProfile | None = None, timeout: float | None = None) -> Settings:
    """Load settings and apply command-line overrides."""
    settings = load_settings()
    updates: dict[str, Any] = {}
    if _database_url:
        updates["database"] = settings.database.model_copy(update={"url": _database_url})
    if profile is not None:
        updates["schema_profile"] = profile
    if timeout is not None:
        updates["timeout_seconds"] = timeout
    return settings.model_copy(update=updates) if updates else settings


def _write_json(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + "\n")


def _engine(settings: Settings) -> AsyncEngine:
    """Build the engine, exiting with code 3 on an unusable configuration."""
    from schema_reconciler.state.database import get_engine

    try:
        return get_engine(settings.database)
    except (ArgumentError, ImportError) as exc:
        console.print(f"[red]Invalid database configuration: {exc}[/red]")
        raise typer.Exit(code=3) from exc


# ---------------------------------------------------------------------------
# reconcile
# ---------------------------------------------------------------------------


@app.command()
def reconcile(
    profile: SchemaProfile | None = typer.Option(
        None,
        "--profile",
        "-p",
        help="Table set to maintain (standard | extended). Defaults to RECONCILER_SCHEMA_PROFILE.",
        case_sensitive=False,
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Overall time budget in seconds.",
        min=0.1,
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Exit with code 1 unless every table reconciled successfully.",
    ),
) -> None:
    """Create missing tables, columns, indexes and foreign keys."""
    from schema_reconciler.coordinator import run_startup_reconciliation

    settings = _settings(profile, timeout)
    result = asyncio.run(run_startup_reconciliation(settings))

    if _json_output:
        _write_json(result.model_dump(mode="json"))
    else:
        display_reconciliation_result(console, result)

    if strict and not result.success:
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# plan
# ---------------------------------------------------------------------------


@app.command()
def plan(
    profile: SchemaProfile | None = typer.Option(
        None,
        "--profile",
        "-p",
        help="Table set to plan for (standard | extended).",
        case_sensitive=False,
    ),
    sql: bool = typer.Option(
        False,
        "--sql",
        help="Also show the DDL each operation would issue.",
    ),
) -> None:
    """Show what ``reconcile`` would change, without changing anything."""
    from schema_reconciler.coordinator import preview_plan
    from schema_reconciler.declared import desired_schema
    from schema_reconciler.errors import ReconcilerError
    from schema_reconciler.executor.ddl import DDLRenderer

    settings = _settings(profile)
    engine = _engine(settings)
    schema = settings.database.schema_name

    async def _preview() -> tuple[Any, dict[int, list[str]]]:
        try:
            result = await preview_plan(engine, desired_schema(settings.schema_profile), schema=schema)
            statements: dict[int, list[str]] = {}
            if sql:
                renderer = DDLRenderer(engine.dialect, schema)
                statements = {idx: renderer.render(op) for idx, op in enumerate(result.operations, start=1)}
            return result, statements
        finally:
            await engine.dispose()

    try:
        reconciliation_plan, statements = asyncio.run(_preview())
    except ReconcilerError as exc:
        console.print(f"[red]Error building plan: {exc}[/red]")
        raise typer.Exit(code=3) from exc

    if _json_output:
        payload: dict[str, Any] = {"plan": reconciliation_plan.model_dump(mode="json")}
        if sql:
            payload["sql"] = [stmt for idx in sorted(statements) for stmt in statements[idx]]
        _write_json(payload)
    else:
        display_plan(console, reconciliation_plan, statements)


# ---------------------------------------------------------------------------
# check-connection
# ---------------------------------------------------------------------------


@app.command("check-connection")
def check_connection_command() -> None:
    """Connect, run ``SELECT 1`` and list the existing tables."""
    from schema_reconciler.coordinator import check_connection
    from schema_reconciler.errors import CatalogUnavailableError

    settings = _settings()
    engine = _engine(settings)
    missing = settings.database.missing_required()
    if missing and not _json_output:
        console.print(f"[yellow]Missing environment variables: {', '.join(missing)}[/yellow]")

    target = settings.database.sqlalchemy_url().render_as_string(hide_password=True)

    async def _check() -> list[str]:
        try:
            return await check_connection(engine, settings.database.schema_name)
        finally:
            await engine.dispose()

    try:
        tables = asyncio.run(_check())
    except CatalogUnavailableError as exc:
        if _json_output:
            _write_json({"connected": False, "target": target, "error": str(exc)})
        else:
            console.print(f"[red]Database connection failed: {exc}[/red]")
        raise typer.Exit(code=3) from exc

    if _json_output:
        _write_json({"connected": True, "target": target, "tables": tables})
    else:
        display_connection(console, target, tables)


# ---------------------------------------------------------------------------
# tables
# ---------------------------------------------------------------------------


@app.command()
def tables(
    profile: SchemaProfile = typer.Option(
        SchemaProfile.STANDARD,
        "--profile",
        "-p",
        help="Table set to list (standard | extended).",
        case_sensitive=False,
    ),
) -> None:
    """List the declared tables in creation order."""
    from schema_reconciler.declared import desired_schema
    from schema_reconciler.graph import build_table_graph, dependents_of, topological_sort

    specs = {spec.name: spec for spec in desired_schema(profile)}
    graph = build_table_graph(specs.values())
    ordered = [specs[name] for name in topological_sort(graph)]
    dependents = {name: sorted(dependents_of(graph, name)) for name in specs}

    if _json_output:
        _write_json(
            [
                {
                    "name": spec.name,
                    "columns": [col.name for col in spec.columns],
                    "indexes": [idx.name for idx in spec.indexes],
                    "references": sorted(spec.referenced_tables()),
                    "dependents": dependents[spec.name],
                }
                for spec in ordered
            ]
        )
    else:
        display_table_list(console, ordered, dependents)
