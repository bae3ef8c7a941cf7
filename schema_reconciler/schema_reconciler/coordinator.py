"""Startup entry points: inspect, plan, execute, report.

:func:`reconcile_schema` is the single call a host process makes at boot.
It never raises for an unreachable database, an inconsistent declaration, or
an exhausted time budget; those become a failed
:class:`ReconciliationResult` that the caller logs before carrying on.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from datetime import UTC, datetime
from typing import TypeVar

from sqlalchemy import text
from sqlalchemy.exc import ArgumentError, DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine

from schema_reconciler.catalog.inspector import CatalogInspector
from schema_reconciler.config import Settings, load_settings
from schema_reconciler.declared.tables import desired_schema
from schema_reconciler.errors import (
    CatalogUnavailableError,
    DependencyCycleError,
    SchemaDeclarationError,
    UnknownReferenceError,
)
from schema_reconciler.executor.plan_executor import PlanExecutor
from schema_reconciler.models.plan import ReconciliationPlan
from schema_reconciler.models.result import ErrorKind, ReconciliationResult, TableOutcome
from schema_reconciler.models.schema import TableSpec
from schema_reconciler.planner.plan_builder import build_plan
from schema_reconciler.state.database import catalog_connection, get_engine

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _bounded(awaitable: Awaitable[T], deadline: float | None) -> T:
    if deadline is None:
        return await awaitable
    remaining = max(deadline - asyncio.get_running_loop().time(), 0.0)
    return await asyncio.wait_for(awaitable, timeout=remaining)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


async def reconcile_schema(
    engine: AsyncEngine,
    desired: Sequence[TableSpec] | None = None,
    *,
    schema: str | None = None,
    timeout_seconds: float | None = None,
) -> ReconciliationResult:
    """Bring the database schema up to *desired* with additive DDL only.

    One connection is acquired for the whole pass and released on every exit
    path.  The optional time budget covers catalog inspection and
    execution.

    Parameters
    ----------
    engine:
        Engine for the target database.
    desired:
        Declared tables; defaults to the standard profile.
    schema:
        Schema to reconcile; ``None`` for the connection's default.
    timeout_seconds:
        Overall budget for the pass.  ``None`` disables it.

    Returns
    -------
    ReconciliationResult
        Per-table and per-operation outcomes.  Catalog, declaration and
        timeout failures are reported through ``error`` and ``error_kind``.
    """
    tables = list(desired) if desired is not None else desired_schema()
    started_at = datetime.now(UTC)
    deadline = asyncio.get_running_loop().time() + timeout_seconds if timeout_seconds else None

    try:
        async with catalog_connection(engine) as conn:
            inspector = CatalogInspector(conn, schema)
            observed = await _bounded(inspector.observe([t.name for t in tables]), deadline)
            plan = build_plan(tables, observed)
            logger.info(
                "Reconciliation plan %s: %d operation(s) across %d table(s), %d drift warning(s)",
                plan.plan_id[:12],
                len(plan.operations),
                len(plan.table_order),
                len(plan.drift_warnings),
            )
            executor = PlanExecutor(conn, schema=schema, deadline=deadline)
            result = await executor.execute(plan, started_at=started_at)
    except CatalogUnavailableError as exc:
        result = ReconciliationResult.aborted(ErrorKind.CATALOG_UNAVAILABLE, str(exc), started_at)
    except DependencyCycleError as exc:
        result = ReconciliationResult.aborted(ErrorKind.DEPENDENCY_CYCLE, str(exc), started_at)
    except UnknownReferenceError as exc:
        result = ReconciliationResult.aborted(ErrorKind.UNKNOWN_REFERENCE, str(exc), started_at)
    except SchemaDeclarationError as exc:
        result = ReconciliationResult.aborted(ErrorKind.INVALID_DECLARATION, str(exc), started_at)
    except TimeoutError:
        result = ReconciliationResult.aborted(
            ErrorKind.TIMEOUT,
            f"Catalog inspection did not finish within {timeout_seconds}s",
            started_at,
        )

    log_result(result)
    return result


async def run_startup_reconciliation(settings: Settings | None = None) -> ReconciliationResult:
    """Build an engine from *settings*, reconcile, and dispose the engine.

    Missing ``DB_*`` variables are logged as a warning; the attempt still
    runs and fails with ``CATALOG_UNAVAILABLE`` if the database cannot be
    reached, or if no engine can be built from the configuration (malformed
    URL, driver not installed).
    """
    settings = settings or load_settings()
    missing = settings.database.missing_required()
    if missing:
        logger.warning("Missing database environment variables: %s", ", ".join(missing))

    try:
        engine = get_engine(settings.database)
    except (ArgumentError, ImportError) as exc:
        result = ReconciliationResult.aborted(
            ErrorKind.CATALOG_UNAVAILABLE,
            f"Could not create database engine: {exc}",
        )
        log_result(result)
        return result

    try:
        return await reconcile_schema(
            engine,
            desired_schema(settings.schema_profile),
            schema=settings.database.schema_name,
            timeout_seconds=settings.timeout_seconds,
        )
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# Read-only helpers
# ---------------------------------------------------------------------------


async def preview_plan(
    engine: AsyncEngine,
    desired: Sequence[TableSpec] | None = None,
    *,
    schema: str | None = None,
) -> ReconciliationPlan:
    """Inspect the catalog and build the plan without executing it.

    Raises
    ------
    CatalogUnavailableError
        If the database cannot be reached or inspected.
    SchemaDeclarationError
        If the declaration is inconsistent.
    """
    tables = list(desired) if desired is not None else desired_schema()
    async with catalog_connection(engine) as conn:
        observed = await CatalogInspector(conn, schema).observe([t.name for t in tables])
    return build_plan(tables, observed)


async def check_connection(engine: AsyncEngine, schema: str | None = None) -> list[str]:
    """Round-trip ``SELECT 1`` and return the existing table names, sorted.

    Raises
    ------
    CatalogUnavailableError
        If the database cannot be reached, authenticated to, or queried.
    """
    async with catalog_connection(engine) as conn:
        try:
            async with conn.begin():
                await conn.execute(text("SELECT 1"))
        except DBAPIError as exc:
            raise CatalogUnavailableError(f"Database did not answer SELECT 1: {exc}") from exc
        return sorted(await CatalogInspector(conn, schema).list_tables())


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


def log_result(result: ReconciliationResult) -> None:
    """One summary line, then one line per failed table and drift warning."""
    counts = result.counts()
    summary = result.summary()

    if result.error is not None and not result.tables:
        logger.error(
            "Schema reconciliation aborted (%s): %s",
            result.error_kind.value if result.error_kind else "UNKNOWN",
            result.error,
            extra={"reconciliation": summary},
        )
        return

    logger.log(
        logging.INFO if result.success else logging.WARNING,
        "Schema reconciliation finished: %s (created=%d, existing=%d, patched=%d, failed=%d, drift=%d)",
        result.status.value,
        counts[TableOutcome.CREATED.value],
        counts[TableOutcome.ALREADY_EXISTS.value],
        counts[TableOutcome.PATCHED.value],
        counts[TableOutcome.FAILED.value],
        len(result.drift_warnings),
        extra={"reconciliation": summary},
    )

    for table in result.tables:
        if table.outcome is TableOutcome.FAILED:
            logger.warning("Table %s failed: %s", table.table, "; ".join(table.reasons))

    for warning in result.drift_warnings:
        logger.warning(
            "Schema drift on %s.%s (%s): %s",
            warning.table,
            warning.object_name,
            warning.drift_type.value,
            warning.message,
        )
