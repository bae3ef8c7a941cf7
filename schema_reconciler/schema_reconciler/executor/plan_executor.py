"""Sequential, failure-isolated execution of a reconciliation plan.

Each DDL statement runs in its own unit of work.  Before applying an
operation the executor re-reads the catalog, because another process may
have reconciled the same database since the plan was built; an object that
already exists, whether found by that re-check or reported by the database
as a duplicate, counts as success.

A failing operation is recorded and execution continues with the next one.
The only thing that stops execution early is the deadline: once it passes no
further statement is issued and the remaining operations are reported as
skipped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.schema import ExecutableDDLElement
from sqlalchemy.sql.elements import TextClause

from schema_reconciler.catalog.inspector import CatalogInspector
from schema_reconciler.errors import OperationFailedError, ReconcilerError
from schema_reconciler.executor.ddl import DDLRenderer
from schema_reconciler.executor.duplicates import is_duplicate_object_error
from schema_reconciler.models.observed import ObservedTable
from schema_reconciler.models.plan import (
    AddColumn,
    AddForeignKey,
    AddIndex,
    CreateTable,
    OperationKind,
    ReconciliationPlan,
)
from schema_reconciler.models.result import (
    ErrorKind,
    OperationOutcome,
    OperationResult,
    ReconciliationResult,
    TableOutcome,
    TableResult,
)
from schema_reconciler.planner.plan_builder import find_foreign_key, index_satisfied, missing_indexes

logger = logging.getLogger(__name__)

_Operation = CreateTable | AddColumn | AddIndex | AddForeignKey


def _error_reason(exc: BaseException) -> str:
    """Short, log-friendly description of a failure."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc) or type(exc).__name__


class PlanExecutor:
    """Apply a :class:`ReconciliationPlan` on one connection.

    Parameters
    ----------
    connection:
        Open async connection with no transaction in progress.
    schema:
        Schema the declared tables live in; ``None`` for the default.
    deadline:
        Absolute event-loop time (``loop.time()``) after which no further
        operation is started.  ``None`` disables the bound.
    """

    def __init__(
        self,
        connection: AsyncConnection,
        schema: str | None = None,
        deadline: float | None = None,
    ) -> None:
        self._connection = connection
        self._deadline = deadline
        self._inspector = CatalogInspector(connection, schema)
        self._renderer = DDLRenderer(connection.dialect, schema)

    async def execute(
        self,
        plan: ReconciliationPlan,
        *,
        started_at: datetime | None = None,
    ) -> ReconciliationResult:
        """Apply every operation in *plan*, in order, and report the outcome."""
        started_at = started_at or datetime.now(UTC)
        loop = asyncio.get_running_loop()
        results: list[OperationResult] = []
        timed_out = False

        for op in plan.operations:
            if timed_out:
                results.append(self._result(op, OperationOutcome.SKIPPED, "deadline exceeded before start"))
                continue

            remaining = None if self._deadline is None else self._deadline - loop.time()
            if remaining is not None and remaining <= 0:
                timed_out = True
                results.append(self._result(op, OperationOutcome.SKIPPED, "deadline exceeded before start"))
                continue

            start = time.perf_counter()
            try:
                outcome = await asyncio.wait_for(self._apply(op), timeout=remaining)
                reason = None
            except TimeoutError:
                timed_out = True
                outcome, reason = OperationOutcome.FAILED, "timed out"
            except (SQLAlchemyError, ReconcilerError) as exc:
                outcome, reason = OperationOutcome.FAILED, _error_reason(exc)

            duration_ms = (time.perf_counter() - start) * 1000
            results.append(self._result(op, outcome, reason, duration_ms))
            self._log_outcome(op, outcome, reason)

        result = ReconciliationResult(
            plan_id=plan.plan_id,
            tables=self._table_results(plan, results),
            operations=results,
            drift_warnings=list(plan.drift_warnings),
            timed_out=timed_out,
            error="Reconciliation deadline exceeded" if timed_out else None,
            error_kind=ErrorKind.TIMEOUT if timed_out else None,
            started_at=started_at,
            finished_at=datetime.now(UTC),
        )
        return result

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def _apply(self, op: _Operation) -> OperationOutcome:
        if isinstance(op, CreateTable):
            return await self._create_table(op)
        if isinstance(op, AddColumn):
            return await self._add_column(op)
        if isinstance(op, AddIndex):
            return await self._add_index(op)
        return await self._add_foreign_key(op)

    async def _run_statement(self, statement: ExecutableDDLElement | TextClause) -> bool:
        """Execute one DDL statement in its own transaction.

        Returns ``False`` when the database reports the object already
        exists.
        """
        try:
            async with self._connection.begin():
                await self._connection.execute(statement)
        except DBAPIError as exc:
            if is_duplicate_object_error(exc):
                logger.debug("Object already exists: %s", _error_reason(exc))
                return False
            raise
        return True

    async def _existing_table(self, table: str) -> ObservedTable:
        current = await self._inspector.describe_table(table)
        if current is None:
            raise OperationFailedError(f"table '{table}' does not exist")
        return current

    async def _create_table(self, op: CreateTable) -> OperationOutcome:
        spec = op.table
        created = False
        if not await self._inspector.table_exists(spec.name):
            created = await self._run_statement(self._renderer.create_table(spec))

        # Indexes are created separately so a table left behind by an
        # interrupted run still gets them.
        current = await self._existing_table(spec.name)
        indexes, _ = missing_indexes(spec, current)
        for index in indexes:
            await self._run_statement(self._renderer.create_index(spec.name, index))

        return OperationOutcome.APPLIED if created else OperationOutcome.ALREADY_PRESENT

    async def _add_column(self, op: AddColumn) -> OperationOutcome:
        current = await self._existing_table(op.table_name)
        if current.has_column(op.column.name):
            return OperationOutcome.ALREADY_PRESENT
        applied = await self._run_statement(self._renderer.add_column(op.table_name, op.column))
        return OperationOutcome.APPLIED if applied else OperationOutcome.ALREADY_PRESENT

    async def _add_index(self, op: AddIndex) -> OperationOutcome:
        current = await self._existing_table(op.table_name)
        if index_satisfied(op.index, current):
            return OperationOutcome.ALREADY_PRESENT
        applied = await self._run_statement(self._renderer.create_index(op.table_name, op.index))
        return OperationOutcome.APPLIED if applied else OperationOutcome.ALREADY_PRESENT

    async def _add_foreign_key(self, op: AddForeignKey) -> OperationOutcome:
        current = await self._existing_table(op.table_name)
        if find_foreign_key(op.foreign_key, current) is not None:
            return OperationOutcome.ALREADY_PRESENT
        if not self._renderer.supports_add_foreign_key:
            raise OperationFailedError(
                f"{self._connection.dialect.name} cannot add a foreign key to an existing table"
            )
        applied = await self._run_statement(self._renderer.add_foreign_key(op.table_name, op.foreign_key))
        return OperationOutcome.APPLIED if applied else OperationOutcome.ALREADY_PRESENT

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @staticmethod
    def _result(
        op: _Operation,
        outcome: OperationOutcome,
        reason: str | None = None,
        duration_ms: float = 0.0,
    ) -> OperationResult:
        return OperationResult(
            table=op.table_name,
            kind=op.kind,
            description=op.describe(),
            outcome=outcome,
            reason=reason,
            duration_ms=duration_ms,
        )

    @staticmethod
    def _log_outcome(op: _Operation, outcome: OperationOutcome, reason: str | None) -> None:
        if outcome is OperationOutcome.APPLIED:
            logger.info("Applied %s", op.describe())
        elif outcome is OperationOutcome.ALREADY_PRESENT:
            logger.debug("Already present: %s", op.describe())
        else:
            logger.warning("Failed %s: %s", op.describe(), reason)

    @staticmethod
    def _table_results(plan: ReconciliationPlan, results: list[OperationResult]) -> list[TableResult]:
        """Fold operation outcomes into one outcome per table."""
        names = list(plan.table_order)
        for res in results:
            if res.table not in names:
                names.append(res.table)

        tables: list[TableResult] = []
        for name in names:
            ops = [res for res in results if res.table == name]
            problems = [
                res for res in ops if res.outcome in (OperationOutcome.FAILED, OperationOutcome.SKIPPED)
            ]
            if problems:
                tables.append(
                    TableResult(
                        table=name,
                        outcome=TableOutcome.FAILED,
                        reasons=[f"{res.description}: {res.reason}" for res in problems],
                    )
                )
            elif any(
                res.kind is OperationKind.CREATE_TABLE and res.outcome is OperationOutcome.APPLIED for res in ops
            ):
                tables.append(TableResult(table=name, outcome=TableOutcome.CREATED))
            elif any(res.outcome is OperationOutcome.APPLIED for res in ops):
                tables.append(TableResult(table=name, outcome=TableOutcome.PATCHED))
            else:
                tables.append(TableResult(table=name, outcome=TableOutcome.ALREADY_EXISTS))
        return tables
