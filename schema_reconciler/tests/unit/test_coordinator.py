"""Tests for schema_reconciler.coordinator."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from schema_reconciler.catalog.inspector import CatalogInspector
from schema_reconciler.config import DatabaseSettings, Settings
from schema_reconciler.coordinator import (
    check_connection,
    log_result,
    preview_plan,
    reconcile_schema,
    run_startup_reconciliation,
)
from schema_reconciler.declared import desired_schema, get_table
from schema_reconciler.errors import CatalogUnavailableError
from schema_reconciler.models.plan import CreateTable, DriftType, SchemaDriftWarning
from schema_reconciler.models.result import (
    ErrorKind,
    ReconciliationResult,
    ReconciliationStatus,
    TableOutcome,
    TableResult,
)
from schema_reconciler.models.schema import ColumnSpec, ColumnType, ForeignKeySpec, TableSpec
from schema_reconciler.state.sqlite_adapter import get_local_engine

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _linked(name: str, ref: str) -> TableSpec:
    return TableSpec(
        name=name,
        columns=(
            ColumnSpec(name="id", type=ColumnType.INTEGER, primary_key=True, nullable=False),
            ColumnSpec(name="refId", type=ColumnType.INTEGER),
        ),
        foreign_keys=(ForeignKeySpec(column="refId", references_table=ref),),
    )


def _sqlite_settings(path: Path, **overrides) -> Settings:
    return Settings(database=DatabaseSettings(url=f"sqlite+aiosqlite:///{path}"), **overrides)


# ---------------------------------------------------------------------------
# reconcile_schema
# ---------------------------------------------------------------------------


class TestReconcileSchema:
    @pytest.mark.asyncio
    async def test_defaults_to_standard_profile(self, sqlite_engine: AsyncEngine) -> None:
        result = await reconcile_schema(sqlite_engine)
        assert result.success is True
        assert {t.table for t in result.tables} == {t.name for t in desired_schema()}

    @pytest.mark.asyncio
    async def test_cycle_aborts_before_any_ddl(self, sqlite_engine: AsyncEngine) -> None:
        result = await reconcile_schema(sqlite_engine, [_linked("a", "b"), _linked("b", "a")])

        assert result.success is False
        assert result.error_kind is ErrorKind.DEPENDENCY_CYCLE
        assert result.tables == []
        async with sqlite_engine.connect() as conn:
            assert await CatalogInspector(conn).list_tables() == set()

    @pytest.mark.asyncio
    async def test_unknown_reference_aborts(self, sqlite_engine: AsyncEngine) -> None:
        result = await reconcile_schema(sqlite_engine, [_linked("a", "missing")])
        assert result.error_kind is ErrorKind.UNKNOWN_REFERENCE
        assert "missing" in result.error

    @pytest.mark.asyncio
    async def test_duplicate_declaration_aborts(self, sqlite_engine: AsyncEngine) -> None:
        users = get_table("users")
        result = await reconcile_schema(sqlite_engine, [users, users])
        assert result.error_kind is ErrorKind.INVALID_DECLARATION

    @pytest.mark.asyncio
    async def test_unreachable_database(self, tmp_path: Path) -> None:
        # A directory cannot be opened as a database file.
        engine = get_local_engine(tmp_path)
        try:
            result = await reconcile_schema(engine)
        finally:
            await engine.dispose()

        assert result.success is False
        assert result.status is ReconciliationStatus.FAILED
        assert result.error_kind is ErrorKind.CATALOG_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_slow_inspection_times_out(
        self, sqlite_engine: AsyncEngine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def _slow_observe(self, tables):
            await asyncio.sleep(5)
            return {}

        monkeypatch.setattr(CatalogInspector, "observe", _slow_observe)
        result = await reconcile_schema(sqlite_engine, timeout_seconds=0.05)

        assert result.timed_out is True
        assert result.error_kind is ErrorKind.TIMEOUT
        assert result.tables == []


class TestRunStartupReconciliation:
    @pytest.mark.asyncio
    async def test_runs_against_configured_database(self, tmp_path: Path) -> None:
        result = await run_startup_reconciliation(_sqlite_settings(tmp_path / "boot.db"))
        assert result.success is True
        assert len(result.tables_with(TableOutcome.CREATED)) == len(desired_schema())

    @pytest.mark.asyncio
    async def test_malformed_url(self) -> None:
        settings = Settings(database=DatabaseSettings(url="definitely not a url"))
        result = await run_startup_reconciliation(settings)
        assert result.error_kind is ErrorKind.CATALOG_UNAVAILABLE
        assert "Could not create database engine" in result.error

    @pytest.mark.asyncio
    async def test_warns_about_missing_environment(self, caplog: pytest.LogCaptureFixture) -> None:
        settings = Settings(database=DatabaseSettings(driver="nosuchdriver+async"))
        with caplog.at_level(logging.WARNING, logger="schema_reconciler.coordinator"):
            result = await run_startup_reconciliation(settings)

        assert "DB_HOST" in caplog.text
        assert result.success is False


# ---------------------------------------------------------------------------
# Read-only helpers
# ---------------------------------------------------------------------------


class TestPreviewPlan:
    @pytest.mark.asyncio
    async def test_does_not_change_database(self, sqlite_engine: AsyncEngine) -> None:
        plan = await preview_plan(sqlite_engine, desired_schema())
        assert all(isinstance(op, CreateTable) for op in plan.operations)
        async with sqlite_engine.connect() as conn:
            assert await CatalogInspector(conn).list_tables() == set()

    @pytest.mark.asyncio
    async def test_empty_after_reconcile(self, sqlite_engine: AsyncEngine) -> None:
        await reconcile_schema(sqlite_engine)
        assert (await preview_plan(sqlite_engine)).is_empty


class TestCheckConnection:
    @pytest.mark.asyncio
    async def test_lists_tables(self, sqlite_engine: AsyncEngine) -> None:
        assert await check_connection(sqlite_engine) == []
        await reconcile_schema(sqlite_engine, [get_table("supplier")])
        assert await check_connection(sqlite_engine) == ["supplier"]

    @pytest.mark.asyncio
    async def test_unreachable(self, tmp_path: Path) -> None:
        engine = get_local_engine(tmp_path)
        try:
            with pytest.raises(CatalogUnavailableError):
                await check_connection(engine)
        finally:
            await engine.dispose()


# ---------------------------------------------------------------------------
# log_result
# ---------------------------------------------------------------------------


class TestLogResult:
    def test_success_logs_info_summary(self, caplog: pytest.LogCaptureFixture) -> None:
        result = ReconciliationResult(tables=[TableResult(table="users", outcome=TableOutcome.CREATED)])
        with caplog.at_level(logging.INFO, logger="schema_reconciler.coordinator"):
            log_result(result)

        (record,) = caplog.records
        assert record.levelno == logging.INFO
        assert "created=1" in record.getMessage()
        assert record.reconciliation["status"] == "SUCCESS"

    def test_failed_tables_and_drift_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        result = ReconciliationResult(
            tables=[
                TableResult(table="users", outcome=TableOutcome.CREATED),
                TableResult(table="vehicles", outcome=TableOutcome.FAILED, reasons=["boom"]),
            ],
            drift_warnings=[
                SchemaDriftWarning(
                    table="users",
                    object_name="email",
                    drift_type=DriftType.LENGTH_CHANGED,
                    message="length differs",
                )
            ],
        )
        with caplog.at_level(logging.INFO, logger="schema_reconciler.coordinator"):
            log_result(result)

        levels = [r.levelno for r in caplog.records]
        assert levels == [logging.WARNING, logging.WARNING, logging.WARNING]
        assert "Table vehicles failed: boom" in caplog.text
        assert "LENGTH_CHANGED" in caplog.text

    def test_aborted_logs_error(self, caplog: pytest.LogCaptureFixture) -> None:
        result = ReconciliationResult.aborted(ErrorKind.CATALOG_UNAVAILABLE, "connection refused")
        with caplog.at_level(logging.INFO, logger="schema_reconciler.coordinator"):
            log_result(result)

        (record,) = caplog.records
        assert record.levelno == logging.ERROR
        assert "CATALOG_UNAVAILABLE" in record.getMessage()
