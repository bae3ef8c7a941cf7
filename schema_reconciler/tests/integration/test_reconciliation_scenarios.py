"""End-to-end reconciliation scenarios against file-backed SQLite databases.

Each scenario prepares a database state, runs the reconciler, and checks
both the reported outcome and the resulting catalog.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from schema_reconciler.catalog.inspector import CatalogInspector
from schema_reconciler.config import SchemaProfile
from schema_reconciler.coordinator import preview_plan, reconcile_schema
from schema_reconciler.declared import desired_schema, get_table
from schema_reconciler.models.plan import AddColumn, AddIndex, CreateTable, DriftType
from schema_reconciler.models.result import OperationOutcome, ReconciliationStatus, TableOutcome
from schema_reconciler.models.schema import ColumnType, TableSpec
from schema_reconciler.state.sqlite_adapter import get_local_engine

STANDARD_NAMES = {t.name for t in desired_schema()}

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _without_column(spec: TableSpec, column: str) -> TableSpec:
    """*spec* as an older deployment had it: without *column* or its indexes."""
    return spec.model_copy(
        update={
            "columns": tuple(c for c in spec.columns if c.name != column),
            "indexes": tuple(i for i in spec.indexes if column not in i.columns),
        }
    )


async def _tables(engine: AsyncEngine) -> set[str]:
    async with engine.connect() as conn:
        return await CatalogInspector(conn).list_tables()


async def _execute_sql(engine: AsyncEngine, *statements: str) -> None:
    async with engine.begin() as conn:
        for statement in statements:
            await conn.execute(text(statement))


_PLACEHOLDERS: dict[ColumnType, object] = {
    ColumnType.INTEGER: 1,
    ColumnType.STRING: "x",
    ColumnType.TEXT: "x",
    ColumnType.DECIMAL: 0,
    ColumnType.BOOLEAN: 0,
    ColumnType.DATE: "2024-01-01",
    ColumnType.TIMESTAMP: "2024-01-01 00:00:00",
}


async def _insert_row(engine: AsyncEngine, spec: TableSpec) -> None:
    """Insert one row into *spec*, filling every NOT NULL column."""
    columns = [c for c in spec.columns if not c.nullable]
    params = {
        f"p{i}": c.values[0] if c.type is ColumnType.ENUM else _PLACEHOLDERS[c.type] for i, c in enumerate(columns)
    }
    names = ", ".join(f'"{c.name}"' for c in columns)
    binds = ", ".join(f":{key}" for key in params)
    async with engine.begin() as conn:
        await conn.execute(text(f"INSERT INTO {spec.name} ({names}) VALUES ({binds})"), params)


# ---------------------------------------------------------------------------
# Fresh and partially initialised databases
# ---------------------------------------------------------------------------


class TestEmptyDatabase:
    @pytest.mark.asyncio
    async def test_creates_every_table(self, sqlite_engine: AsyncEngine) -> None:
        result = await reconcile_schema(sqlite_engine)

        assert result.success is True
        assert result.status is ReconciliationStatus.SUCCESS
        assert set(result.tables_with(TableOutcome.CREATED)) == STANDARD_NAMES
        assert await _tables(sqlite_engine) == STANDARD_NAMES

    @pytest.mark.asyncio
    async def test_referenced_tables_created_first(self, sqlite_engine: AsyncEngine) -> None:
        result = await reconcile_schema(sqlite_engine)
        order = [op.table for op in result.operations]
        assert order.index("users") < order.index("vehicles") < order.index("requests")
        assert order.index("requests") < order.index("request_images") < order.index("request_images_backup")
        assert order.index("requests") < order.index("requestbackup")


class TestPartiallyInitialised:
    @pytest.mark.asyncio
    async def test_existing_tables_left_alone(self, sqlite_engine: AsyncEngine) -> None:
        await reconcile_schema(sqlite_engine, [get_table("users"), get_table("vehicles")])

        result = await reconcile_schema(sqlite_engine)

        assert result.success is True
        assert sorted(result.tables_with(TableOutcome.ALREADY_EXISTS)) == ["users", "vehicles"]
        assert len(result.tables_with(TableOutcome.CREATED)) == 5

    @pytest.mark.asyncio
    async def test_missing_column_added(self, sqlite_engine: AsyncEngine) -> None:
        await reconcile_schema(
            sqlite_engine,
            [get_table("users"), get_table("vehicles"), _without_column(get_table("requests"), "orderNotes")],
        )

        plan = await preview_plan(sqlite_engine)
        patches = [op for op in plan.operations if op.table_name == "requests"]
        assert len(patches) == 1
        assert isinstance(patches[0], AddColumn)
        assert patches[0].column.name == "orderNotes"

        result = await reconcile_schema(sqlite_engine)

        assert result.success is True
        assert result.table("requests").outcome is TableOutcome.PATCHED
        assert (await preview_plan(sqlite_engine)).is_empty

    @pytest.mark.asyncio
    async def test_hand_made_table_is_patched(self, sqlite_engine: AsyncEngine) -> None:
        await _execute_sql(
            sqlite_engine,
            "CREATE TABLE supplier (id INTEGER NOT NULL PRIMARY KEY, name VARCHAR(100) NOT NULL, "
            "email VARCHAR(50) NOT NULL)",
            "INSERT INTO supplier (name, email) VALUES ('Tyre Co', 'sales@tyre.example')",
        )

        plan = await preview_plan(sqlite_engine)
        supplier_ops = plan.operations_for("supplier")
        assert [op.column.name for op in supplier_ops if isinstance(op, AddColumn)] == [
            "phone",
            "address",
            "formsfree_key",
        ]
        assert {op.index.name for op in supplier_ops if isinstance(op, AddIndex)} == {
            "idx_supplier_email",
            "idx_supplier_name",
        }

        result = await reconcile_schema(sqlite_engine)

        assert result.success is True
        assert result.table("supplier").outcome is TableOutcome.PATCHED
        assert (await preview_plan(sqlite_engine)).is_empty
        async with sqlite_engine.connect() as conn:
            row = (await conn.execute(text("SELECT name, phone, formsfree_key FROM supplier"))).one()
        assert tuple(row) == ("Tyre Co", "", "")


# ---------------------------------------------------------------------------
# Idempotence and safety
# ---------------------------------------------------------------------------


class TestIdempotence:
    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, sqlite_engine: AsyncEngine) -> None:
        first = await reconcile_schema(sqlite_engine)
        second = await reconcile_schema(sqlite_engine)

        assert first.success and second.success
        assert set(second.tables_with(TableOutcome.ALREADY_EXISTS)) == STANDARD_NAMES
        assert second.operations == []

    @pytest.mark.asyncio
    async def test_plan_is_stable(self, sqlite_engine: AsyncEngine) -> None:
        await reconcile_schema(sqlite_engine)
        first = await preview_plan(sqlite_engine)
        second = await preview_plan(sqlite_engine)
        assert first.plan_id == second.plan_id

    @pytest.mark.asyncio
    async def test_concurrent_reconcilers(self, tmp_path: Path) -> None:
        db_path = tmp_path / "shared.db"
        engines = [get_local_engine(db_path), get_local_engine(db_path)]
        try:
            results = await asyncio.gather(*(reconcile_schema(engine) for engine in engines))
        finally:
            for engine in engines:
                await engine.dispose()

        assert all(result.success for result in results)
        engine = get_local_engine(db_path)
        try:
            assert await _tables(engine) == STANDARD_NAMES
            assert (await preview_plan(engine)).is_empty
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_never_drops_or_alters(self, sqlite_engine: AsyncEngine) -> None:
        await reconcile_schema(sqlite_engine)
        await _execute_sql(
            sqlite_engine,
            "CREATE TABLE audit_log (id INTEGER PRIMARY KEY, entry TEXT)",
            "ALTER TABLE users ADD COLUMN nickname VARCHAR(20)",
            "INSERT INTO users (azure_id, email) VALUES ('az-1', 'a@example.com')",
        )

        result = await reconcile_schema(sqlite_engine)

        assert result.operations == []
        assert "audit_log" in await _tables(sqlite_engine)
        async with sqlite_engine.connect() as conn:
            observed = await CatalogInspector(conn).describe_table("users")
            count = (await conn.execute(text("SELECT COUNT(*) FROM users"))).scalar()
        assert observed.has_column("nickname")
        assert count == 1

    @pytest.mark.asyncio
    async def test_drift_reported_not_corrected(self, sqlite_engine: AsyncEngine) -> None:
        await _execute_sql(
            sqlite_engine,
            "CREATE TABLE users (id INTEGER NOT NULL PRIMARY KEY, azure_id VARCHAR(100) NOT NULL, "
            "email VARCHAR(100) NOT NULL, name VARCHAR(255), role VARCHAR(50), "
            "costCentre VARCHAR(100), department VARCHAR(100))",
        )

        result = await reconcile_schema(sqlite_engine)

        assert result.success is True
        assert result.table("users").outcome is TableOutcome.PATCHED
        (warning,) = result.drift_warnings
        assert warning.drift_type is DriftType.LENGTH_CHANGED
        assert (warning.table, warning.object_name) == ("users", "email")
        async with sqlite_engine.connect() as conn:
            email = (await CatalogInspector(conn).describe_table("users")).column("email")
        assert email.length == 100


# ---------------------------------------------------------------------------
# Partial failure
# ---------------------------------------------------------------------------


class TestPartialFailure:
    @pytest.mark.asyncio
    async def test_one_table_fails_others_succeed(self, sqlite_engine: AsyncEngine) -> None:
        # SQLite cannot add a column with a CURRENT_TIMESTAMP default to a
        # table that already holds rows.
        older_backup = _without_column(get_table("requestbackup"), "deletedAt")
        await reconcile_schema(
            sqlite_engine,
            [get_table("users"), get_table("vehicles"), get_table("requests"), older_backup],
        )
        await _insert_row(sqlite_engine, older_backup)

        result = await reconcile_schema(sqlite_engine)

        assert result.success is False
        assert result.status is ReconciliationStatus.PARTIAL
        assert result.error is None
        assert result.tables_with(TableOutcome.FAILED) == ["requestbackup"]
        assert set(result.tables_with(TableOutcome.CREATED)) == {
            "supplier",
            "request_images",
            "request_images_backup",
        }
        failed = [op for op in result.operations if op.outcome is OperationOutcome.FAILED]
        assert failed[0].description == "ADD COLUMN requestbackup.deletedAt"
        assert all(op.table == "requestbackup" for op in failed)

    @pytest.mark.asyncio
    async def test_missing_foreign_key_on_sqlite(self, sqlite_engine: AsyncEngine) -> None:
        bare = get_table("vehicles").model_copy(update={"foreign_keys": ()})
        await reconcile_schema(sqlite_engine, [get_table("users"), bare])

        result = await reconcile_schema(sqlite_engine)

        assert result.table("vehicles").outcome is TableOutcome.FAILED
        assert result.table("requests").outcome is TableOutcome.CREATED


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class TestExtendedProfile:
    @pytest.mark.asyncio
    async def test_adds_legacy_tables(self, sqlite_engine: AsyncEngine) -> None:
        await reconcile_schema(sqlite_engine)

        result = await reconcile_schema(sqlite_engine, desired_schema(SchemaProfile.EXTENDED))

        assert result.success is True
        assert sorted(result.tables_with(TableOutcome.CREATED)) == ["requestimages", "suppliers", "tiredetails"]
        assert set(result.tables_with(TableOutcome.ALREADY_EXISTS)) == STANDARD_NAMES

    @pytest.mark.asyncio
    async def test_plan_creates_in_dependency_order(self, sqlite_engine: AsyncEngine) -> None:
        plan = await preview_plan(sqlite_engine, desired_schema(SchemaProfile.EXTENDED))
        names = [op.table_name for op in plan.operations if isinstance(op, CreateTable)]
        assert names.index("requests") < names.index("tiredetails")
        assert names.index("requests") < names.index("requestimages")
        assert len(names) == 10
