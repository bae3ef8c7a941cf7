"""Read-only catalog access through SQLAlchemy's runtime inspection API.

Every call creates a fresh :class:`~sqlalchemy.engine.reflection.Inspector`
so no reflected state is cached between calls, let alone between
reconciliation runs.  Identifiers passed in always come from the static
table declarations.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from sqlalchemy import inspect
from sqlalchemy.engine import Connection, Inspector
from sqlalchemy.exc import DBAPIError, NoSuchTableError
from sqlalchemy.ext.asyncio import AsyncConnection

from schema_reconciler.catalog.types import classify_type
from schema_reconciler.errors import CatalogUnavailableError
from schema_reconciler.models.observed import (
    ObservedColumn,
    ObservedForeignKey,
    ObservedIndex,
    ObservedTable,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CatalogInspector:
    """Reads tables, columns, indexes and foreign keys from the live catalog.

    Parameters
    ----------
    connection:
        An open async connection.  The inspector never commits or issues DDL.
    schema:
        Schema (MySQL database) to inspect; ``None`` for the connection's
        default schema.
    """

    def __init__(self, connection: AsyncConnection, schema: str | None = None) -> None:
        self._connection = connection
        self._schema = schema

    @property
    def schema(self) -> str | None:
        return self._schema

    async def _run(self, fn: Callable[[Inspector, Connection], T]) -> T:
        def _call(sync_conn: Connection) -> T:
            return fn(inspect(sync_conn), sync_conn)

        try:
            if self._connection.in_transaction():
                return await self._connection.run_sync(_call)
            async with self._connection.begin():
                return await self._connection.run_sync(_call)
        except NoSuchTableError:
            raise
        except (DBAPIError, OSError) as exc:
            raise CatalogUnavailableError(f"Catalog read failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def list_tables(self) -> set[str]:
        """Names of all tables in the schema.  An empty schema is not an error."""
        names = await self._run(lambda insp, _conn: insp.get_table_names(schema=self._schema))
        return set(names)

    async def table_exists(self, table: str) -> bool:
        return await self._run(lambda insp, _conn: insp.has_table(table, schema=self._schema))

    async def describe_table(self, table: str) -> ObservedTable | None:
        """Return the observed structure of *table*, or ``None`` if it is absent."""
        try:
            return await self._run(lambda insp, conn: self._describe(insp, conn, table))
        except NoSuchTableError:
            # Dropped between the existence check and reflection.
            return None

    async def observe(self, tables: Iterable[str]) -> dict[str, ObservedTable]:
        """Describe every existing table among *tables*, keyed by name."""
        existing = await self.list_tables()
        observed: dict[str, ObservedTable] = {}
        for name in tables:
            if name not in existing:
                continue
            described = await self.describe_table(name)
            if described is not None:
                observed[name] = described
        logger.debug(
            "Observed %d of the requested tables in schema %s",
            len(observed),
            self._schema or "<default>",
        )
        return observed

    # ------------------------------------------------------------------
    # Reflection (runs on the sync side of the connection)
    # ------------------------------------------------------------------

    def _describe(self, insp: Inspector, conn: Connection, table: str) -> ObservedTable | None:
        if not insp.has_table(table, schema=self._schema):
            return None

        pk = insp.get_pk_constraint(table, schema=self._schema) or {}
        pk_columns = {c.lower() for c in pk.get("constrained_columns") or []}

        columns = [
            self._observed_column(col, conn, pk_columns)
            for col in insp.get_columns(table, schema=self._schema)
        ]

        return ObservedTable(
            name=table,
            columns=columns,
            indexes=self._observed_indexes(insp, table),
            foreign_keys=[
                ObservedForeignKey(
                    name=fk.get("name"),
                    columns=tuple(fk["constrained_columns"]),
                    referred_table=fk["referred_table"],
                    referred_columns=tuple(fk["referred_columns"]),
                    on_delete=(fk.get("options") or {}).get("ondelete"),
                )
                for fk in insp.get_foreign_keys(table, schema=self._schema)
            ],
        )

    @staticmethod
    def _observed_column(col: dict[str, Any], conn: Connection, pk_columns: set[str]) -> ObservedColumn:
        type_ = col["type"]
        info = classify_type(type_)
        default = col.get("default")
        return ObservedColumn(
            name=col["name"],
            data_type=type_.compile(dialect=conn.dialect),
            kind=info.kind,
            length=info.length,
            precision=info.precision,
            scale=info.scale,
            values=info.values,
            nullable=bool(col.get("nullable", True)),
            default=str(default) if default is not None else None,
            primary_key=col["name"].lower() in pk_columns,
        )

    def _observed_indexes(self, insp: Inspector, table: str) -> list[ObservedIndex]:
        """Merge indexes and unique constraints, de-duplicated by column list."""
        found: dict[tuple[tuple[str, ...], bool], ObservedIndex] = {}

        for idx in insp.get_indexes(table, schema=self._schema):
            columns = tuple(c for c in idx.get("column_names") or [] if c is not None)
            if not columns:
                # Expression indexes cannot satisfy a column-list declaration.
                continue
            entry = ObservedIndex(name=idx.get("name"), columns=columns, unique=bool(idx.get("unique")))
            found.setdefault((entry.column_key(), entry.unique), entry)

        try:
            uniques = insp.get_unique_constraints(table, schema=self._schema)
        except NotImplementedError:
            uniques = []
        for uc in uniques:
            entry = ObservedIndex(name=uc.get("name"), columns=tuple(uc["column_names"]), unique=True)
            found.setdefault((entry.column_key(), True), entry)

        return sorted(found.values(), key=lambda i: (i.column_key(), not i.unique))
