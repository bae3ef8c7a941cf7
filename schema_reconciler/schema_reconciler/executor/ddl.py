"""DDL construction for reconciliation operations.

Operations are turned into SQLAlchemy schema constructs (``CreateTable``,
``CreateIndex``, ``AddConstraint``) compiled by the target dialect, so the
same plan renders correctly for MySQL and SQLite.  Each call builds a fresh
:class:`~sqlalchemy.MetaData`; nothing is shared between statements.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKeyConstraint,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    func,
    text,
)
from sqlalchemy import types as sqltypes
from sqlalchemy.engine import Dialect
from sqlalchemy.schema import AddConstraint, CreateColumn, CreateIndex, CreateTable, ExecutableDDLElement
from sqlalchemy.sql.elements import ClauseElement, TextClause

from schema_reconciler.models.plan import AddColumn, AddForeignKey, AddIndex
from schema_reconciler.models.plan import CreateTable as CreateTableOp
from schema_reconciler.models.schema import (
    MAX_IDENTIFIER_LENGTH,
    ColumnSpec,
    ColumnType,
    ForeignKeySpec,
    IndexSpec,
    OnDelete,
    TableSpec,
)

# Dialects whose index names are scoped to a table rather than the schema.
_TABLE_SCOPED_INDEX_DIALECTS = frozenset({"mysql", "mariadb"})

_MYSQL_TABLE_OPTIONS = {"mysql_engine": "InnoDB", "mysql_charset": "utf8mb4"}

_SIMPLE_TYPES: dict[ColumnType, type[sqltypes.TypeEngine]] = {
    ColumnType.INTEGER: Integer,
    ColumnType.TEXT: Text,
    ColumnType.BOOLEAN: Boolean,
    ColumnType.DATE: Date,
    ColumnType.TIMESTAMP: DateTime,
}


def column_type(table: str, column: ColumnSpec) -> sqltypes.TypeEngine:
    """SQLAlchemy type for a declared column."""
    if column.type is ColumnType.STRING:
        return String(column.length)
    if column.type is ColumnType.DECIMAL:
        return sqltypes.DECIMAL(precision=column.precision, scale=column.scale or 0)
    if column.type is ColumnType.ENUM:
        return Enum(*column.values, name=f"{table}_{column.name}", create_constraint=False)
    simple = _SIMPLE_TYPES.get(column.type)
    if simple is not None:
        return simple()
    raise ValueError(f"Unsupported column type: {column.type}")


def server_default(column: ColumnSpec) -> str | ClauseElement | None:
    """Server-side default clause for a declared column, if any."""
    if column.default_current_timestamp:
        return func.current_timestamp()
    value = column.default
    if value is None:
        return None
    if isinstance(value, bool):
        return text("1" if value else "0")
    if isinstance(value, str):
        return value
    return text(str(value))


def build_column(table: str, column: ColumnSpec) -> Column:
    return Column(
        column.name,
        column_type(table, column),
        primary_key=column.primary_key,
        nullable=column.nullable,
        autoincrement=column.autoincrement if column.primary_key else "auto",
        server_default=server_default(column),
    )


def _on_delete(fk: ForeignKeySpec) -> str | None:
    if fk.on_delete is OnDelete.NONE:
        return None
    return fk.on_delete.value.upper()


class DDLRenderer:
    """Builds executable DDL for one dialect and schema.

    Parameters
    ----------
    dialect:
        Dialect of the target connection.
    schema:
        Schema to qualify table names with; ``None`` for the default schema.
    """

    def __init__(self, dialect: Dialect, schema: str | None = None) -> None:
        self._dialect = dialect
        self._schema = schema

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @property
    def supports_add_foreign_key(self) -> bool:
        """Whether foreign keys can be added to an existing table."""
        return bool(self._dialect.supports_alter)

    def physical_index_name(self, table: str, index: IndexSpec) -> str:
        """Name the index is created under.

        MySQL scopes index names to their table, so the declared name is used
        as is.  Elsewhere index names share one namespace per schema and are
        prefixed with the table name.
        """
        if self._dialect.name in _TABLE_SCOPED_INDEX_DIALECTS:
            return index.name
        return f"{table}_{index.name}"[:MAX_IDENTIFIER_LENGTH]

    # ------------------------------------------------------------------
    # Table construction
    # ------------------------------------------------------------------

    def _metadata(self) -> MetaData:
        return MetaData(schema=self._schema)

    def _stub_table(self, metadata: MetaData, name: str, *columns: str) -> Table:
        """Minimal table carrying just the columns a statement mentions."""
        key = f"{self._schema}.{name}" if self._schema else name
        if key in metadata.tables:
            table = metadata.tables[key]
            for col in columns:
                if col not in table.c:
                    table.append_column(Column(col, Integer()))
            return table
        return Table(name, metadata, *(Column(col, Integer()) for col in columns))

    def _foreign_key(self, table: str, fk: ForeignKeySpec) -> ForeignKeyConstraint:
        return ForeignKeyConstraint(
            [fk.column],
            [f"{fk.references_table}.{fk.references_column}"],
            name=fk.constraint_name(table),
            ondelete=_on_delete(fk),
        )

    def build_table(self, spec: TableSpec, metadata: MetaData | None = None) -> Table:
        """Full :class:`Table` for *spec*, indexes and foreign keys included."""
        metadata = metadata if metadata is not None else self._metadata()
        for fk in spec.foreign_keys:
            if fk.references_table != spec.name:
                self._stub_table(metadata, fk.references_table, fk.references_column)

        table = Table(
            spec.name,
            metadata,
            *(build_column(spec.name, col) for col in spec.columns),
            *(self._foreign_key(spec.name, fk) for fk in spec.foreign_keys),
            **_MYSQL_TABLE_OPTIONS,
        )
        for index in spec.indexes:
            Index(
                self.physical_index_name(spec.name, index),
                *(table.c[col] for col in index.columns),
                unique=index.unique,
            )
        return table

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def create_table(self, spec: TableSpec) -> CreateTable:
        """``CREATE TABLE IF NOT EXISTS`` without its indexes."""
        return CreateTable(self.build_table(spec), if_not_exists=True)

    def create_indexes(self, spec: TableSpec) -> list[CreateIndex]:
        """``CREATE INDEX`` statements for every index declared on *spec*."""
        table = self.build_table(spec)
        return [
            CreateIndex(index, if_not_exists=self._index_if_not_exists)
            for index in sorted(table.indexes, key=lambda i: i.name or "")
        ]

    @property
    def _index_if_not_exists(self) -> bool:
        return self._dialect.name not in _TABLE_SCOPED_INDEX_DIALECTS

    def create_index(self, table: str, index: IndexSpec) -> CreateIndex:
        stub = self._stub_table(self._metadata(), table, *index.columns)
        idx = Index(
            self.physical_index_name(table, index),
            *(stub.c[col] for col in index.columns),
            unique=index.unique,
        )
        return CreateIndex(idx, if_not_exists=self._index_if_not_exists)

    def add_column(self, table: str, column: ColumnSpec) -> TextClause:
        """``ALTER TABLE ... ADD COLUMN`` for one column."""
        metadata = self._metadata()
        target = Table(table, metadata, build_column(table, column))
        column_sql = CreateColumn(target.c[column.name]).compile(dialect=self._dialect)
        table_sql = self._dialect.identifier_preparer.format_table(target)
        return text(f"ALTER TABLE {table_sql} ADD COLUMN {column_sql}")

    def add_foreign_key(self, table: str, fk: ForeignKeySpec) -> AddConstraint:
        metadata = self._metadata()
        self._stub_table(metadata, fk.references_table, fk.references_column)
        local = self._stub_table(metadata, table, fk.column)
        constraint = self._foreign_key(table, fk)
        local.append_constraint(constraint)
        return AddConstraint(constraint)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def statements_for(
        self, operation: CreateTableOp | AddColumn | AddIndex | AddForeignKey
    ) -> list[ExecutableDDLElement | TextClause]:
        if isinstance(operation, CreateTableOp):
            return [self.create_table(operation.table), *self.create_indexes(operation.table)]
        if isinstance(operation, AddColumn):
            return [self.add_column(operation.table_name, operation.column)]
        if isinstance(operation, AddIndex):
            return [self.create_index(operation.table_name, operation.index)]
        return [self.add_foreign_key(operation.table_name, operation.foreign_key)]

    def render(self, operation: CreateTableOp | AddColumn | AddIndex | AddForeignKey) -> list[str]:
        """SQL text for *operation*, for display only."""
        rendered: list[str] = []
        for statement in self.statements_for(operation):
            if isinstance(statement, TextClause):
                rendered.append(statement.text)
            else:
                rendered.append(str(statement.compile(dialect=self._dialect)).strip())
        return rendered
