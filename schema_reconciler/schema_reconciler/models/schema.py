"""Desired-schema models: the static declaration the reconciler enforces.

All models are frozen.  Table declarations are compiled once at import time
and shared by every reconciliation pass, so nothing downstream may mutate
them.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

# MySQL identifier limit; also applied to generated constraint names.
MAX_IDENTIFIER_LENGTH = 64


class ColumnType(str, Enum):
    """Logical column types, independent of any SQL dialect."""

    INTEGER = "integer"
    STRING = "string"
    TEXT = "text"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    ENUM = "enum"
    DATE = "date"
    TIMESTAMP = "timestamp"


class OnDelete(str, Enum):
    """Referential action applied when the referenced row is deleted."""

    NONE = "none"
    CASCADE = "cascade"
    RESTRICT = "restrict"


class ColumnSpec(BaseModel):
    """A single declared column."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    type: ColumnType
    length: int | None = Field(default=None, gt=0, description="Character bound for STRING columns.")
    precision: int | None = Field(default=None, gt=0)
    scale: int | None = Field(default=None, ge=0)
    values: tuple[str, ...] = Field(default=(), description="Allowed literals for ENUM columns.")
    nullable: bool = True
    default: bool | int | Decimal | str | None = None
    default_current_timestamp: bool = False
    primary_key: bool = False
    autoincrement: bool = False

    @model_validator(mode="after")
    def _validate_type_parameters(self) -> ColumnSpec:
        if self.type is ColumnType.STRING and self.length is None:
            raise ValueError(f"String column '{self.name}' requires a length")
        if self.type is ColumnType.DECIMAL and self.precision is None:
            raise ValueError(f"Decimal column '{self.name}' requires a precision")
        if self.type is ColumnType.ENUM:
            if not self.values:
                raise ValueError(f"Enum column '{self.name}' requires at least one value")
            if self.default is not None and self.default not in self.values:
                raise ValueError(f"Default {self.default!r} of enum column '{self.name}' is not an allowed value")
        if self.default is not None and self.default_current_timestamp:
            raise ValueError(f"Column '{self.name}' cannot have both a literal and a current-timestamp default")
        if self.default_current_timestamp and self.type is not ColumnType.TIMESTAMP:
            raise ValueError(f"Only timestamp columns may default to the current timestamp ('{self.name}')")
        if self.autoincrement and not (self.primary_key and self.type is ColumnType.INTEGER):
            raise ValueError(f"Auto-increment column '{self.name}' must be an integer primary key")
        return self

    @property
    def has_default(self) -> bool:
        return self.default is not None or self.default_current_timestamp

    def describe_type(self) -> str:
        """Human-readable type string used in logs and drift messages."""
        if self.type is ColumnType.STRING:
            return f"string({self.length})"
        if self.type is ColumnType.DECIMAL:
            return f"decimal({self.precision}, {self.scale or 0})"
        if self.type is ColumnType.ENUM:
            return f"enum({len(self.values)} values)"
        return self.type.value


class IndexSpec(BaseModel):
    """A declared secondary index (unique or not)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    columns: tuple[str, ...] = Field(..., min_length=1)
    unique: bool = False


class ForeignKeySpec(BaseModel):
    """A single-column foreign key."""

    model_config = ConfigDict(frozen=True)

    column: str = Field(..., min_length=1)
    references_table: str = Field(..., min_length=1)
    references_column: str = "id"
    on_delete: OnDelete = OnDelete.NONE

    def constraint_name(self, table: str) -> str:
        """Deterministic constraint name, e.g. ``fk_requests_userId``."""
        return f"fk_{table}_{self.column}"[:MAX_IDENTIFIER_LENGTH]


class TableSpec(BaseModel):
    """Full declaration of one table.

    ``depends_on`` lists tables that must be created first even though no
    foreign key links them (backup tables mirror their source tables).
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    columns: tuple[ColumnSpec, ...] = Field(..., min_length=1)
    indexes: tuple[IndexSpec, ...] = ()
    foreign_keys: tuple[ForeignKeySpec, ...] = ()
    depends_on: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _validate_references(self) -> TableSpec:
        seen: set[str] = set()
        for column in self.columns:
            key = column.name.lower()
            if key in seen:
                raise ValueError(f"Table '{self.name}' declares column '{column.name}' twice")
            seen.add(key)

        for index in self.indexes:
            for col in index.columns:
                if col.lower() not in seen:
                    raise ValueError(f"Index '{index.name}' on '{self.name}' uses unknown column '{col}'")

        for fk in self.foreign_keys:
            if fk.column.lower() not in seen:
                raise ValueError(f"Foreign key on '{self.name}' uses unknown column '{fk.column}'")

        if sum(1 for c in self.columns if c.primary_key) > 1:
            raise ValueError(f"Table '{self.name}' declares more than one primary key column")
        return self

    def column(self, name: str) -> ColumnSpec | None:
        """Return the column called *name* (case-insensitive), if declared."""
        lowered = name.lower()
        for column in self.columns:
            if column.name.lower() == lowered:
                return column
        return None

    def referenced_tables(self) -> set[str]:
        """Every table this one must be created after."""
        refs = {fk.references_table for fk in self.foreign_keys}
        refs.update(self.depends_on)
        refs.discard(self.name)
        return refs
