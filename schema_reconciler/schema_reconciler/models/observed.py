"""Observed-schema models populated from the live database catalog."""

from __future__ import annotations

from pydantic import BaseModel, Field

from schema_reconciler.models.schema import ColumnType


class ObservedColumn(BaseModel):
    """A column as reported by the catalog."""

    name: str
    data_type: str = Field(..., description="Type as rendered by the database dialect.")
    kind: ColumnType | None = Field(
        default=None,
        description="Logical type the catalog type maps to; None when unrecognised.",
    )
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    values: tuple[str, ...] = ()
    nullable: bool = True
    default: str | None = None
    primary_key: bool = False


class ObservedIndex(BaseModel):
    """An index or unique constraint present on a table."""

    name: str | None = None
    columns: tuple[str, ...]
    unique: bool = False

    def column_key(self) -> tuple[str, ...]:
        return tuple(c.lower() for c in self.columns)


class ObservedForeignKey(BaseModel):
    """A foreign key constraint present on a table."""

    name: str | None = None
    columns: tuple[str, ...]
    referred_table: str
    referred_columns: tuple[str, ...]
    on_delete: str | None = None

    def column_key(self) -> tuple[tuple[str, ...], str, tuple[str, ...]]:
        return (
            tuple(c.lower() for c in self.columns),
            self.referred_table.lower(),
            tuple(c.lower() for c in self.referred_columns),
        )


class ObservedTable(BaseModel):
    """Snapshot of one existing table, recomputed on every reconciliation run."""

    name: str
    columns: list[ObservedColumn] = Field(default_factory=list)
    indexes: list[ObservedIndex] = Field(default_factory=list)
    foreign_keys: list[ObservedForeignKey] = Field(default_factory=list)

    def column(self, name: str) -> ObservedColumn | None:
        lowered = name.lower()
        for column in self.columns:
            if column.name.lower() == lowered:
                return column
        return None

    def has_column(self, name: str) -> bool:
        return self.column(name) is not None
