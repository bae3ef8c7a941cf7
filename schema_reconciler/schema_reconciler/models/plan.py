"""Reconciliation plan models.

A plan is an ordered list of **additive** operations.  There is deliberately
no drop, rename or modify operation type: the reconciler can only create
tables and add columns, indexes and foreign keys.

Plans are deterministic: the same desired schema and observed state always
produce the same operations in the same order and the same ``plan_id``.
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from schema_reconciler.models.schema import ColumnSpec, ForeignKeySpec, IndexSpec, TableSpec

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def compute_deterministic_id(*parts: str) -> str:
    """Derive a deterministic SHA-256 hex ID from an ordered sequence of strings."""
    hasher = hashlib.sha256()
    for part in parts:
        hasher.update(part.encode("utf-8"))
        hasher.update(b"\x00")  # Null-byte domain separator prevents collisions
    return hasher.hexdigest()


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


class OperationKind(str, Enum):
    """The only kinds of change the reconciler may apply."""

    CREATE_TABLE = "create_table"
    ADD_COLUMN = "add_column"
    ADD_INDEX = "add_index"
    ADD_FOREIGN_KEY = "add_foreign_key"


class CreateTable(BaseModel):
    """Create a table with its full column, index and foreign-key set."""

    kind: Literal[OperationKind.CREATE_TABLE] = OperationKind.CREATE_TABLE
    table: TableSpec

    @property
    def table_name(self) -> str:
        return self.table.name

    def describe(self) -> str:
        return f"CREATE TABLE {self.table.name}"


class AddColumn(BaseModel):
    """Add one missing column to an existing table."""

    kind: Literal[OperationKind.ADD_COLUMN] = OperationKind.ADD_COLUMN
    table_name: str
    column: ColumnSpec

    def describe(self) -> str:
        return f"ADD COLUMN {self.table_name}.{self.column.name}"


class AddIndex(BaseModel):
    """Add one missing index to an existing table."""

    kind: Literal[OperationKind.ADD_INDEX] = OperationKind.ADD_INDEX
    table_name: str
    index: IndexSpec

    def describe(self) -> str:
        cols = ", ".join(self.index.columns)
        return f"ADD {'UNIQUE ' if self.index.unique else ''}INDEX {self.table_name}.{self.index.name} ({cols})"


class AddForeignKey(BaseModel):
    """Add one missing foreign key to an existing table."""

    kind: Literal[OperationKind.ADD_FOREIGN_KEY] = OperationKind.ADD_FOREIGN_KEY
    table_name: str
    foreign_key: ForeignKeySpec

    def describe(self) -> str:
        fk = self.foreign_key
        return (
            f"ADD FOREIGN KEY {self.table_name}.{fk.column} -> "
            f"{fk.references_table}.{fk.references_column}"
        )


Operation = Annotated[
    CreateTable | AddColumn | AddIndex | AddForeignKey,
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Drift
# ---------------------------------------------------------------------------


class DriftType(str, Enum):
    TYPE_CHANGED = "TYPE_CHANGED"
    LENGTH_CHANGED = "LENGTH_CHANGED"
    PRECISION_CHANGED = "PRECISION_CHANGED"
    NULLABILITY_CHANGED = "NULLABILITY_CHANGED"
    ENUM_VALUES_CHANGED = "ENUM_VALUES_CHANGED"
    INDEX_NOT_UNIQUE = "INDEX_NOT_UNIQUE"
    ON_DELETE_CHANGED = "ON_DELETE_CHANGED"
    ADDED_AS_NULLABLE = "ADDED_AS_NULLABLE"


class SchemaDriftWarning(BaseModel):
    """An existing object whose definition differs from the declaration.

    Drift is reported and never corrected: correcting it would require a
    modifying ALTER, which the reconciler does not issue.
    """

    table: str
    object_name: str = Field(..., description="Column, index or foreign-key column involved.")
    drift_type: DriftType
    expected: str = ""
    actual: str = ""
    message: str = ""


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------


class ReconciliationPlan(BaseModel):
    """Ordered additive operations that bring the observed schema to the
    declared one, plus the drift found along the way."""

    plan_id: str = Field(..., min_length=1)
    table_order: list[str] = Field(
        default_factory=list,
        description="Every declared table in dependency (creation) order.",
    )
    operations: list[Operation] = Field(default_factory=list)
    drift_warnings: list[SchemaDriftWarning] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.operations

    def operations_for(self, table: str) -> list[CreateTable | AddColumn | AddIndex | AddForeignKey]:
        return [op for op in self.operations if op.table_name == table]

    @classmethod
    def from_operations(
        cls,
        table_order: list[str],
        operations: list[CreateTable | AddColumn | AddIndex | AddForeignKey],
        drift_warnings: list[SchemaDriftWarning] | None = None,
    ) -> ReconciliationPlan:
        """Build a plan whose ID is derived from its content."""
        plan_id = compute_deterministic_id(*table_order, *(op.describe() for op in operations))
        return cls(
            plan_id=plan_id,
            table_order=list(table_order),
            operations=list(operations),
            drift_warnings=list(drift_warnings or []),
        )
