"""Desired schema, observed schema, plan and result models."""

from schema_reconciler.models.observed import (
    ObservedColumn,
    ObservedForeignKey,
    ObservedIndex,
    ObservedTable,
)
from schema_reconciler.models.plan import (
    AddColumn,
    AddForeignKey,
    AddIndex,
    CreateTable,
    DriftType,
    Operation,
    OperationKind,
    ReconciliationPlan,
    SchemaDriftWarning,
)
from schema_reconciler.models.result import (
    ErrorKind,
    OperationOutcome,
    OperationResult,
    ReconciliationResult,
    ReconciliationStatus,
    TableOutcome,
    TableResult,
)
from schema_reconciler.models.schema import (
    ColumnSpec,
    ColumnType,
    ForeignKeySpec,
    IndexSpec,
    OnDelete,
    TableSpec,
)

__all__ = [
    "AddColumn",
    "AddForeignKey",
    "AddIndex",
    "ColumnSpec",
    "ColumnType",
    "CreateTable",
    "DriftType",
    "ErrorKind",
    "ForeignKeySpec",
    "IndexSpec",
    "ObservedColumn",
    "ObservedForeignKey",
    "ObservedIndex",
    "ObservedTable",
    "OnDelete",
    "Operation",
    "OperationKind",
    "OperationOutcome",
    "OperationResult",
    "ReconciliationPlan",
    "ReconciliationResult",
    "ReconciliationStatus",
    "SchemaDriftWarning",
    "TableOutcome",
    "TableResult",
    "TableSpec",
]
