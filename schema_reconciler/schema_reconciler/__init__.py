"""Idempotent, additive schema reconciliation for the tyre management database."""

from schema_reconciler.coordinator import (
    check_connection,
    preview_plan,
    reconcile_schema,
    run_startup_reconciliation,
)
from schema_reconciler.declared.tables import desired_schema
from schema_reconciler.models.result import ReconciliationResult, ReconciliationStatus, TableOutcome

__version__ = "0.3.0"

__all__ = [
    "ReconciliationResult",
    "ReconciliationStatus",
    "TableOutcome",
    "__version__",
    "check_connection",
    "desired_schema",
    "preview_plan",
    "reconcile_schema",
    "run_startup_reconciliation",
]
