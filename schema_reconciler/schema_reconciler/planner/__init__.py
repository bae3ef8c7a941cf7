"""Reconciliation planning."""

from schema_reconciler.planner.plan_builder import (
    backfill_column,
    build_plan,
    column_drift,
    find_foreign_key,
    index_satisfied,
    missing_foreign_keys,
    missing_indexes,
)

__all__ = [
    "backfill_column",
    "build_plan",
    "column_drift",
    "find_foreign_key",
    "index_satisfied",
    "missing_foreign_keys",
    "missing_indexes",
]
