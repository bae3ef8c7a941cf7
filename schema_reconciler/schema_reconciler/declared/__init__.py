"""Static table declarations."""

from schema_reconciler.declared.tables import (
    LEGACY_TABLES,
    REQUEST_STATUSES,
    STANDARD_TABLES,
    desired_schema,
    get_table,
)

__all__ = [
    "LEGACY_TABLES",
    "REQUEST_STATUSES",
    "STANDARD_TABLES",
    "desired_schema",
    "get_table",
]
