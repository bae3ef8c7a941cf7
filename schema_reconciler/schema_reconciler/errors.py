"""Exception hierarchy for schema reconciliation.

Catalog and declaration errors abort a reconciliation attempt before any DDL
is issued.  Operation failures are recorded per table and never abort the
remaining operations.
"""

from __future__ import annotations


class ReconcilerError(Exception):
    """Base class for every error raised by the reconciler."""


class CatalogUnavailableError(ReconcilerError):
    """The database could not be reached, authenticated to, or introspected.

    A table that does not exist is **not** an error; it is the normal state
    of an empty database.
    """


class SchemaDeclarationError(ReconcilerError):
    """The static table declarations are internally inconsistent."""


class DependencyCycleError(SchemaDeclarationError):
    """Raised when declared table dependencies contain one or more cycles.

    Attributes
    ----------
    cycles:
        A list of cycles, where each cycle is a list of table names forming
        the loop (e.g. ``[["a", "b"]]`` means a -> b -> a).
    """

    def __init__(self, cycles: list[list[str]]) -> None:
        self.cycles = cycles
        formatted = "; ".join(" -> ".join(c + [c[0]]) for c in cycles)
        super().__init__(f"Cyclic table dependencies detected: {formatted}")


class UnknownReferenceError(SchemaDeclarationError):
    """A table declares a foreign key or dependency on an undeclared table."""

    def __init__(self, table: str, referenced: str) -> None:
        self.table = table
        self.referenced = referenced
        super().__init__(f"Table '{table}' references '{referenced}' which is not part of the declared schema")


class OperationFailedError(ReconcilerError):
    """A single DDL operation could not be applied for a reason other than
    the object already existing."""
