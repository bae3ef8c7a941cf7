"""Reconciliation result models returned to the host application."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, computed_field

from schema_reconciler.models.plan import OperationKind, SchemaDriftWarning


class OperationOutcome(str, Enum):
    APPLIED = "APPLIED"
    ALREADY_PRESENT = "ALREADY_PRESENT"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class TableOutcome(str, Enum):
    CREATED = "CREATED"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    PATCHED = "PATCHED"
    FAILED = "FAILED"


class ReconciliationStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


class ErrorKind(str, Enum):
    """Why an entire reconciliation attempt failed before or during execution."""

    CATALOG_UNAVAILABLE = "CATALOG_UNAVAILABLE"
    DEPENDENCY_CYCLE = "DEPENDENCY_CYCLE"
    UNKNOWN_REFERENCE = "UNKNOWN_REFERENCE"
    INVALID_DECLARATION = "INVALID_DECLARATION"
    TIMEOUT = "TIMEOUT"


class OperationResult(BaseModel):
    """Outcome of a single plan operation."""

    table: str
    kind: OperationKind
    description: str
    outcome: OperationOutcome
    reason: str | None = None
    duration_ms: float = Field(default=0.0, ge=0.0)


class TableResult(BaseModel):
    """Aggregated outcome for one declared table."""

    table: str
    outcome: TableOutcome
    reasons: list[str] = Field(default_factory=list)


class ReconciliationResult(BaseModel):
    """Everything one reconciliation pass did, per table and per operation.

    ``success`` is true only when no table failed, the pass finished within
    its deadline, and no catalog or declaration error aborted it.
    """

    plan_id: str | None = None
    tables: list[TableResult] = Field(default_factory=list)
    operations: list[OperationResult] = Field(default_factory=list)
    drift_warnings: list[SchemaDriftWarning] = Field(default_factory=list)
    timed_out: bool = False
    error: str | None = None
    error_kind: ErrorKind | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        if self.error is not None or self.timed_out:
            return False
        return all(t.outcome is not TableOutcome.FAILED for t in self.tables)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> ReconciliationStatus:
        if self.success:
            return ReconciliationStatus.SUCCESS
        if self.error is not None or self.timed_out:
            return ReconciliationStatus.FAILED
        if all(t.outcome is TableOutcome.FAILED for t in self.tables):
            return ReconciliationStatus.FAILED
        return ReconciliationStatus.PARTIAL

    def table(self, name: str) -> TableResult | None:
        for entry in self.tables:
            if entry.table == name:
                return entry
        return None

    def tables_with(self, outcome: TableOutcome) -> list[str]:
        return [t.table for t in self.tables if t.outcome is outcome]

    def counts(self) -> dict[str, int]:
        """Number of tables per outcome, keyed by outcome value."""
        totals = {outcome.value: 0 for outcome in TableOutcome}
        for entry in self.tables:
            totals[entry.outcome.value] += 1
        return totals

    def summary(self) -> dict[str, Any]:
        """Compact, log-friendly view of the result."""
        duration_ms = None
        if self.finished_at is not None:
            duration_ms = round((self.finished_at - self.started_at).total_seconds() * 1000, 1)
        return {
            "status": self.status.value,
            "success": self.success,
            "tables": self.counts(),
            "operations": len(self.operations),
            "drift_warnings": len(self.drift_warnings),
            "timed_out": self.timed_out,
            "error": self.error,
            "duration_ms": duration_ms,
        }

    @classmethod
    def aborted(cls, kind: ErrorKind, message: str, started_at: datetime | None = None) -> ReconciliationResult:
        """Result for an attempt that failed before any DDL ran."""
        return cls(
            error=message,
            error_kind=kind,
            timed_out=kind is ErrorKind.TIMEOUT,
            started_at=started_at or datetime.now(UTC),
            finished_at=datetime.now(UTC),
        )
