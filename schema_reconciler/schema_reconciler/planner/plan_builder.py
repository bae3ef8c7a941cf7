"""Deterministic reconciliation planner.

Compares the declared tables against the observed catalog and emits the
additive operations needed to close the gap:

* a :class:`CreateTable` for every declared table that does not exist;
* an :class:`AddColumn` per missing column, in declared column order;
* an :class:`AddIndex` per missing index, matched by column list;
* an :class:`AddForeignKey` per missing foreign key, matched by
  ``(column, referenced table, referenced column)``.

Objects that exist but differ from their declaration are reported as
:class:`SchemaDriftWarning` records and never produce an operation.  The same
inputs always yield the same plan, including its ``plan_id``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from decimal import Decimal

from schema_reconciler.catalog.types import kinds_compatible
from schema_reconciler.errors import SchemaDeclarationError
from schema_reconciler.graph.dependency_graph import creation_order
from schema_reconciler.models.observed import ObservedColumn, ObservedForeignKey, ObservedTable
from schema_reconciler.models.plan import (
    AddColumn,
    AddForeignKey,
    AddIndex,
    CreateTable,
    DriftType,
    ReconciliationPlan,
    SchemaDriftWarning,
)
from schema_reconciler.models.schema import (
    ColumnSpec,
    ColumnType,
    ForeignKeySpec,
    IndexSpec,
    OnDelete,
    TableSpec,
)

logger = logging.getLogger(__name__)

# Literal used to fill existing rows when a NOT NULL column is added.
_BACKFILL_DEFAULTS: dict[ColumnType, object] = {
    ColumnType.INTEGER: 0,
    ColumnType.DECIMAL: Decimal("0"),
    ColumnType.STRING: "",
    ColumnType.BOOLEAN: False,
}

# Referential actions that behave like "no action" on delete.
_NON_CASCADING_ACTIONS = frozenset({"", "NONE", "NO ACTION", "RESTRICT"})


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_plan(
    desired: Sequence[TableSpec],
    observed: Mapping[str, ObservedTable],
) -> ReconciliationPlan:
    """Build the additive plan that takes *observed* to *desired*.

    Parameters
    ----------
    desired:
        Declared tables.  Every foreign key and ``depends_on`` entry must
        name another declared table.
    observed:
        Existing tables keyed by name; absent tables are simply missing.

    Returns
    -------
    ReconciliationPlan
        Operations in table creation order plus any drift warnings.

    Raises
    ------
    SchemaDeclarationError
        If a table is declared twice.
    UnknownReferenceError
        If a table references an undeclared table.
    DependencyCycleError
        If declared dependencies form a cycle.
    """
    by_name: dict[str, TableSpec] = {}
    for spec in desired:
        if spec.name in by_name:
            raise SchemaDeclarationError(f"Table '{spec.name}' is declared more than once")
        by_name[spec.name] = spec

    order = creation_order(desired)
    observed_by_key = {name.lower(): table for name, table in observed.items()}

    operations: list[CreateTable | AddColumn | AddIndex | AddForeignKey] = []
    warnings: list[SchemaDriftWarning] = []

    for name in order:
        spec = by_name[name]
        current = observed_by_key.get(name.lower())
        if current is None:
            operations.append(CreateTable(table=spec))
            continue

        for column in spec.columns:
            existing = current.column(column.name)
            if existing is None:
                to_add, warning = backfill_column(spec.name, column)
                operations.append(AddColumn(table_name=spec.name, column=to_add))
                if warning is not None:
                    warnings.append(warning)
            else:
                warnings.extend(column_drift(spec.name, column, existing))

        indexes, index_warnings = missing_indexes(spec, current)
        operations.extend(AddIndex(table_name=spec.name, index=idx) for idx in indexes)
        warnings.extend(index_warnings)

        foreign_keys, fk_warnings = missing_foreign_keys(spec, current)
        operations.extend(AddForeignKey(table_name=spec.name, foreign_key=fk) for fk in foreign_keys)
        warnings.extend(fk_warnings)

    plan = ReconciliationPlan.from_operations(order, operations, warnings)
    logger.debug(
        "Built plan %s: %d operation(s), %d drift warning(s)",
        plan.plan_id[:12],
        len(plan.operations),
        len(plan.drift_warnings),
    )
    return plan


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------


def backfill_column(table: str, column: ColumnSpec) -> tuple[ColumnSpec, SchemaDriftWarning | None]:
    """Return the column definition to use when adding *column* to an
    existing table.

    Existing rows need a value for a NOT NULL column.  When the declaration
    has no default, a type-appropriate literal is supplied.  Text, date and
    timestamp columns have no safe literal, so they are added as nullable and
    a drift warning records the difference.
    """
    if column.nullable or column.has_default or column.primary_key:
        return column, None

    if column.type is ColumnType.ENUM:
        return column.model_copy(update={"default": column.values[0]}), None

    literal = _BACKFILL_DEFAULTS.get(column.type)
    if literal is not None:
        return column.model_copy(update={"default": literal}), None

    warning = SchemaDriftWarning(
        table=table,
        object_name=column.name,
        drift_type=DriftType.ADDED_AS_NULLABLE,
        expected="NOT NULL",
        actual="NULL",
        message=(
            f"Column '{table}.{column.name}' ({column.describe_type()}) is declared NOT NULL "
            f"without a default; it was added as nullable so existing rows stay valid."
        ),
    )
    return column.model_copy(update={"nullable": True}), warning


def column_drift(table: str, desired: ColumnSpec, observed: ObservedColumn) -> list[SchemaDriftWarning]:
    """Differences between an existing column and its declaration.

    Extra observed columns, defaults, and the nullability of primary-key
    columns are not compared.
    """
    drifts: list[SchemaDriftWarning] = []

    def _drift(drift_type: DriftType, expected: str, actual: str) -> None:
        drifts.append(
            SchemaDriftWarning(
                table=table,
                object_name=desired.name,
                drift_type=drift_type,
                expected=expected,
                actual=actual,
                message=f"Column '{table}.{desired.name}' differs: expected {expected}, found {actual}.",
            )
        )

    if not kinds_compatible(desired.type, observed):
        _drift(DriftType.TYPE_CHANGED, desired.describe_type(), observed.data_type)
        return drifts

    if (
        desired.type is ColumnType.STRING
        and observed.kind is ColumnType.STRING
        and observed.length is not None
        and observed.length != desired.length
    ):
        _drift(DriftType.LENGTH_CHANGED, str(desired.length), str(observed.length))

    if desired.type is ColumnType.DECIMAL and observed.precision is not None:
        expected_scale = desired.scale or 0
        if observed.precision != desired.precision or (observed.scale or 0) != expected_scale:
            _drift(
                DriftType.PRECISION_CHANGED,
                f"({desired.precision}, {expected_scale})",
                f"({observed.precision}, {observed.scale or 0})",
            )

    if desired.type is ColumnType.ENUM and observed.kind is ColumnType.ENUM and observed.values != desired.values:
        _drift(DriftType.ENUM_VALUES_CHANGED, ", ".join(desired.values), ", ".join(observed.values))

    if not (desired.primary_key or observed.primary_key) and desired.nullable != observed.nullable:
        _drift(
            DriftType.NULLABILITY_CHANGED,
            "NULL" if desired.nullable else "NOT NULL",
            "NULL" if observed.nullable else "NOT NULL",
        )

    return drifts


# ---------------------------------------------------------------------------
# Indexes and foreign keys
# ---------------------------------------------------------------------------


def index_satisfied(index: IndexSpec, observed: ObservedTable) -> bool:
    """Whether an observed index covers *index*.

    Indexes match on their column list; names are ignored.  A unique
    observed index satisfies a non-unique declaration.
    """
    key = tuple(c.lower() for c in index.columns)
    return any(obs.column_key() == key and (obs.unique or not index.unique) for obs in observed.indexes)


def find_foreign_key(fk: ForeignKeySpec, observed: ObservedTable) -> ObservedForeignKey | None:
    """Observed foreign key on the same column and target, if any."""
    key = ((fk.column.lower(),), fk.references_table.lower(), (fk.references_column.lower(),))
    return next((obs for obs in observed.foreign_keys if obs.column_key() == key), None)


def missing_indexes(spec: TableSpec, observed: ObservedTable) -> tuple[list[IndexSpec], list[SchemaDriftWarning]]:
    """Declared indexes with no observed index on the same column list.

    A unique declaration matched only by a non-unique index is drift, not a
    missing index.
    """
    missing: list[IndexSpec] = []
    warnings: list[SchemaDriftWarning] = []

    for index in spec.indexes:
        if index_satisfied(index, observed):
            continue
        key = tuple(c.lower() for c in index.columns)
        matches = [obs for obs in observed.indexes if obs.column_key() == key]
        if matches:
            warnings.append(
                SchemaDriftWarning(
                    table=spec.name,
                    object_name=index.name,
                    drift_type=DriftType.INDEX_NOT_UNIQUE,
                    expected="UNIQUE",
                    actual="NON-UNIQUE",
                    message=(
                        f"Index '{index.name}' on {spec.name}({', '.join(index.columns)}) is declared "
                        f"unique but only a non-unique index exists."
                    ),
                )
            )
            continue
        missing.append(index)

    return missing, warnings


def _normalize_on_delete(action: str | None) -> str:
    value = (action or "").strip().upper()
    return OnDelete.NONE.value if value in _NON_CASCADING_ACTIONS else value.lower()


def missing_foreign_keys(
    spec: TableSpec, observed: ObservedTable
) -> tuple[list[ForeignKeySpec], list[SchemaDriftWarning]]:
    """Declared foreign keys with no observed equivalent."""
    missing: list[ForeignKeySpec] = []
    warnings: list[SchemaDriftWarning] = []

    for fk in spec.foreign_keys:
        match = find_foreign_key(fk, observed)
        if match is None:
            missing.append(fk)
            continue

        expected = _normalize_on_delete(fk.on_delete.value)
        actual = _normalize_on_delete(match.on_delete)
        if expected != actual:
            warnings.append(
                SchemaDriftWarning(
                    table=spec.name,
                    object_name=fk.column,
                    drift_type=DriftType.ON_DELETE_CHANGED,
                    expected=expected,
                    actual=actual,
                    message=(
                        f"Foreign key {spec.name}.{fk.column} -> {fk.references_table} has "
                        f"ON DELETE {actual}, expected {expected}."
                    ),
                )
            )

    return missing, warnings
