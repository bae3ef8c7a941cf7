"""Mapping between reflected SQLAlchemy types and logical column types."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import types as sqltypes
from sqlalchemy.dialects import mysql

from schema_reconciler.models.observed import ObservedColumn
from schema_reconciler.models.schema import ColumnType


_MYSQL_TEXT_TYPES = (mysql.TINYTEXT, mysql.MEDIUMTEXT, mysql.LONGTEXT)


@dataclass(frozen=True)
class TypeInfo:
    """Logical view of a reflected column type."""

    kind: ColumnType | None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    values: tuple[str, ...] = ()


def classify_type(type_: sqltypes.TypeEngine) -> TypeInfo:
    """Classify a reflected type.

    Order matters: ``Enum`` and ``Text`` are both subclasses of ``String``.
    MySQL's ``TINYTEXT``, ``MEDIUMTEXT`` and ``LONGTEXT`` are built on
    ``String`` rather than ``Text``.  MySQL reports ``BOOL`` columns as
    ``TINYINT(1)``.
    """
    if isinstance(type_, sqltypes.Enum):
        return TypeInfo(ColumnType.ENUM, values=tuple(type_.enums))
    if isinstance(type_, sqltypes.Boolean):
        return TypeInfo(ColumnType.BOOLEAN)
    if isinstance(type_, (sqltypes.Text, *_MYSQL_TEXT_TYPES)):
        return TypeInfo(ColumnType.TEXT)
    if isinstance(type_, sqltypes.String):
        return TypeInfo(ColumnType.STRING, length=type_.length)
    if isinstance(type_, sqltypes.Float):
        return TypeInfo(None)
    if isinstance(type_, sqltypes.Numeric):
        return TypeInfo(ColumnType.DECIMAL, precision=type_.precision, scale=type_.scale)
    if isinstance(type_, sqltypes.Integer):
        if type(type_).__name__ == "TINYINT" and getattr(type_, "display_width", None) == 1:
            return TypeInfo(ColumnType.BOOLEAN)
        return TypeInfo(ColumnType.INTEGER)
    if isinstance(type_, sqltypes.DateTime):
        return TypeInfo(ColumnType.TIMESTAMP)
    if isinstance(type_, sqltypes.Date):
        return TypeInfo(ColumnType.DATE)
    return TypeInfo(None)


def kinds_compatible(expected: ColumnType, observed: ObservedColumn) -> bool:
    """Whether an observed column can stand in for a declared logical type.

    Dialects without a native enum store enum columns as ``VARCHAR``; those
    are accepted for enum declarations.  ``TINYINT`` of any width is
    accepted for booleans.
    """
    if observed.kind is expected:
        return True
    if expected is ColumnType.ENUM:
        return observed.kind is ColumnType.STRING
    if expected is ColumnType.BOOLEAN:
        return observed.kind is ColumnType.INTEGER and observed.data_type.upper().startswith("TINYINT")
    return False
