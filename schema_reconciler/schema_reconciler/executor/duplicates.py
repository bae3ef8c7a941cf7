"""Recognition of "object already exists" database errors.

Another process may create the same table, column, index or foreign key
between our existence check and our DDL.  Those errors mean the desired
state was reached and are treated as success.
"""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError

# MySQL server error codes for duplicate schema objects.
DUPLICATE_OBJECT_ERROR_CODES = frozenset(
    {
        1050,  # ER_TABLE_EXISTS_ERROR
        1060,  # ER_DUP_FIELDNAME
        1061,  # ER_DUP_KEYNAME
        1022,  # ER_DUP_KEY (duplicate constraint name on older servers)
        1826,  # ER_FK_DUP_NAME
    }
)

_DUPLICATE_MESSAGE_FRAGMENTS = (
    "already exists",
    "duplicate column name",
    "duplicate key name",
    "duplicate foreign key constraint name",
    "errno: 121",
)


def _error_code(exc: BaseException) -> int | None:
    args = getattr(exc, "args", ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def is_duplicate_object_error(exc: BaseException) -> bool:
    """Return ``True`` if *exc* reports that a schema object already exists.

    Accepts either a SQLAlchemy :class:`DBAPIError` (the driver exception is
    read from ``orig``) or a raw driver exception.
    """
    driver_exc = exc.orig if isinstance(exc, DBAPIError) and exc.orig is not None else exc

    if _error_code(driver_exc) in DUPLICATE_OBJECT_ERROR_CODES:
        return True

    message = str(driver_exc).lower()
    return any(fragment in message for fragment in _DUPLICATE_MESSAGE_FRAGMENTS)
