"""SQLite engine for local runs and tests.

Backed by ``aiosqlite``.  The reconciler treats SQLite like any other
dialect, with two differences that surface in results rather than code
paths: foreign keys cannot be added to an existing table, and index names
share one namespace per database.

Several reconcilers may open the same file at once (multiple app processes
on one host, or the concurrency tests).  Each connection therefore waits on
a locked database instead of failing with ``database is locked``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger(__name__)

# How long a connection waits for another reconciler's DDL to commit.
BUSY_TIMEOUT_MS = 30_000

_MEMORY = ":memory:"


def _connection_pragmas(in_memory: bool) -> tuple[str, ...]:
    pragmas = [
        # ON DELETE CASCADE on the image tables only fires with this enabled.
        "PRAGMA foreign_keys=ON",
        f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}",
    ]
    if not in_memory:
        # Readers keep working while another connection runs DDL.
        pragmas.append("PRAGMA journal_mode=WAL")
    return tuple(pragmas)


def _sqlite_url(db_path: Path | str) -> tuple[str, bool]:
    if str(db_path) == _MEMORY:
        return f"sqlite+aiosqlite:///{_MEMORY}", True
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{path}", False


def get_local_engine(db_path: Path | str = "./tyre_schema.db") -> AsyncEngine:
    """Create an async engine for a SQLite file, or ``:memory:``.

    Parent directories of a file path are created.  Every new connection
    enables foreign keys and a busy timeout of :data:`BUSY_TIMEOUT_MS`;
    file databases also switch to WAL journaling.
    """
    url, in_memory = _sqlite_url(db_path)
    pragmas = _connection_pragmas(in_memory)

    engine = create_async_engine(url, echo=False, connect_args={"check_same_thread": False})

    @event.listens_for(engine.sync_engine, "connect")
    def _apply_pragmas(dbapi_conn: Any, _: object) -> None:
        cursor = dbapi_conn.cursor()
        try:
            for pragma in pragmas:
                cursor.execute(pragma)
        finally:
            cursor.close()

    logger.info("Created SQLite engine: %s", url)
    return engine
