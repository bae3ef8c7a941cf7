"""FastAPI dependency injection for the database engine and the
startup reconciliation result."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine

from schema_reconciler.config import Settings
from schema_reconciler.models.result import ReconciliationResult
from schema_reconciler.state.database import get_engine

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Database engine
# ---------------------------------------------------------------------------

_engine: AsyncEngine | None = None


def init_engine(settings: Settings) -> AsyncEngine:
    """Create the module-level async engine."""
    global _engine  # noqa: PLW0603
    _engine = get_engine(settings.database)
    return _engine


async def dispose_engine() -> None:
    """Dispose the engine connection pool."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        logger.info("Database engine disposed")


def get_db_engine() -> AsyncEngine:
    """Return the engine initialised during application startup."""
    if _engine is None:
        raise RuntimeError(
            "Database engine has not been initialised. Ensure init_engine() is called during application startup."
        )
    return _engine


EngineDep = Annotated[AsyncEngine, Depends(get_db_engine)]

# ---------------------------------------------------------------------------
# Reconciliation state
# ---------------------------------------------------------------------------


def get_reconciliation_result(request: Request) -> ReconciliationResult | None:
    """Result of the startup reconciliation, or ``None`` while it is pending
    or when it was not run."""
    return getattr(request.app.state, "reconciliation", None)


ReconciliationDep = Annotated[ReconciliationResult | None, Depends(get_reconciliation_result)]
