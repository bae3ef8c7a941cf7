"""Liveness and readiness probes.

Both endpoints live at the application root.  ``/health`` always returns
HTTP 200 so that load-balancers see the process as alive; ``/ready`` gates
traffic on database reachability and reports the startup reconciliation.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from api import __version__
from api.dependencies import EngineDep, ReconciliationDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_reachable(engine: AsyncEngine) -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("DB health check failed: %s", exc)
        return False
    return True


def _schema_state(request: Request, result: ReconciliationDep) -> str:
    if not getattr(request.app.state, "reconcile_enabled", False):
        return "disabled"
    if result is None:
        return "pending"
    return result.status.value.lower()


@router.get("/health")
async def health(
    request: Request,
    engine: EngineDep,
    result: ReconciliationDep,
) -> dict[str, Any]:
    """Return service health.

    ``db`` is ``ok`` or ``degraded``; ``schema`` is ``disabled``,
    ``pending``, or the lower-cased status of the startup reconciliation.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "db": "ok" if await _database_reachable(engine) else "degraded",
        "schema": _schema_state(request, result),
    }


# ---------------------------------------------------------------------------
# Readiness probe
# ---------------------------------------------------------------------------


@router.get("/ready")
async def readiness_probe(
    request: Request,
    engine: EngineDep,
    result: ReconciliationDep,
) -> JSONResponse:
    """Kubernetes-style readiness probe.

    Returns HTTP 503 with ``"not_ready"`` if the database is unreachable.
    Otherwise HTTP 200 with ``"degraded"`` when the startup reconciliation
    finished without full success, and ``"ready"`` in every other case.
    """
    checks: dict[str, str] = {"db": "ok", "schema": _schema_state(request, result)}
    overall = "ready"

    if not await _database_reachable(engine):
        checks["db"] = "unavailable"
        overall = "not_ready"
    elif result is not None and not result.success:
        overall = "degraded"

    return JSONResponse(
        status_code=503 if overall == "not_ready" else 200,
        content={
            "status": overall,
            "version": __version__,
            "checks": checks,
        },
    )
