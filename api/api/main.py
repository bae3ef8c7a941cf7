"""FastAPI application entry-point for the schema reconciler host."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from api import __version__
from api.config import load_api_settings
from api.dependencies import dispose_engine, init_engine
from api.routers import health
from schema_reconciler.config import Settings, load_settings
from schema_reconciler.coordinator import reconcile_schema
from schema_reconciler.declared import desired_schema
from schema_reconciler.logging_config import configure_logging

logger = logging.getLogger(__name__)


async def _run_reconciliation(app: FastAPI, engine: AsyncEngine, settings: Settings) -> None:
    app.state.reconciliation = await reconcile_schema(
        engine,
        desired_schema(settings.schema_profile),
        schema=settings.database.schema_name,
        timeout_seconds=settings.timeout_seconds,
    )


def _log_background_failure(task: asyncio.Task[None]) -> None:
    """Retrieve and log an exception that escaped a background reconciliation."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background schema reconciliation crashed: %s", exc, exc_info=exc)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup / shutdown lifecycle.

    On startup:
    - Configure logging.
    - Initialise the async database engine.
    - Reconcile the schema, either before accepting traffic or as a
      background task.  The outcome is stored on ``app.state.reconciliation``
      and never prevents the application from starting.

    On shutdown:
    - Cancel an unfinished background reconciliation.
    - Dispose the database engine connection pool.
    """
    api_settings = load_api_settings()
    settings = load_settings()
    configure_logging(settings.log_level, structured=settings.structured_logging)

    missing = settings.database.missing_required()
    if missing:
        logger.warning("Missing database environment variables: %s", ", ".join(missing))

    engine = init_engine(settings)
    logger.info(
        "Database engine initialised (%s)",
        settings.database.sqlalchemy_url().render_as_string(hide_password=True),
    )

    app.state.reconciliation = None
    app.state.reconcile_enabled = api_settings.reconcile_on_startup
    task: asyncio.Task[None] | None = None

    if api_settings.reconcile_on_startup:
        if api_settings.reconcile_in_background:
            task = asyncio.create_task(_run_reconciliation(app, engine, settings))
            task.add_done_callback(_log_background_failure)
            logger.info("Schema reconciliation started in background")
        else:
            await _run_reconciliation(app, engine, settings)
    else:
        logger.info("Schema reconciliation on startup is disabled")

    yield

    # Shutdown.
    if task is not None and not task.done():
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    await dispose_engine()
    logger.info("Application shutdown complete")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Construct and configure the FastAPI application."""
    app = FastAPI(
        title="Tyre Schema Reconciler",
        description="Host process that reconciles the tyre management database schema at startup.",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(health.router)

    @app.exception_handler(SQLAlchemyError)
    async def _database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "Database unavailable"})

    return app


app = create_app()
