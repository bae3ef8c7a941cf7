"""Async SQLAlchemy engine construction and scoped connection acquisition.

Supports MySQL (production) and SQLite (local and tests).  The backend is
chosen from the configured URL:

  - ``mysql+aiomysql://``   → pooled MySQL engine, optional TLS
  - ``sqlite+aiosqlite://`` → SQLite engine from :mod:`sqlite_adapter`
"""

from __future__ import annotations

import logging
import ssl
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from schema_reconciler.config import DatabaseSettings
from schema_reconciler.errors import CatalogUnavailableError

logger = logging.getLogger(__name__)


def build_ssl_context(verify: bool) -> ssl.SSLContext:
    """TLS context for the MySQL driver.

    Hosted MySQL providers commonly terminate TLS with certificates that do
    not chain to a public root, so verification is off unless requested.
    """
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def get_engine(settings: DatabaseSettings) -> AsyncEngine:
    """Create an async engine for the configured database.

    Parameters
    ----------
    settings:
        Connection settings.  ``settings.url`` wins over the discrete
        host/user/password/name fields.

    Returns
    -------
    AsyncEngine
        A configured engine.  Creating it does not open a connection.
    """
    url = settings.sqlalchemy_url()

    if url.get_backend_name() == "sqlite":
        from schema_reconciler.state.sqlite_adapter import get_local_engine

        return get_local_engine(url.database or ":memory:")

    connect_args: dict[str, object] = {"connect_timeout": settings.connect_timeout}
    if settings.ssl:
        connect_args["ssl"] = build_ssl_context(settings.ssl_verify)

    engine = create_async_engine(
        url,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_timeout=settings.connect_timeout,
        echo=False,
        connect_args=connect_args,
    )
    logger.info(
        "Created async engine host=%s db=%s ssl=%s pool_size=%d max_overflow=%d",
        url.host,
        url.database,
        settings.ssl,
        settings.pool_size,
        settings.max_overflow,
    )
    return engine


@asynccontextmanager
async def catalog_connection(engine: AsyncEngine) -> AsyncGenerator[AsyncConnection, None]:
    """Yield one connection for a reconciliation pass and always release it.

    Raises
    ------
    CatalogUnavailableError
        If the connection cannot be established (network, DNS, auth).
    """
    try:
        conn = await engine.connect()
    except (DBAPIError, OSError) as exc:
        raise CatalogUnavailableError(f"Could not connect to database: {exc}") from exc

    try:
        yield conn
    finally:
        await conn.close()
