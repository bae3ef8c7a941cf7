"""Shared fixtures for schema reconciler tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from schema_reconciler.state.sqlite_adapter import get_local_engine

_DB_ENV_VARS = (
    "DB_HOST",
    "DB_PORT",
    "DB_USER",
    "DB_PASS",
    "DB_PASSWORD",
    "DB_NAME",
    "DB_URL",
    "DB_SSL",
    "DB_SSL_VERIFY",
    "RECONCILER_ENV",
    "RECONCILER_SCHEMA_PROFILE",
    "RECONCILER_TIMEOUT_SECONDS",
    "RECONCILER_STRUCTURED_LOGGING",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Isolate every test from the caller's database environment and .env file."""
    for name in _DB_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine, disposed after the test."""
    engine = get_local_engine(tmp_path / "tyres.db")
    yield engine
    await engine.dispose()
