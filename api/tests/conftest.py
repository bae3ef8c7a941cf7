"""Shared fixtures for API tests.

Each test gets its own SQLite file and a fresh application whose lifespan
is entered explicitly, so startup reconciliation runs exactly as it does
under uvicorn.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from api.main import create_app

_ENV_VARS = (
    "DB_HOST",
    "DB_USER",
    "DB_PASS",
    "DB_PASSWORD",
    "DB_NAME",
    "DB_URL",
    "API_RECONCILE_ON_STARTUP",
    "API_RECONCILE_IN_BACKGROUND",
    "RECONCILER_SCHEMA_PROFILE",
    "RECONCILER_TIMEOUT_SECONDS",
    "RECONCILER_STRUCTURED_LOGGING",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """Startup replaces the root handlers; put the originals back."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def db_url(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    url = f"sqlite+aiosqlite:///{tmp_path / 'api.db'}"
    monkeypatch.setenv("DB_URL", url)
    return url


@pytest.fixture
def unreachable_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Point DB_URL at a directory, which SQLite cannot open."""
    url = f"sqlite+aiosqlite:///{tmp_path}"
    monkeypatch.setenv("DB_URL", url)
    return url


@pytest_asyncio.fixture
async def started_app() -> AsyncGenerator[FastAPI, None]:
    """A fresh application with its lifespan entered."""
    app = create_app()
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(started_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=started_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
