"""Shared fixtures for CLI tests."""

from __future__ import annotations

from pathlib import Path

import pytest

_ENV_VARS = (
    "DB_HOST",
    "DB_USER",
    "DB_PASS",
    "DB_PASSWORD",
    "DB_NAME",
    "DB_URL",
    "RECONCILER_SCHEMA_PROFILE",
    "RECONCILER_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """URL of a fresh SQLite database file."""
    return f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"


@pytest.fixture
def unreachable_url(tmp_path: Path) -> str:
    """URL pointing at a directory, which SQLite cannot open."""
    return f"sqlite+aiosqlite:///{tmp_path}"
