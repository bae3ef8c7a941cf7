"""API-layer configuration loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class APISettings(BaseSettings):
    """FastAPI application settings.

    All values can be overridden via environment variables prefixed with
    ``API_`` (e.g. ``API_HOST=0.0.0.0``) or through a ``.env`` file in the
    working directory.  Database and reconciler options live in
    :class:`schema_reconciler.config.Settings`.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Run schema reconciliation during startup.
    reconcile_on_startup: bool = True

    # Accept traffic while reconciliation runs instead of waiting for it.
    reconcile_in_background: bool = False


def load_api_settings(**overrides: object) -> APISettings:
    """Load API settings from environment, with optional overrides for testing."""
    return APISettings(**overrides)  # type: ignore[arg-type]
