"""Reconciler configuration loaded from environment variables."""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url

logger = logging.getLogger(__name__)

# Variables a MySQL deployment is expected to set.  Missing values
# are reported, never fatal.
_REQUIRED_ENV_VARS: tuple[tuple[str, str], ...] = (
    ("host", "DB_HOST"),
    ("user", "DB_USER"),
    ("password", "DB_PASS"),
    ("name", "DB_NAME"),
)


class PlatformEnv(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PROD = "prod"


class SchemaProfile(str, Enum):
    """Which set of declared tables the reconciler maintains.

    ``standard`` is the seven-table layout the application reads and writes.
    ``extended`` additionally maintains the legacy ``suppliers``,
    ``requestimages`` and ``tiredetails`` tables still present on some
    deployments.
    """

    STANDARD = "standard"
    EXTENDED = "extended"


class DatabaseSettings(BaseSettings):
    """Connection settings read from the ``DB_`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    host: str | None = None
    port: int = 3306
    user: str | None = None
    password: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("DB_PASS", "DB_PASSWORD"),
    )
    name: str | None = None

    # Full SQLAlchemy URL; takes precedence over the discrete fields above.
    url: str | None = None
    driver: str = "mysql+aiomysql"

    # Hosted MySQL requires TLS but does not present a verifiable chain.
    ssl: bool = False
    ssl_verify: bool = False

    connect_timeout: int = 10
    pool_size: int = 5
    max_overflow: int = 5

    @field_validator("password", mode="before")
    @classmethod
    def _wrap_password(cls, v: str | None) -> SecretStr | None:
        if v is None or isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    def sqlalchemy_url(self) -> URL:
        """Return the async SQLAlchemy URL for this configuration."""
        if self.url:
            return make_url(self.url)
        return URL.create(
            drivername=self.driver,
            username=self.user,
            password=self.password.get_secret_value() if self.password else None,
            host=self.host or "localhost",
            port=self.port,
            database=self.name,
        )

    def is_sqlite(self) -> bool:
        return self.sqlalchemy_url().get_backend_name() == "sqlite"

    @property
    def schema_name(self) -> str | None:
        """Catalog schema the declared tables live in.

        For MySQL this is the database name; SQLite has a single ``main``
        schema and is addressed without qualification.
        """
        if self.is_sqlite():
            return None
        return self.sqlalchemy_url().database

    def missing_required(self) -> list[str]:
        """Return the names of required ``DB_*`` variables that are unset."""
        if self.url:
            return []
        return [env_name for field_name, env_name in _REQUIRED_ENV_VARS if not getattr(self, field_name)]


class Settings(BaseSettings):
    """Reconciler settings loaded from environment variables with RECONCILER_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="RECONCILER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    env: PlatformEnv = PlatformEnv.DEV
    debug: bool = False

    schema_profile: SchemaProfile = SchemaProfile.STANDARD

    # Overall budget for one reconciliation pass, inspection included.
    timeout_seconds: float | None = Field(default=60.0, gt=0)

    # Logging
    structured_logging: bool = False
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info(
            "Loaded settings for environment: %s (profile=%s)",
            settings.env.value,
            settings.schema_profile.value,
        )

    return settings
