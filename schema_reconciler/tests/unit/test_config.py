"""Unit tests for schema_reconciler.config."""

from __future__ import annotations

import pytest
from pydantic import SecretStr, ValidationError

from schema_reconciler.config import (
    DatabaseSettings,
    PlatformEnv,
    SchemaProfile,
    Settings,
    load_settings,
)

# ---------------------------------------------------------------------------
# DatabaseSettings
# ---------------------------------------------------------------------------


class TestDatabaseSettings:
    def test_defaults(self):
        settings = DatabaseSettings()
        assert settings.host is None
        assert settings.port == 3306
        assert settings.driver == "mysql+aiomysql"
        assert settings.ssl is False
        assert settings.ssl_verify is False

    def test_reads_db_prefixed_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("DB_HOST", "db.internal")
        monkeypatch.setenv("DB_USER", "tyres")
        monkeypatch.setenv("DB_PASS", "s3cret")
        monkeypatch.setenv("DB_NAME", "tyre_management")
        settings = DatabaseSettings()
        assert settings.host == "db.internal"
        assert settings.user == "tyres"
        assert isinstance(settings.password, SecretStr)
        assert settings.password.get_secret_value() == "s3cret"
        assert settings.name == "tyre_management"

    def test_password_alias(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("DB_PASSWORD", "other")
        assert DatabaseSettings().password.get_secret_value() == "other"

    def test_password_is_masked_in_repr(self):
        settings = DatabaseSettings(password="hunter2")
        assert "hunter2" not in repr(settings)

    def test_url_built_from_fields(self):
        settings = DatabaseSettings(host="db", user="u", password="p", name="tyres", port=3307)
        url = settings.sqlalchemy_url()
        assert url.drivername == "mysql+aiomysql"
        assert url.host == "db"
        assert url.port == 3307
        assert url.username == "u"
        assert url.password == "p"
        assert url.database == "tyres"

    def test_explicit_url_wins(self):
        settings = DatabaseSettings(host="ignored", url="sqlite+aiosqlite:///./local.db")
        assert settings.sqlalchemy_url().get_backend_name() == "sqlite"
        assert settings.is_sqlite()

    def test_schema_name_is_database_for_mysql(self):
        settings = DatabaseSettings(host="db", name="tyres")
        assert settings.schema_name == "tyres"

    def test_schema_name_is_none_for_sqlite(self):
        settings = DatabaseSettings(url="sqlite+aiosqlite:///./local.db")
        assert settings.schema_name is None


class TestMissingRequired:
    def test_all_missing(self):
        assert DatabaseSettings().missing_required() == ["DB_HOST", "DB_USER", "DB_PASS", "DB_NAME"]

    def test_partially_set(self):
        settings = DatabaseSettings(host="db", name="tyres")
        assert settings.missing_required() == ["DB_USER", "DB_PASS"]

    def test_url_satisfies_everything(self):
        assert DatabaseSettings(url="sqlite+aiosqlite:///x.db").missing_required() == []


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.env == PlatformEnv.DEV
        assert settings.schema_profile == SchemaProfile.STANDARD
        assert settings.timeout_seconds == 60.0
        assert settings.structured_logging is False

    def test_profile_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("RECONCILER_SCHEMA_PROFILE", "extended")
        assert Settings().schema_profile == SchemaProfile.EXTENDED

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(timeout_seconds=0)

    def test_nested_database_settings(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("DB_HOST", "db.internal")
        assert Settings().database.host == "db.internal"

    def test_load_settings_overrides(self):
        settings = load_settings(env="prod", timeout_seconds=5)
        assert settings.env == PlatformEnv.PROD
        assert settings.timeout_seconds == 5

    def test_invalid_env_rejected(self):
        with pytest.raises(ValidationError):
            load_settings(env="qa")
