"""
Unit tests for the application configuration (Settings).

Tests cover:
- Default values
- DATABASE_URL property for SQLite and PostgreSQL modes
- PostgreSQL credential validation
"""

import os

import pytest

from settlement.core.config import Settings, settings


class TestSettingsDefaults:
    """Tests for default settings values."""

    def test_project_name(self):
        assert settings.PROJECT_NAME == "Fund Settlement API"

    def test_api_version_prefix(self):
        assert settings.API_V1_STR == "/api/v1"

    def test_tests_run_on_sqlite(self):
        assert settings.USE_SQLITE is True

    def test_operational_defaults(self):
        s = Settings(USE_SQLITE=True, _env_file=None)  # type: ignore[call-arg]
        assert s.CB_FAILURE_THRESHOLD > 0
        assert s.CB_RECOVERY_TIMEOUT > 0
        assert s.DISTRIBUTION_CONCURRENCY >= 1
        assert s.ALLOW_TEST_DATA_RESET is False
        assert s.NOTIFICATION_WEBHOOK_URL == ""


class TestDatabaseURL:
    """Tests for the DATABASE_URL property."""

    def test_in_memory_sqlite(self):
        s = Settings(USE_SQLITE=True, SQLITE_PATH="", _env_file=None)  # type: ignore[call-arg]
        assert s.DATABASE_URL == "sqlite+aiosqlite://"

    def test_sqlite_file(self):
        s = Settings(USE_SQLITE=True, SQLITE_PATH="dev.db", _env_file=None)  # type: ignore[call-arg]
        assert s.DATABASE_URL == "sqlite+aiosqlite:///dev.db"

    def test_postgres_url(self):
        s = Settings(
            USE_SQLITE=False,
            POSTGRES_USER="u",
            POSTGRES_PASSWORD="p",
            POSTGRES_SERVER="localhost",
            POSTGRES_DB="db",
            POSTGRES_PORT=5432,
        )
        assert s.DATABASE_URL == "postgresql+asyncpg://u:p@localhost:5432/db"

    def test_pg_missing_credentials_raises(self):
        """Settings validator rejects missing PG credentials in non-SQLite mode."""
        saved = {}
        for key in (
            "USE_SQLITE",
            "POSTGRES_USER",
            "POSTGRES_PASSWORD",
            "POSTGRES_SERVER",
            "POSTGRES_DB",
        ):
            saved[key] = os.environ.pop(key, None)
        try:
            with pytest.raises(Exception, match="POSTGRES_USER"):
                Settings(USE_SQLITE=False, _env_file=None)  # type: ignore[call-arg]
        finally:
            for key, val in saved.items():
                if val is not None:
                    os.environ[key] = val
