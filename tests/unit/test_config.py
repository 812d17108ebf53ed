"""
Unit tests for bulkbench.config.
"""

import pytest

from bulkbench.config import DEFAULT_DATABASE_URL, Settings, get_settings
from bulkbench.errors import InvalidArgument

ENV_VARS = [
    "BULKBENCH_DATABASE_URL",
    "BULKBENCH_BULK_PROVIDER",
    "BULKBENCH_NAIVE_INSERT_COUNT",
    "BULKBENCH_BULK_INSERT_COUNT",
    "BULKBENCH_MAX_PARAMETERS",
    "BULKBENCH_ECHO_SQL",
    "BULKBENCH_CREATE_SCHEMA",
    "BULKBENCH_HOST",
    "BULKBENCH_PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestGetSettings:
    """Test building settings from the environment."""

    def test_defaults(self):
        """Test the settings used when no environment variable is set."""
        settings = get_settings()
        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.bulk_provider == "auto"
        assert settings.naive_insert_count == 5000
        assert settings.bulk_insert_count == 50000
        assert settings.echo_sql is False
        assert settings.create_schema is True
        assert settings.port == 8000
        assert settings.is_postgres

    def test_overrides(self, monkeypatch):
        """Test that every BULKBENCH_ variable is picked up."""
        monkeypatch.setenv("BULKBENCH_DATABASE_URL", "sqlite+aiosqlite:///bench.db")
        monkeypatch.setenv("BULKBENCH_BULK_PROVIDER", "ORM")
        monkeypatch.setenv("BULKBENCH_NAIVE_INSERT_COUNT", "10")
        monkeypatch.setenv("BULKBENCH_BULK_INSERT_COUNT", "20")
        monkeypatch.setenv("BULKBENCH_MAX_PARAMETERS", "500")
        monkeypatch.setenv("BULKBENCH_ECHO_SQL", "yes")
        monkeypatch.setenv("BULKBENCH_CREATE_SCHEMA", "0")
        monkeypatch.setenv("BULKBENCH_PORT", "9000")

        settings = get_settings()
        assert settings.database_url == "sqlite+aiosqlite:///bench.db"
        assert settings.bulk_provider == "orm"
        assert settings.naive_insert_count == 10
        assert settings.bulk_insert_count == 20
        assert settings.max_parameters == 500
        assert settings.echo_sql is True
        assert settings.create_schema is False
        assert settings.port == 9000
        assert not settings.is_postgres

    def test_bad_integer(self, monkeypatch):
        """Test that a non-numeric count is rejected."""
        monkeypatch.setenv("BULKBENCH_NAIVE_INSERT_COUNT", "many")
        with pytest.raises(InvalidArgument):
            get_settings()

    def test_bad_boolean(self, monkeypatch):
        """Test that an unknown boolean spelling is rejected."""
        monkeypatch.setenv("BULKBENCH_ECHO_SQL", "maybe")
        with pytest.raises(InvalidArgument):
            get_settings()

    def test_bad_provider(self, monkeypatch):
        """Test that an unknown bulk provider is rejected."""
        monkeypatch.setenv("BULKBENCH_BULK_PROVIDER", "magic")
        with pytest.raises(InvalidArgument):
            get_settings()


class TestSettingsValidation:
    """Test settings invariants."""

    def test_negative_counts(self):
        """Test that negative default counts are rejected."""
        with pytest.raises(InvalidArgument):
            Settings(naive_insert_count=-1)
        with pytest.raises(InvalidArgument):
            Settings(bulk_insert_count=-1)

    def test_max_parameters(self):
        """Test that the parameter limit must be positive."""
        with pytest.raises(InvalidArgument):
            Settings(max_parameters=0)
