# tests/test_config.py
"""
Tests for Settings validation.
"""

from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from invest_snapshots.config import Settings


class TestDatabaseConfig:

    def test_test_environment_defaults_to_memory_sqlite(self):
        settings = Settings(environment="test", database_url=None)

        assert settings.database_url == "sqlite:///:memory:"
        assert settings.is_sqlite
        assert settings.is_test

    def test_development_requires_database_url(self):
        with pytest.raises(ValidationError):
            Settings(environment="development", database_url=None)

    def test_development_sqlite_warns(self):
        with pytest.warns(UserWarning):
            Settings(environment="development", database_url="sqlite:///dev.db")

    def test_production_requires_postgres(self):
        with pytest.raises(ValidationError):
            Settings(environment="production", database_url="sqlite:///prod.db")

    def test_production_accepts_postgres(self):
        settings = Settings(environment="production", database_url="postgresql://u:p@db:5432/invest")

        assert settings.is_production
        assert not settings.is_sqlite


class TestSnapshotEngineConfig:

    def test_defaults(self):
        settings = Settings(environment="test", snapshot_buffer_months=6, amount_scale=100)

        assert settings.snapshot_buffer_months == 6
        assert settings.amount_scale == 100

    @pytest.mark.parametrize("months", [0, 25])
    def test_buffer_months_bounds(self, months):
        with pytest.raises(ValidationError):
            Settings(environment="test", snapshot_buffer_months=months)

    def test_calendar_timezone(self):
        settings = Settings(environment="test", calendar_timezone=" Europe/Lisbon ")

        assert settings.calendar_timezone == "Europe/Lisbon"
        assert settings.tzinfo == ZoneInfo("Europe/Lisbon")

    def test_blank_timezone_means_local_time(self):
        settings = Settings(environment="test", calendar_timezone="")

        assert settings.calendar_timezone is None
        assert settings.tzinfo is None

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValidationError):
            Settings(environment="test", calendar_timezone="Mars/Olympus")
