"""Tests for environment-driven settings."""

from __future__ import annotations

from app.settings import Settings


class TestSettings:
    def test_defaults(self):
        config = Settings(_env_file=None)

        assert config.DATABASE_URL.startswith("postgresql+psycopg://")
        assert config.LIVE_METRICS_ENABLED is False
        assert config.LIVE_METRICS_INTERVAL_MINUTES == 15

    def test_only_database_url_configures_the_database(self):
        assert "DATABASE_URL" in Settings.model_fields
        assert not [name for name in Settings.model_fields if name.startswith("POSTGRES_")]

    def test_unknown_env_keys_are_ignored(self, monkeypatch):
        monkeypatch.setenv("POSTGRES_HOST", "db.internal")
        monkeypatch.setenv("LIVE_METRICS_INTERVAL_MINUTES", "5")

        config = Settings(_env_file=None)

        assert config.LIVE_METRICS_INTERVAL_MINUTES == 5
        assert not hasattr(config, "POSTGRES_HOST")
