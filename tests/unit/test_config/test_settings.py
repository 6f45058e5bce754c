"""Unit tests for environment settings."""

import logging
from pathlib import Path

import pytest

from frictionary.settings import AppSettings


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test defaults without environment overrides."""
        for name in ("CONFIG_PATH", "STATE_PATH", "LOG_LEVEL", "JSON_LOGS"):
            monkeypatch.delenv(f"FRICTIONARY_{name}", raising=False)

        settings = AppSettings(_env_file=None)

        assert settings.config_path == Path("config.yaml")
        assert settings.state_path == Path("state/frictionary.sqlite")
        assert settings.json_logs is True
        assert settings.log_level_value == logging.INFO

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test FRICTIONARY_ variables override defaults."""
        monkeypatch.setenv("FRICTIONARY_STATE_PATH", "/tmp/f.sqlite")
        monkeypatch.setenv("FRICTIONARY_LOG_LEVEL", "debug")
        monkeypatch.setenv("FRICTIONARY_JSON_LOGS", "false")

        settings = AppSettings(_env_file=None)

        assert settings.state_path == Path("/tmp/f.sqlite")
        assert settings.log_level_value == logging.DEBUG
        assert settings.json_logs is False

    def test_unknown_level_falls_back_to_info(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test an unknown level name does not break logging setup."""
        monkeypatch.setenv("FRICTIONARY_LOG_LEVEL", "chatty")

        assert AppSettings(_env_file=None).log_level_value == logging.INFO
