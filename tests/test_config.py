"""Tests for settings and logging setup."""

from pathlib import Path

import structlog

from prompt_studio.config import Settings
from prompt_studio.utils.logging import setup_logging


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        settings = Settings(_env_file=None)
        assert settings.data_dir == Path(".prompt_studio")
        assert settings.anthropic_max_tokens == 8192
        assert settings.row_delay_seconds == 0.5
        assert settings.default_user == "local"

    def test_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("STUDIO_DATA_DIR", "/tmp/studio")
        monkeypatch.setenv("STUDIO_ROW_DELAY_SECONDS", "0")
        settings = Settings(_env_file=None)
        assert settings.data_dir == Path("/tmp/studio")
        assert settings.row_delay_seconds == 0

    def test_provider_key_fallback(self, monkeypatch):
        monkeypatch.delenv("STUDIO_OPENAI_API_KEY", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
        settings = Settings(_env_file=None)
        assert settings.openai_api_key == "sk-from-env"


class TestLogging:
    def test_setup_logging_configures_structlog(self):
        setup_logging("debug")
        assert structlog.is_configured()
