"""
Tests for relay configuration loading.
"""

import pytest

from realtime_relay.exceptions import ConfigurationError
from realtime_relay.settings import load_settings


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run without OPENAI_API_KEY in the environment and without a .env file."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("RELAY_PORT", raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_missing_api_key(self, clean_env):
        """Test a missing key raises a ConfigurationError naming the variable."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings()

        assert "OPENAI_API_KEY" in str(exc_info.value)

    def test_blank_api_key(self, clean_env):
        """Test a whitespace-only key is rejected."""
        clean_env.setenv("OPENAI_API_KEY", "   ")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings()

        assert "OPENAI_API_KEY" in str(exc_info.value)

    def test_invalid_value_not_echoed(self, clean_env):
        """Test the error names the variable without echoing the key."""
        clean_env.setenv("OPENAI_API_KEY", "sk-secret-value")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(MAX_MESSAGE_SIZE_BYTES=0)

        message = str(exc_info.value)
        assert "MAX_MESSAGE_SIZE_BYTES" in message
        assert "sk-secret-value" not in message

    def test_defaults(self, clean_env):
        """Test defaults when only the key is set."""
        clean_env.setenv("OPENAI_API_KEY", "sk-secret-value")

        settings = load_settings()

        assert settings.RELAY_PORT == 8081
        assert settings.UPSTREAM_URL == "wss://api.openai.com/v1/realtime"
        assert settings.UPSTREAM_MODEL == "gpt-4o-realtime-preview-2024-10-01"
        assert settings.UPSTREAM_BETA_HEADER == "realtime=v1"
        assert settings.WRITE_TIMEOUT_SECONDS == 10.0
        assert settings.LOKI_ENABLED is False

    def test_environment_override(self, clean_env):
        """Test values are read from the environment."""
        clean_env.setenv("OPENAI_API_KEY", "sk-secret-value")
        clean_env.setenv("RELAY_PORT", "9100")

        assert load_settings().RELAY_PORT == 9100

    def test_overrides_take_precedence(self, clean_env):
        """Test explicit overrides win and None overrides are ignored."""
        clean_env.setenv("OPENAI_API_KEY", "sk-secret-value")
        clean_env.setenv("RELAY_PORT", "9100")

        settings = load_settings(RELAY_PORT=9200, LOG_LEVEL=None)

        assert settings.RELAY_PORT == 9200
        assert settings.LOG_LEVEL == "INFO"

    def test_key_masked(self, clean_env):
        """Test the key is masked in repr and dumps."""
        clean_env.setenv("OPENAI_API_KEY", "sk-secret-value")

        settings = load_settings()

        assert "sk-secret-value" not in repr(settings)
        assert "sk-secret-value" not in str(settings.model_dump())
        assert settings.OPENAI_API_KEY.get_secret_value() == "sk-secret-value"
