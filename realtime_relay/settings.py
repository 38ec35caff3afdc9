from typing import Any

from pydantic import SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from realtime_relay.exceptions import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        case_sensitive=True, env_file=".env", extra="ignore"
    )

    # Upstream realtime API
    OPENAI_API_KEY: SecretStr
    UPSTREAM_URL: str = "wss://api.openai.com/v1/realtime"
    UPSTREAM_MODEL: str = "gpt-4o-realtime-preview-2024-10-01"
    UPSTREAM_BETA_HEADER: str = "realtime=v1"

    # Listener
    RELAY_HOST: str = "0.0.0.0"
    RELAY_PORT: int = 8081

    # Timeouts
    UPSTREAM_CONNECT_TIMEOUT_SECONDS: float = 10.0
    CLOSE_TIMEOUT_SECONDS: float = 5.0
    WRITE_TIMEOUT_SECONDS: float = 10.0
    SHUTDOWN_TIMEOUT_SECONDS: float = 10.0

    # Forwarding limits
    MAX_MESSAGE_SIZE_BYTES: int = 8 * 1024 * 1024
    PENDING_MESSAGE_LIMIT: int = 256

    # Stale session monitor
    STALE_SESSION_SECONDS: float = 3600.0
    STALE_SESSION_CHECK_INTERVAL_SECONDS: float = 60.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE_PATH: str | None = None
    LOG_EXCLUDED_PATHS: list[str] = ["/metrics", "/health"]
    ENVIRONMENT: str = "development"

    # Grafana Loki log shipping
    LOKI_ENABLED: bool = False
    LOKI_URL: str = "http://localhost:3100"
    LOKI_VERSION: str = "1"

    @field_validator("OPENAI_API_KEY")
    @classmethod
    def _key_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("MAX_MESSAGE_SIZE_BYTES", "PENDING_MESSAGE_LIMIT")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value


def load_settings(**overrides: Any) -> Settings:
    """
    Build settings from the environment, applying non-None overrides.

    Args:
        **overrides: Field values taking precedence over the environment
            (e.g. CLI options). ``None`` values are ignored.

    Returns:
        Settings: Validated settings.

    Raises:
        ConfigurationError: If a required variable is missing or a value is
            invalid. The message names the variables, never their values.
    """
    values = {key: value for key, value in overrides.items() if value is not None}

    try:
        return Settings(**values)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from exc
