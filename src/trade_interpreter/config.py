"""
Application configuration using pydantic-settings.

Loads configuration from environment variables and .env files.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TRADE_INTERPRETER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Language / trade defaults
    default_language: str = Field(
        default="en",
        description="Language tag returned when no detection rule matches",
    )
    default_currency: str = Field(
        default="USD",
        description="Currency code used when an utterance carries no currency marker",
    )

    # Translation provider
    translation_endpoint: str = Field(
        default="http://localhost:8100",
        description="Base URL of the translation provider",
    )
    translation_timeout_s: float = Field(
        default=2.0,
        gt=0,
        description="Total time budget in seconds for one utterance translation (all attempts)",
    )
    translation_max_retries: int = Field(
        default=1,
        ge=0,
        description="Number of retries on translation provider failure",
    )
    retry_backoff_s: float = Field(
        default=0.2,
        ge=0,
        description="Base backoff in seconds between provider retries",
    )

    # Voice synthesis provider
    synthesis_endpoint: str = Field(
        default="http://localhost:8200",
        description="Base URL of the voice synthesis provider",
    )
    synthesis_timeout_s: float = Field(
        default=2.0,
        gt=0,
        description="Timeout in seconds for one speak request",
    )
    api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Bearer token sent to the outbound providers",
    )

    # Cross-device bridge
    device_endpoint: str = Field(
        default="http://localhost:8300",
        description="Base URL of the wearable/browser delivery gateway",
    )
    delivery_timeout_s: float = Field(
        default=3.0,
        gt=0,
        description="Time budget in seconds for delivering one message to a device (all attempts)",
    )
    presence_poll_interval_s: float = Field(
        default=5.0,
        ge=0,
        description="Interval for polling wearable presence telemetry (0 disables polling)",
    )

    # Application
    host: str = Field(default="127.0.0.1", description="HTTP bind host")
    port: int = Field(default=8000, description="HTTP bind port")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
