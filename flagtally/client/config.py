"""
client/config.py

Client configuration via Pydantic Settings.
All values can be overridden with FLAGTALLY_-prefixed environment variables
or a .env file.

Quick start — create a .env file in your project root:
    FLAGTALLY_API_URL=https://edge.api.flagsmith.com/api/v1/
    FLAGTALLY_ENVIRONMENT_KEY=ser.xxxxxxxx
    FLAGTALLY_ANALYTICS_TIMER_MS=10000
"""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENVIRONMENT_KEY_HEADER = "X-Environment-Key"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FLAGTALLY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Collector
    API_URL: str = "https://edge.api.flagsmith.com/api/v1/"
    ENVIRONMENT_KEY: str = ""
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Analytics loop
    ANALYTICS_TIMER_MS: int = 10_000
    ANALYTICS_CHANNEL_CAPACITY: int = 10
    ANALYTICS_POLL_INTERVAL_SECONDS: float = 0.001

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator("API_URL")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        v = v.strip()
        return v if v.endswith("/") else v + "/"

    @field_validator("ANALYTICS_TIMER_MS", "ANALYTICS_CHANNEL_CAPACITY")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("REQUEST_TIMEOUT_SECONDS")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("ANALYTICS_POLL_INTERVAL_SECONDS")
    @classmethod
    def must_not_be_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    def default_headers(self) -> dict[str, str]:
        """Headers sent with every flush; carries the environment key when set."""
        if not self.ENVIRONMENT_KEY:
            return {}
        return {ENVIRONMENT_KEY_HEADER: self.ENVIRONMENT_KEY}


settings = Settings()
