"""
Runtime settings for ratekeeper.

Settings are loaded from environment variables (prefixed with ``RATEKEEPER_``)
and an optional ``.env`` file. They cover the concerns that sit around the
limiter factory rather than inside it: logging output, the Redis connection
used by the shared storage and lock backends, and lock timeouts.

Limiter configurations themselves (id, strategy, limit, ...) are not settings;
they are resolved per factory by `ratekeeper.config.resolver.ConfigResolver`.
"""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class RatekeeperSettings(BaseSettings):
    """
    Defines settings for logging and the Redis-backed storage and lock providers.

    Performance Note:
        - LOCK_BLOCKING_TIMEOUT_SECONDS bounds how long `consume` may wait for
          another process holding the same limiter lock.
        - LOCK_TIMEOUT_SECONDS is the lock lease; it must exceed the duration of
          a single read-modify-write against storage.
    """

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    REDIS_URL: str = "redis://localhost:6379/0"
    STORAGE_KEY_PREFIX: str = "ratekeeper:"
    STORAGE_RETRY_ATTEMPTS: int = Field(default=3, ge=1, le=10)

    LOCK_KEY_PREFIX: str = "ratekeeper:lock:"
    LOCK_TIMEOUT_SECONDS: float = 10.0
    LOCK_BLOCKING_TIMEOUT_SECONDS: float = 5.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RATEKEEPER_",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """
        Normalizes the log level name and rejects unknown levels.

        Raises:
            ValueError: If the level is not a standard logging level name.
        """
        level = str(value).upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level: {value}. Must be one of {sorted(_LOG_LEVELS)}.")
        return level

    @field_validator("LOCK_TIMEOUT_SECONDS", "LOCK_BLOCKING_TIMEOUT_SECONDS")
    @classmethod
    def validate_positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Lock timeouts must be positive.")
        return value


@lru_cache
def get_settings() -> RatekeeperSettings:
    """Returns the process-wide settings instance, loading it on first use."""
    settings = RatekeeperSettings()
    logger.debug("Loaded ratekeeper settings (redis url not logged).")
    return settings
