"""
Process settings loaded from environment variables.

Uses Pydantic Settings for type-safe configuration with validation.
All settings can be overridden via SARKHATI_* environment variables or a
.env file. Per-broker credentials and orders live in the broker JSON files
under ``config_dir``, not here.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Dispatcher process configuration.

    See config/examples/ for the per-broker file format.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SARKHATI_",
        case_sensitive=False,
        extra="ignore",
    )

    config_dir: str = Field(
        default=".",
        description="Directory holding config_<broker>.json files",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=300,
        description="Per-request timeout enforced by the HTTP transport",
    )

    default_failure_backoff_ms: int = Field(
        default=5000,
        ge=0,
        description="Delay after a batch with failures, unless the broker file sets one",
    )

    body_snippet_chars: int = Field(
        default=500,
        ge=0,
        description="Characters of a failed response body kept for diagnostics",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Example:
        >>> settings = get_settings()
        >>> settings.default_failure_backoff_ms
        5000
    """
    return Settings()
