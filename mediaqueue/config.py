"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mediaqueue.constants import (
    BASE_RETRY_DELAY_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_SPAWN_DELAY_SECONDS,
    DEFAULT_WORKER_COUNTS,
    MAX_DB_RETRY_ATTEMPTS,
    MAX_JITTER_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./queue.db"
    database_echo: bool = False

    # Queue Configuration
    queue_max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    queue_poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    queue_spawn_delay_seconds: float = DEFAULT_SPAWN_DELAY_SECONDS
    queue_worker_counts: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_WORKER_COUNTS)
    )

    # Store retry policy
    db_retry_max_attempts: int = Field(default=MAX_DB_RETRY_ATTEMPTS, ge=1)
    db_retry_base_delay_seconds: float = BASE_RETRY_DELAY_SECONDS
    db_retry_max_jitter_seconds: float = MAX_JITTER_SECONDS

    # Observability
    otel_enabled: bool = False
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "mediaqueue"
    prometheus_port: int = 9090
    log_level: str = "INFO"
    log_format: str = "json"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
