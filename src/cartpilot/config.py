"""Configuration management for CartPilot."""
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from cartpilot.core.enums import RetryPolicy


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Every setting has a default, nothing is required.
    """

    # Application
    APP_NAME: str = "CartPilot"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Session persistence
    SESSION_DIR: str = "data/sessions"
    SESSION_RETENTION_DAYS: int = 7  # Terminal sessions older than this are cleaned up

    # Worker execution
    WORKER_TIMEOUT_MS: int = 300_000  # Per-attempt timeout
    WORKER_MAX_RETRIES: int = 2  # Retries after the first attempt
    WORKER_MAX_CONCURRENCY: int = 2  # Batch size for parallel-limited

    # Retry backoff between attempts
    RETRY_POLICY: RetryPolicy = RetryPolicy.IMMEDIATE
    RETRY_BASE_DELAY: float = 1.0  # Seconds
    RETRY_MAX_DELAY: float = 30.0  # Seconds

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Singleton settings instance
    """
    return Settings()
