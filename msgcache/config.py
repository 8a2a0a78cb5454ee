from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Follows 12-factor app configuration principles.
    """

    # env_file is only used as fallback, env vars take precedence
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Database Configuration
    MESSAGE_SQLITE_FILE: str = "./database/messages.db"
    MESSAGE_INIT_SQL_FILE: str = "./database/init.sql"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    # Retry policy for transient storage errors (lock contention, busy).
    # MAX_RETRIES counts retries after the first attempt: 3 means up to 4 attempts.
    MESSAGE_RETRY_MAX_RETRIES: int = 3
    MESSAGE_RETRY_DELAY_SECONDS: float = 1.0

    # How long the SQLite driver waits on a lock before reporting "database is locked"
    MESSAGE_SQLITE_BUSY_TIMEOUT_SECONDS: float = 0.1


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every call.
    """
    return Settings()
