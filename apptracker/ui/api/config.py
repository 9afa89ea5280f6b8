"""API Configuration settings for production and development"""

from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
from typing import Union

from config.settings import DEFAULT_DB_PATH


class APISettings(BaseSettings):
    """API-specific settings loaded from environment"""

    # App info
    app_name: str = "Application Tracker"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4
    log_level: str = "info"

    # CORS settings - can be comma-separated string or list
    cors_origins: Union[str, list[str]] = ["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Record store, same default file as the CLI
    db_path: Path = DEFAULT_DB_PATH

    # Seconds between checks for writes made by other processes (CLI, other workers)
    live_poll_seconds: float = 1.0

    # Account deletion needs a login at most this many minutes old
    reauth_window_minutes: int = 5

    # Slow request warning threshold
    slow_request_seconds: float = 2.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "TRACKER_"
        extra = "ignore"

    def get_cors_origins(self) -> list[str]:
        """CORS origins from TRACKER_CORS_ORIGINS (comma-separated) or the default"""
        return self.cors_origins


@lru_cache
def get_settings() -> APISettings:
    """Get cached settings instance"""
    return APISettings()
