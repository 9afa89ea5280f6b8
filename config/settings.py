"""
Configuration settings for the Application Tracker
"""

from pydantic_settings import BaseSettings
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent

# Shared by the CLI and the API so both open the same file
DEFAULT_DB_PATH = PROJECT_ROOT / "data" / "applications.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Record store
    db_path: Path = DEFAULT_DB_PATH

    # Owner used by the command-line interface
    default_owner: str = "local"

    # Logging
    log_level: str = "WARNING"

    # Funnel chart (terminal bars are scaled from these pixel heights)
    bar_min_height: int = 30
    bar_max_height: int = 170

    # API server
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "TRACKER_"
        extra = "ignore"


# Global settings instance
settings = Settings()
