"""Configuration management for taskboard."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Task Store Configuration
    store_backend: Literal["rest", "local"] = Field(
        default="rest", description="Where tasks live: the REST service or the local SQLite file"
    )
    api_base_url: str = Field(default="http://localhost:8080", description="Base URL of the task REST service")
    api_timeout_seconds: float = Field(default=30.0, description="Timeout for a single task store request")

    # SQLite Configuration
    sqlite_db_path: str = Field(default="data/taskboard.db", description="SQLite database file for the local store")

    # Display Configuration
    display_timezone: str = Field(
        default="UTC", description="IANA timezone used for calendar dates in due displays (e.g. 'Europe/Berlin')"
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name reported to Logfire")


# Application Constants
class Constants:
    """Application-wide constants."""

    # HTTP Status Codes
    HTTP_OK: int = 200
    HTTP_CREATED: int = 201
    HTTP_BAD_REQUEST: int = 400
    HTTP_NOT_FOUND: int = 404
    HTTP_SERVER_ERROR: int = 500

    # Task store
    API_TIMEOUT_SECONDS: float = 30.0

    # Countdown Ticker
    COUNTDOWN_TICK_SECONDS: float = 1.0

    # Due display strings
    NO_DUE_DISPLAY: str = "--:--"
    TIME_UP_DISPLAY: str = "TIME UP"

    # Views
    RECENT_TASKS_LIMIT: int = 5

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
