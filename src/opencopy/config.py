"""Configuration loading from environment variables with validation."""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Anchor all paths to the project directory (three levels up from this file)
_PROJECT_DIR = Path(__file__).resolve().parent.parent.parent


class SchedulerSettings(BaseModel):
    """Cadence and defaults for the two scheduled scans.

    Loaded once at startup and handed to the scans as plain arguments.
    """

    # Generation scan: hourly, spread just under the interval
    generation_days: int = Field(1, ge=0)
    generation_limit: int = Field(100, ge=1)
    generation_spread_minutes: int = Field(55, ge=0)
    generation_interval_minutes: int = Field(60, ge=1)

    # Publish scan: every minute
    publish_interval_minutes: int = Field(1, ge=1)
    publish_max_attempts: int = Field(3, ge=1)
    publish_backoff_seconds: int = Field(60, ge=0)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="OPENCOPY_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    # Storage (absolute, anchored to the project directory)
    db_path: Path = _PROJECT_DIR / "data" / "opencopy.db"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Webhook publishing
    webhook_user_agent: str = "OpenCopy/1.0"
    webhook_timeout: float = 30.0
    webhook_retry_times: int = 3

    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)


def get_settings() -> Settings:
    """Load settings from environment and .env file."""
    # Load .env from the project directory regardless of cwd
    load_dotenv(_PROJECT_DIR / ".env")
    return Settings()
