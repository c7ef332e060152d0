"""
Application configuration with environment-driven settings.
"""

from functools import lru_cache
import os
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "contactbook"
    app_env: Literal["dev", "qa", "uat", "prod"] = "dev"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/contacts.db",
        description="SQLAlchemy async connection URL",
    )
    database_busy_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Seconds a statement waits for a locked store before failing",
    )
    seed_data: bool = Field(
        default=True,
        description="Insert the fixed seed contacts when the contacts table is empty",
    )

    # Uploads
    upload_dir: str = Field(
        default="uploads",
        description="Directory for temporary spreadsheet uploads",
    )

    # Listing
    default_page_limit: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Page size used when the client does not send one",
    )

    # CORS
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept log levels in any case."""
        return str(v).strip().upper()

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"


@lru_cache
def _get_settings_cached() -> Settings:
    return Settings()


def get_settings() -> Settings:
    """Get the settings instance.

    Under pytest, environment variables change between tests, so a fresh
    instance is built instead of the cached one.
    """
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return Settings()
    return _get_settings_cached()
