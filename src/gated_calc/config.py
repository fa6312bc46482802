"""Configuration management for Gated Calc."""

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env" if os.getenv("ENVIRONMENT") != "test" else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Gated Calc"
    app_version: str = "0.1.0"
    debug: bool = Field(default=False)
    environment: str = Field(default="development")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="WARNING")

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./gated_calc.db")
    database_echo: bool = Field(default=False)

    # Security
    bcrypt_rounds: int = Field(
        default=12,
        ge=4,
        le=31,
        description="Work factor for bcrypt password hashes",
    )
    min_password_length: int = Field(default=8, ge=1)
    dpi_max_attempts: int = Field(
        default=3,
        ge=1,
        description="DPI entry attempts allowed before the console exits",
    )

    # History listing
    history_page_size: int = Field(default=10, ge=1)
    admin_history_page_size: int = Field(default=20, ge=1)

    # Metrics
    enable_metrics: bool = Field(default=False)
    metrics_port: int = Field(default=9100)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("database_url", mode="before")
    @classmethod
    def validate_database_url(cls, v):
        # Sync driver URLs are upgraded to their async counterparts
        url = str(v)
        if url.startswith("sqlite:///"):
            return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def log_level_name(self) -> str:
        """Effective log level; ``debug`` forces DEBUG."""
        return "DEBUG" if self.debug else self.log_level


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
