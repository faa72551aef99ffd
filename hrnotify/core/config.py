"""Application configuration using pydantic-settings."""

from functools import lru_cache
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

    # Application
    app_name: str = "hrnotify"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    # Dispatch queue
    notification_queue_capacity: int = Field(
        default=1000,
        ge=1,
        description="Maximum notifications buffered in memory",
    )
    notification_workers: int = Field(
        default=4,
        ge=1,
        description="Number of concurrent delivery workers",
    )
    notification_retry_interval_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Seconds between retry scheduler sweeps",
    )
    notification_retry_batch_size: int = Field(
        default=100,
        ge=1,
        description="Maximum due notifications resubmitted per sweep",
    )
    notification_max_retries: int = Field(
        default=3,
        ge=1,
        description="Delivery attempts before a notification is marked FAILED",
    )

    # SMTP
    smtp_host: str = Field(default="", description="SMTP server host")
    smtp_port: int = Field(default=587, description="SMTP server port")
    smtp_user: str = Field(default="", description="SMTP username")
    smtp_password: str = Field(default="", description="SMTP password")
    smtp_from: str = Field(default="", description="Email sender address")
    smtp_from_name: str = Field(default="HR Management System", description="Email sender display name")
    smtp_use_tls: bool = Field(default=True, description="Use STARTTLS on non-465 ports")
    smtp_timeout_seconds: float = Field(default=30.0, gt=0, description="SMTP operation timeout")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
