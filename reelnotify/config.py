"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./reelnotify.db",
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    secret_key: str = Field(
        description="Secret key for signing JWT tokens", min_length=1
    )
    access_token_expire_minutes: int = Field(
        default=60 * 24,
        description="Number of minutes before access tokens expire",
        gt=0,
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Origins allowed to call the API from a browser",
    )
    log_level: str = Field(default="INFO", description="Root logging level")
    server_host: str = Field(default="127.0.0.1", description="Interface uvicorn binds to")
    server_port: int = Field(default=8000, description="Port uvicorn listens on", gt=0)

    notification_duplicate_window_hours: float = Field(
        default=24,
        description="Trailing window in which an identical notification is suppressed",
        gt=0,
    )
    notification_page_size: int = Field(
        default=20, description="Default page size for notification listings", gt=0
    )
    notification_max_page_size: int = Field(
        default=100, description="Upper bound applied to requested page sizes", gt=0
    )
    notification_session_queue_size: int = Field(
        default=256,
        description="Outbound messages buffered per websocket before it is evicted",
        gt=0,
    )
    notification_dispatch_queue_size: int = Field(
        default=256,
        description="Control events buffered ahead of the dispatch loop",
        gt=0,
    )
    notification_ping_interval_seconds: float = Field(
        default=54, description="Interval between heartbeat frames", gt=0
    )
    notification_pong_timeout_seconds: float = Field(
        default=60,
        description="Maximum silence tolerated from a websocket peer",
        gt=0,
    )
    notification_write_timeout_seconds: float = Field(
        default=10, description="Time allowed for a single websocket write", gt=0
    )
    notification_max_message_bytes: int = Field(
        default=512, description="Largest inbound websocket frame accepted", gt=0
    )

    @model_validator(mode="after")
    def _validate_notification_timers(self) -> "Settings":
        if self.notification_ping_interval_seconds >= self.notification_pong_timeout_seconds:
            raise ValueError(
                "NOTIFICATION_PING_INTERVAL_SECONDS must be lower than "
                "NOTIFICATION_PONG_TIMEOUT_SECONDS"
            )
        if self.notification_page_size > self.notification_max_page_size:
            raise ValueError(
                "NOTIFICATION_PAGE_SIZE cannot exceed NOTIFICATION_MAX_PAGE_SIZE"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
