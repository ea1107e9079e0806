"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

DEFAULT_MESSAGE_TITLE = "Stream Limit"
DEFAULT_MESSAGE_TEXT = "Active streams exceeded"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    jellyfin_url: str
    jellyfin_api_key: str
    supabase_url: str
    supabase_service_key: str
    admin_token: str
    webhook_token: str | None = None
    default_user_limits: str = ""
    message_title: str = DEFAULT_MESSAGE_TITLE
    message_text: str = DEFAULT_MESSAGE_TEXT
    message_timeout_ms: int = 8000
    settle_delay_seconds: float = 0.5
    retry_delay_seconds: float = 0.2
    final_settle_delay_seconds: float = 0.5
    max_stop_attempts: int = 4
    serialize_user_enforcement: bool = False
    http_timeout_seconds: float = 10
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
