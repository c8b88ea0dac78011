"""
Runtime configuration helpers for the backend service and the client core.

Loads DATABASE_URL and the other variables from the .env file located in the
project root without overriding values provided by the platform.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    # Required field, must come from .env
    database_url: str = Field(..., alias="DATABASE_URL")

    app_name: str = Field(default="Gratitude Journal", alias="APP_NAME")
    api_version: str = Field(default="0.1.0", alias="API_VERSION")
    cors_origins: str | None = Field(default=None, alias="CORS_ORIGINS")
    notification_preview_chars: int = Field(default=50, alias="NOTIFICATION_PREVIEW_CHARS")
    group_invite_ttl_hours: int = Field(default=168, alias="GROUP_INVITE_TTL_HOURS")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore"
    )


class ClientSettings(BaseSettings):
    """Tuning knobs for the optimistic client core."""

    api_base_url: str = Field(default="http://localhost:8000")
    ws_base_url: str | None = Field(default=None)
    request_timeout: float = Field(default=15.0)
    dedup_window_seconds: float = Field(default=10.0)
    undo_depth: int = Field(default=5, ge=1)
    reconnect_delay_seconds: float = Field(default=1.0, ge=0)
    reconnect_max_delay_seconds: float = Field(default=30.0, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="GRATITUDE_",
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def resolved_ws_base_url(self) -> str:
        if self.ws_base_url:
            return self.ws_base_url.rstrip("/")
        base = self.api_base_url.rstrip("/")
        if base.startswith("https://"):
            return "wss://" + base[len("https://"):]
        if base.startswith("http://"):
            return "ws://" + base[len("http://"):]
        return base


@lru_cache()
def get_settings() -> Settings:
    return Settings()


@lru_cache()
def get_client_settings() -> ClientSettings:
    return ClientSettings()


__all__ = ["ClientSettings", "Settings", "get_client_settings", "get_settings"]
