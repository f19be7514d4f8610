"""Configuration management via pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    store_backend: Literal["sqlite", "redis"] = "sqlite"
    database_path: Path = Field(default=Path("./data/stay-watcher.db"))
    redis_url: str | None = None
    key_prefix: str = "search"
    outstanding_key: str = "outstanding_searches"

    # Run policy
    notify_on_first_run: bool = False

    # Browser
    headless: bool = True
    navigation_timeout_ms: int = 30000
    settle_delay_seconds: float = 2.0
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # Notifications
    telegram_bot_token: str | None = None
    telegram_chat_id: str | None = None
    ntfy_topic_url: str | None = None
    discord_webhook_url: str | None = None
    webhook_url: str | None = None
    webhook_method: str = "POST"
    webhook_headers: str | None = None

    # Logging
    log_level: str = "INFO"
    log_dir: Path = Field(default=Path("./logs"))


@lru_cache
def get_settings() -> Settings:
    return Settings()
