"""Configuration settings for WatchRoom."""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application settings
    app_name: str = "WatchRoom"
    debug: bool = False
    log_level: str = "INFO"

    # Room settings
    room_id_length: int = 6
    owner_token_bytes: int = 16
    max_chat_length: int = 1000

    # Lifecycle timers (seconds)
    grace_period_seconds: float = 30
    owner_timeout_seconds: float = 5 * 60
    cleanup_interval_seconds: float = 30

    # Client reconnection records older than this are not used for auto-rejoin
    reconnect_window_seconds: int = 60 * 60 * 24

    # WebSocket settings
    ws_heartbeat_interval: int = 30

    model_config = {
        "env_prefix": "WATCHROOM_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
