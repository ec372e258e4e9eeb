"""Configuration for the widget client."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class WidgetSettings(BaseSettings):
    """Global widget client settings."""

    model_config = SettingsConfigDict(
        env_prefix="FLOATCHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",
    )

    # Backend
    base_url: str = "http://127.0.0.1:8080"
    verify_ssl: bool = True
    connect_timeout: float = 10.0
    read_timeout: float = 300.0

    # Polling cadences (seconds)
    voice_poll_interval: float = 0.18
    status_poll_interval: float = 0.5
    async_poll_interval: float = 2.0

    # Voice timing (seconds)
    voice_settle_delay: float = 0.2
    voice_restart_delay: float = 0.3
    voice_error_restart_delay: float = 0.5
    voice_locale: str = "en-US"

    # Input history
    history_capacity: int = 200

    # Fixed messages
    greeting: str = "Hi! Ask me anything or give me a command."
    cleared_message: str = "Chat cleared. How can I help?"
    fallback_reply: str = "Could not reach server."
    empty_reply: str = "No reply."

    # Local recognizer (optional voice extra)
    whisper_model: str | None = None
    whisper_device: str = "cpu"
    whisper_compute_type: str = "int8"
    vad_aggressiveness: int = 2
    input_device: str | None = None

    # Logs
    log_level: str = "INFO"
    log_dir: str | None = None
    log_rotate_mb: int = 5
    log_retention_days: int = 7


@lru_cache
def get_settings() -> WidgetSettings:
    return WidgetSettings()
