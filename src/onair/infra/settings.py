"""
Application settings for OnAir.

This module defines all configuration settings for OnAir using Pydantic BaseSettings.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Main application settings using Pydantic BaseSettings."""

    # Database settings
    database_url: str = Field(default="sqlite:///./onair.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    echo_sql: bool = Field(default=False, alias="ECHO_SQL")
    pool_size: int = Field(default=5, alias="DB_POOL_SIZE")
    max_overflow: int = Field(default=10, alias="DB_MAX_OVERFLOW")
    pool_timeout: int = Field(default=30, alias="DB_POOL_TIMEOUT")
    connect_timeout: int = Field(default=30, alias="DB_CONNECT_TIMEOUT")

    # Runtime
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    allowed_origins: str = Field(default="*", alias="ALLOWED_ORIGINS")  # Comma-separated origins
    env: str = Field(default="dev", alias="ENV")  # dev|prod|test
    http_host: str = Field(default="127.0.0.1", alias="HTTP_HOST")
    http_port: int = Field(default=8000, alias="HTTP_PORT")

    # Broadcast channel
    channel_id: str = Field(default="global", alias="CHANNEL_ID")
    lookahead_length: int = Field(default=5, ge=1, alias="LOOKAHEAD_LENGTH")
    crossfade_lead_ms: int = Field(default=10_000, ge=0, alias="CROSSFADE_LEAD_MS")
    advance_interval_seconds: float = Field(default=1.0, gt=0, alias="ADVANCE_INTERVAL_SECONDS")
    advance_on_read: bool = Field(default=True, alias="ADVANCE_ON_READ")
    max_catchup_steps: int = Field(default=100, ge=1, alias="MAX_CATCHUP_STEPS")
    history_limit: int = Field(default=50, ge=1, alias="HISTORY_LIMIT")
    queue_preview_depth: int = Field(default=5, ge=1, alias="QUEUE_PREVIEW_DEPTH")

    # Selection policy knobs
    anti_repeat_window: int = Field(default=5, ge=0, alias="ANTI_REPEAT_WINDOW")
    artist_diversity_window: int = Field(default=3, ge=0, alias="ARTIST_DIVERSITY_WINDOW")
    freshness_half_life_days: float = Field(default=10.0, gt=0, alias="FRESHNESS_HALF_LIFE_DAYS")
    tip_boost: float = Field(default=1.0, ge=0, alias="TIP_BOOST")
    play_count_boost: float = Field(default=1.0, ge=0, alias="PLAY_COUNT_BOOST")
    min_weight: float = Field(default=0.001, gt=0, alias="MIN_WEIGHT")

    # Now-playing cache
    now_playing_cache_enabled: bool = Field(default=True, alias="NOW_PLAYING_CACHE_ENABLED")
    now_playing_cache_max_ttl_s: int = Field(default=60, ge=1, alias="NOW_PLAYING_CACHE_MAX_TTL_S")
    waiting_cache_ttl_s: int = Field(default=5, ge=1, alias="WAITING_CACHE_TTL_S")

    model_config: SettingsConfigDict = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore extra fields like PYTHONPATH from .env
    )

    @property
    def origins(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


def _resolve_env_file() -> str | None:
    # 1) Explicit override
    explicit = os.getenv("ONAIR_ENV_FILE")
    if explicit and Path(explicit).is_file():
        return explicit

    # 2) CWD .env
    cwd_env = Path.cwd() / ".env"
    if cwd_env.is_file():
        return str(cwd_env)

    # 3) Walk up from this file to find nearest .env
    here = Path(__file__).resolve()
    for parent in here.parents:
        candidate = parent / ".env"
        if candidate.is_file():
            return str(candidate)
    return None


# Global settings instance (load from best-effort .env discovery)
_env_file = _resolve_env_file()
settings = Settings(_env_file=_env_file) if _env_file else Settings()  # type: ignore[call-arg]
