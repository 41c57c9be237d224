"""
Central configuration for the crickfeed service.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://api.cricapi.com/v1"


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Root settings for the feed and its HTTP surface."""

    model_config = SettingsConfigDict(
        env_prefix="CF_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Pod/container ID bound to every log line")

    # ── Upstream ─────────────────────────────────────────────
    cricket_api_key: str = Field(
        default="",
        description="Comma-separated, ordered list of rotating API keys.",
    )
    cricket_api_base_url: str = DEFAULT_BASE_URL
    upstream_timeout_s: float = Field(default=30.0, gt=0)

    # ── Rate limiting ────────────────────────────────────────
    throttle_spacing_s: float = Field(default=10.0, ge=0)
    key_cooldown_s: float = Field(default=16 * 60, gt=0)
    error_log_window_s: float = Field(default=300.0, ge=0)

    # ── Cache / refresh ──────────────────────────────────────
    cache_update_interval_s: float = Field(default=60.0, gt=0)
    initial_refresh_delay_s: float = Field(default=2.0, ge=0)
    match_details_ttl_s: float = Field(default=300.0, gt=0)
    series_ttl_s: float = Field(default=300.0, gt=0)
    current_matches_limit: int = Field(default=10, gt=0)
    upcoming_matches_limit: int = Field(default=20, gt=0)
    scheduler_enabled: bool = True

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 5001
    api_workers: int = 1
    cors_origins: list[str] = ["*"]

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @model_validator(mode="after")
    def use_legacy_env_fallback(self) -> "Settings":
        """Honor the un-prefixed CRICKET_API_* / CACHE_UPDATE_INTERVAL vars when CF_* are unset."""
        if not self.cricket_api_key:
            self.cricket_api_key = os.environ.get("CRICKET_API_KEY", "")
        if self.cricket_api_base_url == DEFAULT_BASE_URL:
            self.cricket_api_base_url = os.environ.get("CRICKET_API_BASE_URL") or DEFAULT_BASE_URL
        if "CF_CACHE_UPDATE_INTERVAL_S" not in os.environ:
            raw_ms = os.environ.get("CACHE_UPDATE_INTERVAL")
            if raw_ms:
                try:
                    interval_ms = int(raw_ms)
                except ValueError:
                    interval_ms = 0
                if interval_ms > 0:
                    self.cache_update_interval_s = interval_ms / 1000.0
        return self

    @property
    def api_keys(self) -> list[str]:
        """Configured credentials in order, whitespace trimmed, empties dropped."""
        return [k.strip() for k in self.cricket_api_key.split(",") if k.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
