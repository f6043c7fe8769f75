# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Conversation cache configuration.

    All settings can be overridden via ``CONVCACHE_``-prefixed environment
    variables or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="CONVCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./conversation_cache.db"
    db_echo: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    # Lookup defaults
    default_limit: int = 5
    default_min_similarity: float = 0.3

    # Retention sweep defaults
    retention_max_age_days: int = 30
    retention_min_usage: int = 2

    # What happens to usage_count when a fingerprint is saved again
    usage_on_replace: Literal["reset", "preserve"] = "reset"

    # Usage hit queue (max pending hits before dropping)
    hit_queue_size: int = 10_000

    # Observability
    metrics_prefix: str = "convcache"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper

    @field_validator("default_min_similarity")
    @classmethod
    def validate_similarity(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"default_min_similarity must be within [0, 1], got {v}")
        return v

    @field_validator("default_limit", "retention_min_usage", "hit_queue_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}")
        return v

    @field_validator("retention_max_age_days")
    @classmethod
    def validate_max_age(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"retention_max_age_days must be >= 0, got {v}")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
