"""
Engine Settings - Pydantic-based configuration management.

Loads settings from environment variables (prefix ``CAPACITY_SYNC_``) with
validation and type coercion.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    All settings can be overridden via environment variables, e.g.
    ``CAPACITY_SYNC_DEBOUNCE_DELAY_MS=750``.
    """

    model_config = SettingsConfigDict(
        env_prefix="CAPACITY_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Capacity defaults
    # -------------------------------------------------------------------------
    default_hours_per_day: float = Field(
        default=8.0,
        ge=0.0,
        le=24.0,
        description="Hours per day assumed when a member has none set",
    )
    default_days_per_week: float = Field(
        default=5.0,
        ge=0.0,
        le=7.0,
        description="Working days per week assumed when a member has none set",
    )
    unknown_member_capacity: float = Field(
        default=40.0,
        ge=0.0,
        description="Effective weekly capacity assumed for a member the workspace does not know",
    )
    max_weekly_capacity: float = Field(
        default=100.0,
        gt=0.0,
        description="Upper bound applied to a member's weekly capacity",
    )

    # -------------------------------------------------------------------------
    # Synchronization timing
    # -------------------------------------------------------------------------
    debounce_delay_ms: int = Field(
        default=500,
        ge=0,
        description="Delay before a burst of local edits is written to the store",
    )
    loop_guard_window_ms: int = Field(
        default=200,
        ge=0,
        le=5000,
        description="Minimum settle interval between two accepted updates from one publisher",
    )
    updating_release_ms: int = Field(
        default=100,
        ge=0,
        description="Delay before a subscriber's updating flag is cleared after its write",
    )
    explicit_save_delay_ms: int = Field(
        default=50,
        ge=0,
        description="Delay of the redundant write issued for less reliable entity types",
    )
    explicit_save_entity_types: list[str] = Field(
        default_factory=lambda: ["provider"],
        description="Entity types that get an additional unconditional write",
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: str = Field(default="INFO", description="Root log level")
    log_json: bool = Field(default=True, description="Render logs as JSON (console renderer otherwise)")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Singleton Settings instance.
    """
    return Settings()
