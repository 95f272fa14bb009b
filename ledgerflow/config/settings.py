"""
Configuration Management for LedgerFlow

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The engine itself never reads the environment; it receives a
LedgerSettings instance (or falls back to get_settings()).
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger engine behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_profile_name: str = Field(
        default="Personal",
        min_length=1,
        description="Profile tag given to rows that do not carry one"
    )
    fixed_payment_post_hour: int = Field(
        default=9,
        ge=0,
        le=23,
        description="Hour of day used for auto-posted fixed payment entries"
    )

    # Free-tier limits used by FreeTierEntitlements
    free_account_limit: int = Field(
        default=3,
        ge=1,
        description="Maximum number of accounts on the free tier"
    )
    free_monthly_transaction_limit: int = Field(
        default=200,
        ge=1,
        description="Maximum number of entries per calendar month on the free tier"
    )

    # Backup / persistence
    backup_indent: int = Field(
        default=2,
        ge=0,
        le=8,
        description="JSON indentation used when encoding backups"
    )
    data_file: Optional[str] = Field(
        default=None,
        description="Path of the JSON ledger store (None keeps the ledger in memory)"
    )

    @field_validator('data_file')
    @classmethod
    def validate_data_file(cls, v: Optional[str]) -> Optional[str]:
        """Warn if the store's directory doesn't exist yet (it is created on first save)."""
        if v and not Path(v).parent.exists():
            import warnings
            warnings.warn(
                f"Directory for ledger data file {v} does not exist yet. "
                "It will be created on first save."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging verbosity"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.ledger
        results["ledger"] = True
    except Exception as e:
        results["ledger"] = False
        results["ledger_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
