"""
Configuration Management for Account Book

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here. Components never read settings
themselves: the wiring factory in the orchestrator reads them once and passes
paths and thresholds into constructors explicitly.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger and report storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path("./data"),
        description="Root directory for all persisted documents"
    )
    transactions_dir: str = Field(
        default="transactions",
        description="Sub-directory holding one file per month partition"
    )
    reports_dir: str = Field(
        default="reconciliation",
        description="Sub-directory holding one report file per card"
    )
    io_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a transient file I/O error is attempted"
    )

    @property
    def transactions_path(self) -> Path:
        return self.data_dir / self.transactions_dir

    @property
    def reports_path(self) -> Path:
        return self.data_dir / self.reports_dir


class ReconciliationSettings(BaseSettings):
    """Statement reconciliation thresholds."""

    model_config = SettingsConfigDict(
        env_prefix="RECONCILIATION_",
        extra="ignore"
    )

    amount_tolerance: Decimal = Field(
        default=Decimal("100"),
        ge=0,
        description="Largest absolute amount difference accepted as a PARTIAL match"
    )
    payment_window_business_days: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Business days of slack on each side of the expected payment date"
    )
    card_config_path: Optional[str] = Field(
        default=None,
        description="Path to a JSON file with closing/payment day per card"
    )

    @field_validator('card_config_path')
    @classmethod
    def validate_card_config_path(cls, v: Optional[str]) -> Optional[str]:
        """Warn if the card config file doesn't exist (it might be mounted later)."""
        if v and not Path(v).exists():
            import warnings
            warnings.warn(
                f"Card configuration file not found at {v}. "
                "Reconciliation will fail with a configuration error until it exists."
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

    debug_mode: bool = Field(
        default=False,
        description="Log at DEBUG regardless of log_level"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for structured log output"
    )

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug_mode else self.log_level


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

    # Sub-settings are built lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def reconciliation(self) -> ReconciliationSettings:
        return ReconciliationSettings()

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

    for name in ("ledger", "reconciliation", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
