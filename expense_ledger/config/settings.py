"""
Configuration Management for the Expense Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The core itself needs very little: which storage backend to open,
whether to seed default data, and the thresholds the validator uses
for its non-blocking warnings.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """
    Main ledger settings.

    Loads configuration from LEDGER_* environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Storage
    storage_backend: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Which store implementation to open"
    )
    database_path: Path = Field(
        default=Path("expense_ledger.db"),
        description="SQLite database file (sqlite backend only)"
    )
    sqlite_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long SQLite waits on a locked database"
    )

    # Seeding
    seed_defaults: bool = Field(
        default=True,
        description="Create default categories and a Cash account on first open"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    log_json: bool = Field(
        default=False,
        description="Render logs as JSON instead of console output"
    )

    # Validation thresholds (warnings only, never blocking)
    large_amount_warning: Decimal = Field(
        default=Decimal("1000000"),
        gt=0,
        description="Amounts above this are flagged for review"
    )
    future_date_tolerance_days: int = Field(
        default=365,
        ge=0,
        description="How far in the future a transaction date can be before it is flagged"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache()
def get_settings() -> LedgerSettings:
    """
    Get ledger settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return LedgerSettings()
