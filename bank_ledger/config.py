"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BankLedgerConfig(BaseSettings):
    """Bank ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="BANK_LEDGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage configuration
    database_url: str = "memory://"  # memory://, sqlite:///file.db, postgresql://...
    accounts_table: str = "accounts"

    # Concurrency configuration
    lock_timeout_seconds: Optional[float] = None  # None blocks until the lock is free
    lock_poll_interval: float = 0.05  # Wait slice while a cancel event is watched

    # Business rules configuration
    account_id_start: int = 1000
    default_overdraft_limit: str = "1000.00"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    @field_validator("lock_timeout_seconds")
    @classmethod
    def _non_negative_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value < 0:
            raise ValueError("lock_timeout_seconds must be >= 0")
        return value

    @field_validator("lock_poll_interval")
    @classmethod
    def _positive_poll_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("lock_poll_interval must be > 0")
        return value

    @field_validator("default_overdraft_limit")
    @classmethod
    def _positive_limit(cls, value: str) -> str:
        try:
            limit = Decimal(value)
        except InvalidOperation:
            raise ValueError(f"default_overdraft_limit is not a number: {value!r}")
        if not limit.is_finite() or limit <= 0:
            raise ValueError("default_overdraft_limit must be positive")
        return value

    @property
    def overdraft_limit(self) -> Decimal:
        return Decimal(self.default_overdraft_limit)


# Global configuration instance
config = BankLedgerConfig()


def get_config() -> BankLedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BankLedgerConfig:
    """Reload configuration from environment"""
    global config
    config = BankLedgerConfig()
    return config
