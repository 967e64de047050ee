"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class LedgerConfig(BaseSettings):
    """Ledger engine and API configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Account numbering (first account gets floor + 1)
    account_number_floor: int = 1000

    # Business rules configuration (Decimal strings)
    daily_transfer_limit: str = "5000.00"
    max_deposit_amount: str = "50000.00"
    savings_max_withdrawal: str = "1000.00"
    max_description_length: int = 100

    # Operating hours, inclusive on both ends (local clock)
    business_hours_start: int = 6
    business_hours_end: int = 22
    enforce_business_hours: bool = True

    # Check and record the daily limit under one lock per (account, date)
    strict_daily_limit: bool = True

    # Number of lock stripes guarding the daily transfer totals
    lock_stripes: int = 64

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
