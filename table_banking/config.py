"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class LendingConfig(BaseSettings):
    """Table banking loan engine configuration"""

    model_config = SettingsConfigDict(
        env_prefix="TABLE_BANKING_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Database configuration
    database_url: str = "sqlite:///table_banking.db"

    # Money
    currency: str = "KES"  # ISO code of the deployment currency

    # Loan rules
    grace_period_days: int = 30  # Days an installment may stay unpaid past its due date
    late_penalty_rate: Decimal = Decimal("0.05")  # Fraction of the paid amount
    max_purpose_length: int = 500

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Security configuration
    auth_enabled: bool = True
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Notifications
    notification_webhook_url: Optional[str] = None
    notification_timeout: float = 5.0


# Global configuration instance
config = LendingConfig()


def get_config() -> LendingConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LendingConfig:
    """Reload configuration from environment"""
    global config
    config = LendingConfig()
    return config
