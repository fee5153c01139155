"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class LedgerConfig(BaseSettings):
    """Bank ledger service configuration"""

    # Database configuration
    database_url: str = "sqlite:///bank_ledger.db"  # memory://, sqlite:///path, postgresql://...

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = Field(
        default=5000,
        validation_alias=AliasChoices("LEDGER_API_PORT", "PORT"),
    )
    api_prefix: str = "/api"
    cors_origin_regex: str = r"http://(127(\.\d{1,3}){3}|localhost)(:\d+)?"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Business rules configuration
    reverse_balance_on_remove: bool = False  # Subtract removed transaction amounts from balance

    class Config:
        env_prefix = "LEDGER_"
        env_file = ".env"
        case_sensitive = False
        populate_by_name = True


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
