"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class BankConfig(BaseSettings):
    """Bank ledger service configuration"""

    # Database configuration
    database_url: str = "sqlite:///bank_ledger.db"  # memory://, sqlite:///..., postgresql://...

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Session configuration
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    session_ttl_days: int = 7
    session_expiry_buffer_seconds: int = 60
    session_cookie_name: str = "session"

    # PII protection
    encryption_key: str = ""  # 64 hex chars; generate with: openssl rand -hex 32
    ssn_pepper: str = ""

    # Business rules configuration
    max_funding_amount: str = "10000.00"
    account_number_max_attempts: int = 5
    minimum_signup_age: int = 18

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None

    class Config:
        env_prefix = "BANK_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = BankConfig()


def get_config() -> BankConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BankConfig:
    """Reload configuration from environment"""
    global config
    config = BankConfig()
    return config
