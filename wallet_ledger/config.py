"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class WalletConfig(BaseSettings):
    """Wallet ledger configuration"""
    
    # Document store configuration
    store_backend: str = "memory"  # memory, file or jsonbin
    store_path: str = "wallet_data"  # Directory used by the file backend
    store_timeout: float = 10.0
    
    # JSONBin configuration
    jsonbin_base_url: str = "https://api.jsonbin.io/v3"
    jsonbin_master_key: str = ""
    jsonbin_accounts_bin: str = ""
    jsonbin_transactions_bin: str = ""
    jsonbin_investments_bin: str = ""
    
    # Concurrency configuration
    lock_timeout_seconds: float = 10.0
    sweep_batch_size: int = 500
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr
    
    # Business rules configuration
    currency: str = "EUR"
    welcome_bonus: str = "1800.00"
    minimum_withdrawal: str = "100.00"
    minimum_investment: str = "100.00"
    minimum_card_number_length: int = 15
    
    # Feature flags
    enable_cards: bool = True
    enable_audit_logging: bool = True
    
    class Config:
        env_prefix = "WALLET_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = WalletConfig()


def get_config() -> WalletConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> WalletConfig:
    """Reload configuration from environment"""
    global config
    config = WalletConfig()
    return config
