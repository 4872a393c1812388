from __future__ import annotations

import logging
from typing import Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "http://localhost:4001/v1/api"  # paper; live is :7497


class Settings(BaseSettings):
    """Gateway bridge settings with validation.

    All settings are loaded from environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Gateway connection
    ibkr_base_url: str = DEFAULT_BASE_URL
    ibkr_account_id: str = ""
    ibkr_timeout: float = 15.0
    ibkr_verify_ssl: bool = True

    # Batch behaviour
    continue_on_fail: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    log_file: Optional[str] = None

    @field_validator("ibkr_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"ibkr_base_url must start with http:// or https://, got {v!r}")
        return v

    @field_validator("ibkr_account_id")
    @classmethod
    def strip_account_id(cls, v: str) -> str:
        return v.strip()

    @field_validator("ibkr_timeout")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"ibkr_timeout must be > 0, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Invalid log level: {v}")
        return level

    def validate_gateway_credentials(self) -> None:
        """Raise if the account identifier is missing."""
        if not self.ibkr_account_id:
            raise ValueError("IBKR_ACCOUNT_ID must be set")


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Force reload settings from environment."""
    global _settings
    _settings = Settings()
    return _settings
