"""
Application configuration with validation and environment management.

All configuration is read from the environment (or a local .env file) and
validated on startup to catch errors early.
"""

import os
from typing import List, Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with validation."""

    # Database
    database_url: str
    database_url_test: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # Monitoring (optional)
    sentry_dsn: Optional[str] = None
    environment: str = "development"

    # Collision detection
    detection_max_workers: int = 3

    # Story merger marketplace
    marketplace_page_size: int = 20

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v.lower() not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v.lower()

    @field_validator("detection_max_workers", "marketplace_page_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    def validate_required(self) -> List[str]:
        """
        Validate required settings for production.

        Returns:
            List of missing required settings
        """
        errors = []

        if not self.database_url:
            errors.append("DATABASE_URL is required")
        if self.environment == "production" and not self.sentry_dsn:
            errors.append("SENTRY_DSN is recommended in production")
        return errors

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Create settings instance
settings = Settings()

# Validate on import (for production)
if os.getenv("VALIDATE_CONFIG", "false").lower() == "true":
    errors = [e for e in settings.validate_required() if "required" in e]
    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")
