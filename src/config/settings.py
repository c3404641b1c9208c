"""Application settings using Pydantic Settings.

Centralized configuration for the practice manager.

Production expects the following environment variables:
- CH_API_KEY: Companies House REST API key
- APP_CORS_ORIGINS: Front-end origins allowed to call the API
- STORAGE_ROOT_DIR: Writable directory for uploaded and generated documents
"""

import sys
import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class CompaniesHouseSettings(BaseSettings):
    """Companies House public data API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_key: Optional[str] = Field(default=None, description="Companies House API key")
    base_url: str = Field(
        default="https://api.company-information.service.gov.uk",
        description="Companies House REST base URL",
    )
    timeout_seconds: float = Field(default=15.0, description="Request timeout in seconds")
    connect_timeout_seconds: float = Field(default=5.0, description="Connect timeout in seconds")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


class StorageSettings(BaseSettings):
    """Document storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    root_dir: str = Field(default="storage", description="Root directory for stored files")
    max_upload_mb: float = Field(default=50.0, description="Maximum upload size in megabytes")

    @property
    def documents_dir(self) -> Path:
        """Directory holding document binaries."""
        return Path(self.root_dir) / "documents" / "files"


class ResilienceSettings(BaseSettings):
    """Retry configuration for outbound calls."""

    model_config = SettingsConfigDict(
        env_prefix="RESILIENCE_",
        extra="ignore",
    )

    retry_max_attempts: int = Field(default=3, description="Max retry attempts")
    retry_base_delay: float = Field(default=0.5, description="Initial delay in seconds")
    retry_backoff_multiplier: float = Field(default=2.0, description="Backoff multiplier")
    retry_max_delay: float = Field(default=8.0, description="Max delay between retries")


class PracticeSettings(BaseSettings):
    """Practice-wide business defaults."""

    model_config = SettingsConfigDict(
        env_prefix="PRACTICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    firm_name: str = Field(default="M Practice Manager", description="Firm name printed on letters")
    firm_address: str = Field(default="", description="Firm address printed on letters")
    portfolio_count: int = Field(default=10, ge=1, description="Number of client portfolios")
    task_generation_window_days: int = Field(
        default=60, description="Services due within this many days generate tasks"
    )
    due_soon_days: int = Field(default=7, description="Tasks due within this many days are due soon")
    compliance_upcoming_days: int = Field(
        default=30, description="Compliance items due within this many days are upcoming"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application info
    name: str = Field(default="Practice Manager API", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    environment: str = Field(default="development", description="Environment name")

    # API settings
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=3001, description="API port")
    api_prefix: str = Field(default="/api/v1", description="Prefix for all practice routes")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_json: Optional[bool] = Field(
        default=None, description="Emit JSON logs (defaults to True in production)"
    )
    log_file: Optional[str] = Field(default=None, description="Optional log file path")

    # CORS
    cors_origins: list = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Allowed CORS origins"
    )

    @field_validator("api_prefix")
    @classmethod
    def _normalise_prefix(cls, value: str) -> str:
        value = "/" + value.strip("/")
        return "" if value == "/" else value

    # Nested settings (loaded separately)
    @property
    def companies_house(self) -> CompaniesHouseSettings:
        return CompaniesHouseSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def resilience(self) -> ResilienceSettings:
        return ResilienceSettings()

    @property
    def practice(self) -> PracticeSettings:
        return PracticeSettings()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment in ("production", "prod", "staging")

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @property
    def json_logs(self) -> bool:
        if self.log_json is not None:
            return self.log_json
        return self.is_production

    def validate_production_settings(self) -> List[str]:
        """
        Validate the settings production depends on.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.is_production:
            return errors

        if self.debug:
            errors.append("APP_DEBUG: Must be False in production")

        if not self.companies_house.is_configured:
            errors.append(
                "CH_API_KEY: Required in production for Companies House import and sync"
            )

        if any("localhost" in origin or "127.0.0.1" in origin for origin in self.cors_origins):
            errors.append("APP_CORS_ORIGINS: Must not include localhost origins in production")

        return errors


# =============================================================================
# STARTUP VALIDATION
# =============================================================================

class StartupConfigurationError(Exception):
    """Raised when configuration validation fails at startup."""
    pass


def validate_startup_settings(settings: Settings, exit_on_failure: bool = True) -> bool:
    """
    Validate settings at application startup.

    In production, fails fast if required settings are missing.

    Raises:
        StartupConfigurationError: If validation fails and exit_on_failure is False
    """
    errors = settings.validate_production_settings()

    if not errors:
        if settings.is_production:
            logger.info("Production configuration validation PASSED")
        return True

    error_msg = "Invalid production configuration:\n" + "\n".join(
        f"  {i}. {err}" for i, err in enumerate(errors, 1)
    )
    logger.critical(error_msg)

    if exit_on_failure:
        print(error_msg, file=sys.stderr)
        sys.exit(1)
    raise StartupConfigurationError(error_msg)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings instance.

    Returns:
        Settings: Cached settings loaded from environment.
    """
    return Settings()
