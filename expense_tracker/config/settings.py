"""
Configuration Management for Expense Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The store, the validator and the logging setup all read from the same
cached settings object, so a single .env file drives the whole process.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local SQLite storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    path: str = Field(
        default="expense-tracker.db",
        description="Path to the SQLite database file"
    )
    operation_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=300,
        description="Upper bound for a single store operation"
    )
    busy_timeout_ms: int = Field(
        default=5000,
        ge=0,
        description="How long SQLite waits on a locked database"
    )
    open_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts made to open the database before giving up"
    )
    echo_sql: bool = Field(
        default=False,
        description="Log every SQL statement (debugging only)"
    )

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Reject an empty path; in-memory databases are not durable."""
        if not v.strip():
            raise ValueError("Database path must not be empty")
        if v.strip() == ":memory:":
            raise ValueError("In-memory databases are not supported")
        return v.strip()

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for the async SQLite driver."""
        return f"sqlite+aiosqlite:///{Path(self.path).expanduser()}"


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (console rendering otherwise)"
    )

    # Validation thresholds
    max_expense_amount: float = Field(
        default=100000.0,
        gt=0,
        description="Amount above which an expense is flagged for review"
    )
    future_date_tolerance_days: int = Field(
        default=1,
        ge=0,
        description="How many days in the future an expense date can be"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.storage
        results["storage"] = True
    except Exception as e:
        results["storage"] = False
        results["storage_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
