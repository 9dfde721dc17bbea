"""
Application settings with Pydantic v2 validation.

Loads configuration from environment variables with sensible defaults.
"""

from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Literal
from zoneinfo import ZoneInfo

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Storage configuration."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    data_dir: Path = Path("data")
    db_name: str = "stockledger.db"

    # SQLite settings
    pool_size: int = 5
    busy_timeout: int = 30000  # ms
    acquire_timeout: float = 10.0  # seconds to wait for a free pooled connection

    # Retries for "database is locked" on snapshot/queue writes
    write_retries: int = 3

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name


class EngineSettings(BaseSettings):
    """Snapshot engine configuration."""

    model_config = SettingsConfigDict(env_prefix="ENGINE_")

    # Tolerance when comparing stored closing balances with the formula
    balance_epsilon: float = 0.01

    # PROCESSING claims older than this are returned to PENDING
    stale_claim_minutes: int = 30

    # Company existence cache
    company_cache_ttl: int = 300  # seconds


class RecalcSettings(BaseSettings):
    """Recalculation queue configuration."""

    model_config = SettingsConfigDict(env_prefix="RECALC_")

    batch_size: int = 10
    max_retries: int = 5
    max_concurrency: int = 4


class SchedulerSettings(BaseSettings):
    """Background scheduler configuration."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_")

    enabled: bool = True
    drain_interval_minutes: int = 15
    eod_time: str = "00:05"  # local HH:MM
    timezone: str = "UTC"

    @field_validator("eod_time")
    @classmethod
    def validate_eod_time(cls, v: str) -> str:
        time.fromisoformat(v)
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        ZoneInfo(v)
        return v

    @property
    def eod_clock(self) -> time:
        return time.fromisoformat(self.eod_time)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class APISettings(BaseSettings):
    """API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    cors_origins: list[str] = ["*"]


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Stock Ledger"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    # auto: console in development, JSON elsewhere
    log_format: Literal["auto", "console", "json"] = "auto"

    # Sub-settings
    storage: StorageSettings = Field(default_factory=StorageSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    recalc: RecalcSettings = Field(default_factory=RecalcSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    api: APISettings = Field(default_factory=APISettings)

    @field_validator("storage", mode="before")
    @classmethod
    def ensure_data_dir(cls, v: Any) -> StorageSettings:
        if isinstance(v, dict):
            settings = StorageSettings(**v)
        else:
            settings = v or StorageSettings()
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        return settings


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None


def business_now() -> datetime:
    """Current wall-clock time in the business timezone."""
    return datetime.now(get_settings().scheduler.tz)


def business_today() -> date:
    """Today's date in the business timezone."""
    return business_now().date()
