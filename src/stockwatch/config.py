"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """SQLite storage location."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    path: str = "data/stockwatch.db"


class ProviderSettings(BaseSettings):
    """Market-data provider selection and call limits."""

    model_config = SettingsConfigDict(env_prefix="PROVIDER_")

    source: Literal["yahoo", "ccxt"] = "yahoo"
    exchange_id: str = "binance"  # only used when source == "ccxt"
    timeout_seconds: float = 10.0  # per provider call
    max_concurrency: int = 8  # simultaneous quote requests per refresh cycle


class RefreshSettings(BaseSettings):
    """Quote refresh cadence.

    All fields configurable via REFRESH_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="REFRESH_")

    enabled: bool = True
    interval_seconds: int = 60
    max_age_seconds: int = 30  # on-demand reads refresh only when older than this
    timezone: str = "UTC"  # calendar day boundary for the day-open anchor


class BackfillSettings(BaseSettings):
    """Daily bar reconciliation.

    Controls how many days are pulled per run, how often the batch runs,
    and how provider faults are retried.
    All fields configurable via BACKFILL_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="BACKFILL_")

    enabled: bool = True
    lookback_days: int = 50
    interval_hours: int = 24
    default_currency: str = "USD"
    max_retries: int = 3
    retry_base_delay: float = 1.0


class ApiSettings(BaseSettings):
    """HTTP read API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    tracked_symbols: list[str] = []  # seeded into the registry at startup
    database: DatabaseSettings = DatabaseSettings()
    provider: ProviderSettings = ProviderSettings()
    refresh: RefreshSettings = RefreshSettings()
    backfill: BackfillSettings = BackfillSettings()
    api: ApiSettings = ApiSettings()

    @field_validator("tracked_symbols")
    @classmethod
    def _normalize_symbols(cls, value: list[str]) -> list[str]:
        return [s.strip().upper() for s in value if s.strip()]
