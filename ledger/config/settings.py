"""
Configuration Management for Pocket Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see where the ledger keeps its data and which
external feeds it talks to, and ensures configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local SQLite storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        extra="ignore"
    )

    database_path: str = Field(
        default="ledger.db",
        description="Path to the SQLite file holding transactions and attachments"
    )
    busy_timeout_seconds: float = Field(
        default=5.0,
        ge=0.0,
        le=60.0,
        description="How long SQLite waits on a locked database before failing"
    )

    @field_validator('database_path')
    @classmethod
    def validate_database_path(cls, v: str) -> str:
        """Warn if the parent directory is missing (SQLite will not create it)."""
        if v != ":memory:" and not Path(v).expanduser().parent.exists():
            import warnings
            warnings.warn(
                f"Directory for ledger database {v} does not exist. "
                "Create it before opening the ledger."
            )
        return v


class FeedSettings(BaseSettings):
    """External indicator feed configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_FEEDS_",
        extra="ignore"
    )

    indicators_url: str = Field(
        default="https://mindicador.cl/api",
        description="Economic indicators feed (UF, UTM, IPC, Imacec, USD, EUR)"
    )
    crypto_url: str = Field(
        default=(
            "https://api.coingecko.com/api/v3/simple/price"
            "?ids=bitcoin,ethereum,solana&vs_currencies=usd,clp"
        ),
        description="Crypto price feed"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Timeout for a single feed request"
    )
    refresh_interval_seconds: int = Field(
        default=600,
        ge=10,
        description="Interval between periodic indicator refreshes"
    )


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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Attachment limits
    max_attachment_size_mb: int = Field(
        default=25,
        ge=1,
        le=200,
        description="Maximum size of a single receipt in MB"
    )
    preview_ttl_seconds: float = Field(
        default=60.0,
        gt=0.0,
        le=3600.0,
        description="How long a materialized attachment preview lives"
    )

    # Aggregation
    histogram_points: int = Field(
        default=14,
        ge=1,
        le=366,
        description="Number of most recent days shown in the daily histogram"
    )

    # Display
    currency_symbol: str = Field(
        default="$",
        description="Symbol used when formatting amounts"
    )

    @property
    def max_attachment_size_bytes(self) -> int:
        """Get max attachment size in bytes."""
        return self.max_attachment_size_mb * 1024 * 1024


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
    def feeds(self) -> FeedSettings:
        return FeedSettings()

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

    for name in ("storage", "feeds", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
