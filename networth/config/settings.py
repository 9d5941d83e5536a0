"""
Configuration Management for Net Worth

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Defaults are usable out of the box; a .env file or NETWORTH_* variables
override them.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from networth.models.portfolio import PaymentPeriod


class EngineSettings(BaseSettings):
    """Flow engine defaults."""

    model_config = SettingsConfigDict(
        env_prefix="NETWORTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_currency: str = Field(
        default="USD",
        description="Currency a fresh form starts with"
    )
    dividend_withholding_rate: float = Field(
        default=0.30,
        ge=0.0,
        le=1.0,
        description="Withholding rate used until the user's tax settings load"
    )
    default_payment_period: PaymentPeriod = Field(
        default=PaymentPeriod.MONTHLY,
        description="Interest payment period used when an asset has none saved"
    )

    # External lookups
    ticker_search_debounce_ms: int = Field(
        default=300,
        ge=0,
        le=5000,
        description="Delay before a ticker search is sent"
    )
    ticker_search_limit: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum ticker search results"
    )
    cost_basis_history_limit: int = Field(
        default=1000,
        ge=1,
        description="Maximum invest flows read when computing average cost"
    )
    lookup_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for read-only lookups (search, price, history)"
    )
    lookup_retry_wait_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=30.0,
        description="Base exponential backoff between lookup attempts"
    )

    @field_validator("default_currency")
    @classmethod
    def normalize_default_currency(cls, v: str) -> str:
        """Currency codes are 3-letter ISO codes."""
        normalized = v.strip().upper()
        if len(normalized) != 3 or not normalized.isalpha():
            raise ValueError("Currency must be a 3-letter ISO 4217 code.")
        return normalized

    @property
    def ticker_search_debounce_seconds(self) -> float:
        return self.ticker_search_debounce_ms / 1000


class LoggingSettings(BaseSettings):
    """Structured logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="NETWORTH_LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    json_output: bool = Field(
        default=True,
        description="Render log lines as JSON (False = console renderer)"
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Unsupported log level: {v}. Allowed: {sorted(allowed)}")
        return v.upper()


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
    def engine(self) -> EngineSettings:
        return EngineSettings()

    @property
    def logging(self) -> LoggingSettings:
        return LoggingSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

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
        _ = settings.engine
        results["engine"] = True
    except Exception as e:
        results["engine"] = False
        results["engine_error"] = str(e)

    try:
        _ = settings.logging
        results["logging"] = True
    except Exception as e:
        results["logging"] = False
        results["logging_error"] = str(e)

    return results
