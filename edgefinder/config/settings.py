"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env file.
"""
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_BOOK_PRIORITY,
    MAX_EV_THRESHOLD,
    MIN_BOOKS,
    MIN_EV_THRESHOLD,
    MIN_LINE_DISCREPANCY,
    TRACKED_SPORTS,
)


class EdgeDetectionSettings(BaseSettings):
    """Settings for cross-book edge detection."""

    model_config = SettingsConfigDict(env_prefix="EDGE_")

    min_books: int = Field(
        default=MIN_BOOKS,
        ge=2,
        description="Minimum distinct books quoting an outcome before it is evaluated",
    )
    min_ev_threshold: float = Field(
        default=MIN_EV_THRESHOLD,
        description="Minimum EV percent to flag an edge",
    )
    max_ev_threshold: float = Field(
        default=MAX_EV_THRESHOLD,
        description="EV percent above which a quote is treated as a data error",
    )
    min_line_discrepancy: int = Field(
        default=MIN_LINE_DISCREPANCY,
        description="Best-to-worst price spread that lets a smaller positive EV through",
    )
    book_priority: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BOOK_PRIORITY),
        description="Bookmaker keys that win price ties, in order",
    )

    @field_validator("max_ev_threshold")
    @classmethod
    def validate_max_ev(cls, v: float, info) -> float:
        min_ev = info.data.get("min_ev_threshold")
        if min_ev is not None and v < min_ev:
            raise ValueError("max_ev_threshold must be >= min_ev_threshold")
        return v


class LineMovementSettings(BaseSettings):
    """Settings for line movement tracking."""

    model_config = SettingsConfigDict(env_prefix="MOVEMENT_")

    history_size: int = Field(
        default=20,
        ge=1,
        description="Snapshots kept per line",
    )
    max_movements: int = Field(
        default=50,
        ge=1,
        description="Recent movement events kept in memory",
    )
    spread_threshold: float = Field(
        default=1.0,
        description="Spread point change that counts as significant",
    )
    total_threshold: float = Field(
        default=2.0,
        description="Total point change that counts as significant",
    )
    moneyline_threshold: int = Field(
        default=15,
        description="Moneyline price change that counts as significant",
    )


class OddsAPISettings(BaseSettings):
    """Settings for The Odds API."""

    model_config = SettingsConfigDict(env_prefix="ODDS_")

    api_key: str = Field(
        default="",
        description="API key from the-odds-api.com",
    )
    base_url: str = Field(
        default="https://api.the-odds-api.com/v4",
        description="Base URL for the API",
    )
    regions: list[str] = Field(
        default=["us"],
        description="Regions to fetch odds from",
    )
    markets: list[str] = Field(
        default=["h2h", "spreads", "totals"],
        description="Feed market keys to request",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Per-request timeout",
    )
    tracked_sports: list[str] = Field(
        default_factory=lambda: list(TRACKED_SPORTS),
        description="Sport keys scanned on every refresh",
    )


class CacheSettings(BaseSettings):
    """Settings for the in-process cache."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    odds_ttl_seconds: int = Field(default=120)
    edges_ttl_seconds: int = Field(default=900)
    injuries_ttl_seconds: int = Field(default=300)
    max_size: int = Field(
        default=1000,
        description="Maximum cached entries before the oldest are evicted",
    )


class SchedulerSettings(BaseSettings):
    """Settings for job scheduler."""

    model_config = SettingsConfigDict(env_prefix="")

    refresh_interval_minutes: int = Field(
        default=2,
        ge=1,
        description="Minutes between odds refreshes",
    )
    health_check_interval_minutes: int = Field(
        default=5,
        ge=1,
        description="Minutes between data source health checks",
    )


class KellySettings(BaseSettings):
    """Settings for Kelly bet sizing."""

    model_config = SettingsConfigDict(env_prefix="KELLY_")

    fraction: Decimal = Field(
        default=Decimal("0.25"),
        description="Fraction of Kelly Criterion to use (0.25 = quarter Kelly)",
    )
    max_stake_percent: Decimal = Field(
        default=Decimal("0.05"),
        description="Maximum stake as percentage of bankroll",
    )
    min_stake: Decimal = Field(
        default=Decimal("1.00"),
        description="Stakes below this amount are not recommended",
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default="logs/edgefinder.log")
    debug: bool = Field(default=False)

    # Sub-settings
    edge_detection: EdgeDetectionSettings = Field(default_factory=EdgeDetectionSettings)
    line_movement: LineMovementSettings = Field(default_factory=LineMovementSettings)
    odds_api: OddsAPISettings = Field(default_factory=OddsAPISettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    kelly: KellySettings = Field(default_factory=KellySettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()

    @property
    def project_root(self) -> Path:
        """Get project root directory."""
        return Path(__file__).parent.parent.parent

    @property
    def logs_dir(self) -> Path:
        """Get logs directory."""
        logs_path = self.project_root / "logs"
        logs_path.mkdir(parents=True, exist_ok=True)
        return logs_path


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
