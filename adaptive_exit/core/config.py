"""
Application configuration.

Loads settings from environment variables and .env file.
All configuration is centralized here, with no scattered magic strings.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment.

    Attributes:
        project_name: Display name for the API.
        version: Current API version string.
        debug: Enable debug mode. Must be False in production.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        rate_limit_default: Default rate limit for all endpoints.
        redis_url: Redis instance holding pivot, OI and candle snapshots.
        market_data_timeout_seconds: Socket timeout for each market data read.

    OI polling, confluence and lot allocation knobs are passed into the
    domain services by the dependency wiring; the domain never reads them.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    project_name: str = "AdaptiveExit"
    version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    rate_limit_default: str = "60/minute"

    # Market data (Redis)
    redis_url: str = "redis://localhost:6379/0"
    market_data_timeout_seconds: float = 0.005

    # OI window tracker
    oi_poll_interval_seconds: int = 60
    oi_grace_period_seconds: int = 30
    oi_window_size: int = 5
    oi_min_confidence: float = 0.3
    oi_vote_confidence: float = 0.5
    oi_votes_required: int = 3
    oi_max_age_seconds: int = 180
    oi_max_workers: int = 16

    # Level collection and confluence
    default_delta: float = 0.5
    swing_min_candles: int = 30
    swing_lookback_candles: int = 60
    swing_neighbors: int = 2
    cluster_tolerance_pct: float = 0.02
    round_tolerance_pct: float = 0.01
    entry_buffer_pct: float = 0.005

    lot_allocation_percentages: list[int] = Field(default_factory=lambda: [40, 30, 20, 10])

    scheduler_timezone: str = "Asia/Kolkata"
    scheduler_enabled: bool = True


settings = Settings()
