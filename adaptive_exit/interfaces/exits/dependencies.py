"""
Dependency injection for the exits bounded context.

Provides FastAPI dependency functions that wire the Redis adapter and
domain services into use cases via constructor injection.

Exit state lives in memory, so the coordinator, tracker and scheduler
are process-wide singletons; use cases are cheap and built per request.
"""

from functools import lru_cache

from fastapi import Depends

from adaptive_exit.application.exits.check_immediate_exit import CheckImmediateExitUseCase
from adaptive_exit.application.exits.close_position import ClosePositionUseCase
from adaptive_exit.application.exits.get_position_snapshot import GetPositionSnapshotUseCase
from adaptive_exit.application.exits.handle_target_hit import HandleTargetHitUseCase
from adaptive_exit.application.exits.open_position import OpenPositionUseCase
from adaptive_exit.core.config import settings
from adaptive_exit.domain.exits.confluence import ConfluenceScorer
from adaptive_exit.domain.exits.coordinator import PositionExitCoordinator
from adaptive_exit.domain.exits.level_collector import LevelCollector
from adaptive_exit.domain.exits.oi_tracker import OiWindowTracker
from adaptive_exit.infrastructure.exits.redis_market_data import RedisMarketDataAdapter
from adaptive_exit.realtime.scheduler import OiRefreshScheduler


@lru_cache
def get_market_data_adapter() -> RedisMarketDataAdapter:
    """Build the Redis adapter from application settings."""
    return RedisMarketDataAdapter(
        redis_url=settings.redis_url,
        timeout_seconds=settings.market_data_timeout_seconds,
        oi_max_age_seconds=settings.oi_max_age_seconds,
    )


@lru_cache
def get_coordinator() -> PositionExitCoordinator:
    """Build the process-wide exit coordinator."""
    market_data = get_market_data_adapter()
    collector = LevelCollector(
        pivot_port=market_data,
        candle_port=market_data,
        default_delta=settings.default_delta,
        swing_min_candles=settings.swing_min_candles,
        swing_lookback_candles=settings.swing_lookback_candles,
        swing_neighbors=settings.swing_neighbors,
    )
    scorer = ConfluenceScorer(
        cluster_tolerance_pct=settings.cluster_tolerance_pct,
        round_tolerance_pct=settings.round_tolerance_pct,
        entry_buffer_pct=settings.entry_buffer_pct,
    )
    return PositionExitCoordinator(
        level_collector=collector,
        scorer=scorer,
        lot_percentages=settings.lot_allocation_percentages,
        oi_window_size=settings.oi_window_size,
    )


@lru_cache
def get_oi_tracker() -> OiWindowTracker:
    """Build the OI window tracker bound to the shared coordinator."""
    return OiWindowTracker(
        coordinator=get_coordinator(),
        oi_port=get_market_data_adapter(),
        min_confidence=settings.oi_min_confidence,
        votes_required=settings.oi_votes_required,
        vote_confidence=settings.oi_vote_confidence,
        grace_period_ms=settings.oi_grace_period_seconds * 1000,
    )


@lru_cache
def get_oi_scheduler() -> OiRefreshScheduler:
    """Build the OI poller; started by the application lifespan."""
    return OiRefreshScheduler(
        coordinator=get_coordinator(),
        tracker=get_oi_tracker(),
        interval_seconds=settings.oi_poll_interval_seconds,
        max_workers=settings.oi_max_workers,
        timezone_name=settings.scheduler_timezone,
    )


def get_open_position_use_case(
    coordinator: PositionExitCoordinator = Depends(get_coordinator),
) -> OpenPositionUseCase:
    return OpenPositionUseCase(coordinator=coordinator)


def get_handle_target_hit_use_case(
    coordinator: PositionExitCoordinator = Depends(get_coordinator),
) -> HandleTargetHitUseCase:
    return HandleTargetHitUseCase(coordinator=coordinator)


def get_check_immediate_exit_use_case(
    coordinator: PositionExitCoordinator = Depends(get_coordinator),
) -> CheckImmediateExitUseCase:
    return CheckImmediateExitUseCase(coordinator=coordinator)


def get_close_position_use_case(
    coordinator: PositionExitCoordinator = Depends(get_coordinator),
) -> ClosePositionUseCase:
    return ClosePositionUseCase(coordinator=coordinator)


def get_position_snapshot_use_case(
    coordinator: PositionExitCoordinator = Depends(get_coordinator),
) -> GetPositionSnapshotUseCase:
    return GetPositionSnapshotUseCase(coordinator=coordinator)
