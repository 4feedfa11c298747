"""
Domain service: OI window tracking.

Runs once per open position per scheduler tick:
    1. Skip positions still inside the post-open grace period.
    2. Read the latest OI snapshot; skip the tick if unavailable.
    3. Discard readings below the confidence floor.
    4. Append to the position's window (oldest evicted at capacity).
    5. Once the window is full, evaluate the danger and urgent votes and
       latch the matching flags. Flags are never cleared while open.

The OI read happens outside the position lock; only the window update
and the vote run under it.
"""

import logging
from enum import Enum
from typing import Callable

from adaptive_exit.domain.exits.coordinator import PositionExitCoordinator, now_ms
from adaptive_exit.domain.exits.errors import DataUnavailableError, UnknownPositionError
from adaptive_exit.domain.exits.oi_pattern import (
    evaluate_exit_pattern,
    evaluate_immediate_exit_pattern,
)
from adaptive_exit.domain.exits.ports import OiSnapshotPort

logger = logging.getLogger(__name__)


class OiRefreshOutcome(Enum):
    """What one tracker pass did for one position."""

    APPENDED = "appended"
    FLAGGED = "flagged"
    SKIPPED_GRACE = "skipped_grace"
    SKIPPED_UNAVAILABLE = "skipped_unavailable"
    DISCARDED_LOW_CONFIDENCE = "discarded_low_confidence"
    UNKNOWN_POSITION = "unknown_position"


class OiWindowTracker:
    """Feeds OI readings into position windows and latches exit flags."""

    def __init__(
        self,
        coordinator: PositionExitCoordinator,
        oi_port: OiSnapshotPort,
        min_confidence: float = 0.3,
        votes_required: int = 3,
        vote_confidence: float = 0.5,
        grace_period_ms: int = 30_000,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the tracker.

        Args:
            coordinator: Owner of the per-position state and locks.
            oi_port: Source of the latest OI snapshot per option.
            min_confidence: Readings below this are discarded.
            votes_required: Matching readings needed for a pattern to fire.
            vote_confidence: A reading votes only above this confidence.
            grace_period_ms: No readings are taken this soon after open.
            clock: Epoch-millisecond clock.
        """
        self._coordinator = coordinator
        self._oi_port = oi_port
        self._min_confidence = min_confidence
        self._votes_required = votes_required
        self._vote_confidence = vote_confidence
        self._grace_period_ms = grace_period_ms
        self._clock = clock

    def refresh(self, scrip_code: str) -> OiRefreshOutcome:
        """Run one OI tick for a single position."""
        try:
            with self._coordinator.locked(scrip_code) as state:
                opened_at = state.opened_at_ms
        except UnknownPositionError:
            return OiRefreshOutcome.UNKNOWN_POSITION

        now = self._clock()
        if now - opened_at < self._grace_period_ms:
            return OiRefreshOutcome.SKIPPED_GRACE

        try:
            reading = self._oi_port.get_latest_reading(scrip_code)
        except DataUnavailableError as exc:
            logger.info("OI tick skipped for %s: %s", scrip_code, exc.reason)
            return OiRefreshOutcome.SKIPPED_UNAVAILABLE

        if reading.confidence < self._min_confidence:
            logger.debug(
                "OI reading for %s discarded: confidence %.2f < %.2f",
                scrip_code,
                reading.confidence,
                self._min_confidence,
            )
            return OiRefreshOutcome.DISCARDED_LOW_CONFIDENCE

        try:
            with self._coordinator.locked(scrip_code) as state:
                state.oi_window.append(reading)
                state.last_oi_check_ms = now
                if not state.oi_window.is_full():
                    return OiRefreshOutcome.APPENDED

                readings = state.oi_window.snapshot()
                window_size = state.oi_window.capacity
                outcome = OiRefreshOutcome.APPENDED

                if not state.exit_flag:
                    fired, pattern = evaluate_exit_pattern(
                        readings,
                        state.side,
                        window_size=window_size,
                        votes_required=self._votes_required,
                        min_vote_confidence=self._vote_confidence,
                    )
                    if fired:
                        state.exit_flag = True
                        state.exit_pattern = pattern
                        outcome = OiRefreshOutcome.FLAGGED
                        logger.info(
                            "OI exit flag for %s: %s (exit all at next target)",
                            scrip_code,
                            pattern,
                        )

                if not state.immediate_exit_flag:
                    fired, pattern = evaluate_immediate_exit_pattern(
                        readings,
                        state.side,
                        window_size=window_size,
                        votes_required=self._votes_required,
                        min_vote_confidence=self._vote_confidence,
                    )
                    if fired:
                        state.immediate_exit_flag = True
                        state.immediate_exit_pattern = pattern
                        outcome = OiRefreshOutcome.FLAGGED
                        logger.info("OI immediate exit for %s: %s", scrip_code, pattern)

                return outcome
        except UnknownPositionError:
            return OiRefreshOutcome.UNKNOWN_POSITION
