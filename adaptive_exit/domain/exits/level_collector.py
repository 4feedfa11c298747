"""
Domain service: Candidate level collection.

Gathers the raw price inputs for one option at trade-open time and turns
them into unscored candidate levels:
    - Delta-adjusted equity pivots (daily / weekly / monthly)
    - Swing highs and lows from recent one-minute option candles
    - Round figures around the option entry price

Reading the sources goes through ports; turning inputs into candidates
is a pure function. A missing source is logged and skipped.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Optional

from adaptive_exit.domain.exits.entities import (
    Candle,
    CandidateLevel,
    LevelSide,
    OpenPositionRequest,
    PivotLevel,
    SourceTag,
)
from adaptive_exit.domain.exits.errors import DataUnavailableError
from adaptive_exit.domain.exits.ports import CandleHistoryPort, PivotSnapshotPort

logger = logging.getLogger(__name__)

TICK = Decimal("0.05")
CENT = Decimal("0.01")


def round_to_tick(price: Decimal) -> Decimal:
    """Round a price to the nearest 0.05 tick."""
    ticks = (price / TICK).to_integral_value(rounding=ROUND_HALF_UP)
    return (ticks * TICK).quantize(CENT)


def round_figure_step(price: Decimal) -> Decimal:
    """Return the round-figure step for a price tier."""
    if price < 50:
        return Decimal("5")
    if price < 200:
        return Decimal("10")
    return Decimal("25")


def side_of(price: Decimal, entry_price: Decimal) -> LevelSide:
    return LevelSide.ABOVE if price > entry_price else LevelSide.BELOW


def detect_swings(
    candles: list[Candle], neighbors: int = 2
) -> tuple[list[Decimal], list[Decimal]]:
    """Find local extremes in a chronological candle series.

    A swing high is a bar whose high is strictly greater than the highs of
    ``neighbors`` bars on each side; swing lows mirror this on the lows.

    Returns:
        (swing_highs, swing_lows) in chronological order.
    """
    highs: list[Decimal] = []
    lows: list[Decimal] = []
    for i in range(neighbors, len(candles) - neighbors):
        around = candles[i - neighbors:i] + candles[i + 1:i + neighbors + 1]
        bar = candles[i]
        if all(bar.high > other.high for other in around):
            highs.append(bar.high)
        if all(bar.low < other.low for other in around):
            lows.append(bar.low)
    return highs, lows


@dataclass(frozen=True)
class LevelInputs:
    """Raw inputs read from the external sources for one trade open."""

    pivot_levels: tuple[PivotLevel, ...]
    candles: tuple[Candle, ...]
    missing_sources: tuple[str, ...] = ()

    @property
    def has_pivots(self) -> bool:
        return bool(self.pivot_levels)


class LevelCollector:
    """Collects candidate price levels for a new option position.

    All thresholds are configurable. Only ``gather`` performs IO; ``collect``
    is deterministic in its arguments.
    """

    def __init__(
        self,
        pivot_port: PivotSnapshotPort,
        candle_port: CandleHistoryPort,
        default_delta: Decimal = Decimal("0.5"),
        swing_min_candles: int = 30,
        swing_lookback_candles: int = 60,
        swing_neighbors: int = 2,
        round_range_low: Decimal = Decimal("0.5"),
        round_range_high: Decimal = Decimal("2"),
    ) -> None:
        """Initialize the collector.

        Args:
            pivot_port: Source of the underlying's multi-timeframe pivots.
            candle_port: Source of the option's one-minute candles.
            default_delta: Delta used when the request carries none.
            swing_min_candles: Minimum candles required for swing detection.
            swing_lookback_candles: How many recent candles to read.
            swing_neighbors: Bars on each side a swing must dominate.
            round_range_low: Lower bound of the round-figure range, as a
                multiple of the entry price.
            round_range_high: Upper bound of the round-figure range.
        """
        self._pivot_port = pivot_port
        self._candle_port = candle_port
        self._default_delta = Decimal(str(default_delta))
        self._swing_min_candles = swing_min_candles
        self._swing_lookback = swing_lookback_candles
        self._swing_neighbors = swing_neighbors
        self._round_low = Decimal(str(round_range_low))
        self._round_high = Decimal(str(round_range_high))

    # ------------------------------------------------------------------
    # Source reads
    # ------------------------------------------------------------------

    def gather(self, request: OpenPositionRequest) -> LevelInputs:
        """Read pivots and candle history, degrading on missing sources."""
        missing: list[str] = []

        try:
            pivots = self._pivot_port.get_pivot_levels(request.underlying_scrip_code)
        except DataUnavailableError as exc:
            logger.warning(
                "Pivot source unavailable for %s (underlying=%s): %s",
                request.scrip_code,
                request.underlying_scrip_code,
                exc.reason,
            )
            pivots = []
            missing.append("pivots")

        try:
            candles = self._candle_port.get_recent_candles(
                request.scrip_code, self._swing_lookback
            )
        except DataUnavailableError as exc:
            logger.warning(
                "Candle history unavailable for %s: %s", request.scrip_code, exc.reason
            )
            candles = []
            missing.append("candles")

        return LevelInputs(
            pivot_levels=tuple(pivots),
            candles=tuple(candles),
            missing_sources=tuple(missing),
        )

    # ------------------------------------------------------------------
    # Candidate generation
    # ------------------------------------------------------------------

    def effective_delta(self, delta: Optional[Decimal]) -> Decimal:
        if delta is None or delta == 0:
            return self._default_delta
        return Decimal(str(delta))

    def collect(
        self, request: OpenPositionRequest, inputs: LevelInputs
    ) -> list[CandidateLevel]:
        """Build every unscored candidate level for a position.

        Args:
            request: Entry context of the position.
            inputs: Pivots and candles previously gathered.

        Returns:
            Pivot, swing and round-figure candidates (score 0).
        """
        entry = Decimal(str(request.entry_price))
        candidates: list[CandidateLevel] = []
        candidates.extend(
            self.pivot_candidates(
                inputs.pivot_levels,
                entry,
                Decimal(str(request.underlying_entry_price)),
                self.effective_delta(request.delta),
            )
        )
        candidates.extend(self.swing_candidates(list(inputs.candles), entry))
        candidates.extend(self.round_figure_candidates(entry))
        return candidates

    def pivot_candidates(
        self,
        pivots: tuple[PivotLevel, ...] | list[PivotLevel],
        entry_price: Decimal,
        underlying_entry_price: Decimal,
        delta: Decimal,
    ) -> list[CandidateLevel]:
        """Map equity pivots onto option prices via delta."""
        seen: set[tuple[Decimal, SourceTag]] = set()
        candidates: list[CandidateLevel] = []
        for pivot in pivots:
            option_level = entry_price + delta * (pivot.price - underlying_entry_price)
            if option_level <= 0:
                continue
            option_level = round_to_tick(option_level)
            key = (option_level, pivot.timeframe)
            if key in seen:
                continue
            seen.add(key)
            candidates.append(
                CandidateLevel(
                    price=option_level,
                    score=0,
                    source_tags=frozenset({pivot.timeframe}),
                    side=side_of(option_level, entry_price),
                )
            )
        return candidates

    def swing_candidates(
        self, candles: list[Candle], entry_price: Decimal
    ) -> list[CandidateLevel]:
        """Swing highs and lows, or nothing below the candle minimum."""
        if len(candles) < self._swing_min_candles:
            logger.info(
                "Swing detection skipped: %d candles < %d required",
                len(candles),
                self._swing_min_candles,
            )
            return []

        recent = candles[-self._swing_lookback:]
        highs, lows = detect_swings(recent, self._swing_neighbors)

        candidates: list[CandidateLevel] = []
        for tag, prices in ((SourceTag.SWING_HIGH, highs), (SourceTag.SWING_LOW, lows)):
            for price in sorted(set(prices)):
                candidates.append(
                    CandidateLevel(
                        price=price,
                        score=0,
                        source_tags=frozenset({tag}),
                        side=side_of(price, entry_price),
                    )
                )
        return candidates

    def round_figure_candidates(self, entry_price: Decimal) -> list[CandidateLevel]:
        """Round numbers between the configured multiples of the entry price."""
        step = round_figure_step(entry_price)
        low = entry_price * self._round_low
        high = entry_price * self._round_high
        level = (low / step).to_integral_value(rounding=ROUND_CEILING) * step
        last = (high / step).to_integral_value(rounding=ROUND_FLOOR) * step

        candidates: list[CandidateLevel] = []
        while level <= last:
            if level > 0:
                candidates.append(
                    CandidateLevel(
                        price=level,
                        score=0,
                        source_tags=frozenset({SourceTag.ROUND_FIGURE}),
                        side=side_of(level, entry_price),
                    )
                )
            level += step
        return candidates
