"""
Shared fixtures for the exit engine tests.

In-memory port implementations stand in for Redis so every test runs
without network access. The worked NIFTY-option example used across the
suite lives here.
"""

from decimal import Decimal

import pytest

from adaptive_exit.domain.exits.confluence import ConfluenceScorer
from adaptive_exit.domain.exits.coordinator import PositionExitCoordinator
from adaptive_exit.domain.exits.entities import (
    Candle,
    OiInterpretation,
    OiReading,
    OpenPositionRequest,
    PivotLevel,
    SourceTag,
    StaticTargets,
)
from adaptive_exit.domain.exits.errors import DataUnavailableError
from adaptive_exit.domain.exits.level_collector import LevelCollector
from adaptive_exit.domain.exits.oi_tracker import OiWindowTracker
from adaptive_exit.domain.exits.ports import (
    CandleHistoryPort,
    OiSnapshotPort,
    PivotSnapshotPort,
)

OPEN_TIME_MS = 1_700_000_000_000


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now_ms: int = OPEN_TIME_MS) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


class FakePivotPort(PivotSnapshotPort):
    def __init__(self, levels: list[PivotLevel] | None = None) -> None:
        self.levels = levels
        self.calls = 0

    def get_pivot_levels(self, underlying_scrip_code: str) -> list[PivotLevel]:
        self.calls += 1
        if not self.levels:
            raise DataUnavailableError("pivot", f"pivot:mtf:{underlying_scrip_code}")
        return list(self.levels)


class FakeCandlePort(CandleHistoryPort):
    def __init__(self, candles: list[Candle] | None = None) -> None:
        self.candles = candles

    def get_recent_candles(self, scrip_code: str, count: int) -> list[Candle]:
        if self.candles is None:
            raise DataUnavailableError("candles", f"tick:{scrip_code}:1m:history")
        return list(self.candles[-count:])


class FakeOiPort(OiSnapshotPort):
    """Returns queued readings in order; unavailable once the queue is empty."""

    def __init__(self) -> None:
        self.queue: dict[str, list[OiReading]] = {}
        self.calls: list[str] = []

    def push(self, scrip_code: str, *readings: OiReading) -> None:
        self.queue.setdefault(scrip_code, []).extend(readings)

    def get_latest_reading(self, scrip_code: str) -> OiReading:
        self.calls.append(scrip_code)
        pending = self.queue.get(scrip_code)
        if not pending:
            raise DataUnavailableError("oi", f"oi:{scrip_code}:latest")
        return pending.pop(0)


def reading(
    interpretation: OiInterpretation, confidence: float, timestamp_ms: int = OPEN_TIME_MS
) -> OiReading:
    return OiReading(
        timestamp_ms=timestamp_ms,
        interpretation=interpretation,
        change_percent=1.5,
        confidence=confidence,
    )


def flat_candles(count: int, spikes: dict[int, str] | None = None) -> list[Candle]:
    """Flat one-minute bars (high 23, low 22) with optional high spikes."""
    spikes = spikes or {}
    candles = []
    for i in range(count):
        high = Decimal(spikes.get(i, "23.00"))
        candles.append(
            Candle(
                timestamp_ms=OPEN_TIME_MS - (count - i) * 60_000,
                open=Decimal("22.50"),
                high=high,
                low=Decimal("22.00"),
                close=Decimal("22.50"),
                volume=100,
            )
        )
    return candles


@pytest.fixture
def worked_pivots() -> list[PivotLevel]:
    return [
        PivotLevel("dailyR1", Decimal("3085"), SourceTag.PIVOT_DAILY),
        PivotLevel("weeklyR1", Decimal("3095"), SourceTag.PIVOT_WEEKLY),
        PivotLevel("dailyR2", Decimal("3110"), SourceTag.PIVOT_DAILY),
        PivotLevel("dailyS1", Decimal("3040"), SourceTag.PIVOT_DAILY),
    ]


@pytest.fixture
def worked_candles() -> list[Candle]:
    """Forty bars with swing highs at 28.00 and 34.50 and no swing lows."""
    return flat_candles(40, {10: "28.00", 25: "34.50"})


@pytest.fixture
def static_targets() -> StaticTargets:
    return StaticTargets(
        t1=Decimal("26.00"),
        t2=Decimal("29.00"),
        t3=Decimal("33.00"),
        t4=Decimal("38.00"),
        stop_loss=Decimal("18.00"),
    )


@pytest.fixture
def worked_request(static_targets: StaticTargets) -> OpenPositionRequest:
    return OpenPositionRequest(
        scrip_code="NIFTY24OCT22500CE",
        underlying_scrip_code="NIFTY",
        side="LONG",
        quantity=500,
        entry_price=Decimal("22.50"),
        underlying_entry_price=Decimal("3057.60"),
        delta=Decimal("0.35"),
        lot_size=50,
        static_targets=static_targets,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def pivot_port(worked_pivots: list[PivotLevel]) -> FakePivotPort:
    return FakePivotPort(worked_pivots)


@pytest.fixture
def candle_port(worked_candles: list[Candle]) -> FakeCandlePort:
    return FakeCandlePort(worked_candles)


@pytest.fixture
def oi_port() -> FakeOiPort:
    return FakeOiPort()


@pytest.fixture
def collector(pivot_port: FakePivotPort, candle_port: FakeCandlePort) -> LevelCollector:
    return LevelCollector(pivot_port=pivot_port, candle_port=candle_port)


@pytest.fixture
def scorer() -> ConfluenceScorer:
    return ConfluenceScorer()


@pytest.fixture
def coordinator(
    collector: LevelCollector, scorer: ConfluenceScorer, clock: FakeClock
) -> PositionExitCoordinator:
    return PositionExitCoordinator(level_collector=collector, scorer=scorer, clock=clock)


@pytest.fixture
def tracker(
    coordinator: PositionExitCoordinator, oi_port: FakeOiPort, clock: FakeClock
) -> OiWindowTracker:
    return OiWindowTracker(coordinator=coordinator, oi_port=oi_port, clock=clock)
