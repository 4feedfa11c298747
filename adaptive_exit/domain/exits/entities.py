"""
Domain entities for the exits bounded context.

Entities represent core business objects with identity and lifecycle.
They contain no framework imports and no IO operations.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

TARGET_INDEXES = (1, 2, 3, 4)


class Side(Enum):
    """Direction of an option position."""

    LONG = "LONG"
    SHORT = "SHORT"


class LevelSide(Enum):
    """Where a price level sits relative to the option entry price."""

    ABOVE = "ABOVE"
    BELOW = "BELOW"


class SourceTag(Enum):
    """Origin of a candidate price level."""

    PIVOT_DAILY = "PIVOT_DAILY"
    PIVOT_WEEKLY = "PIVOT_WEEKLY"
    PIVOT_MONTHLY = "PIVOT_MONTHLY"
    SWING_HIGH = "SWING_HIGH"
    SWING_LOW = "SWING_LOW"
    ROUND_FIGURE = "ROUND_FIGURE"


PIVOT_TAGS = frozenset(
    {SourceTag.PIVOT_DAILY, SourceTag.PIVOT_WEEKLY, SourceTag.PIVOT_MONTHLY}
)
SWING_TAGS = frozenset({SourceTag.SWING_HIGH, SourceTag.SWING_LOW})


class OiInterpretation(Enum):
    """Institutional positioning inferred from OI change and price direction."""

    LONG_BUILDUP = "LONG_BUILDUP"
    SHORT_COVERING = "SHORT_COVERING"
    LONG_UNWINDING = "LONG_UNWINDING"
    SHORT_BUILDUP = "SHORT_BUILDUP"
    NEUTRAL = "NEUTRAL"


@dataclass(frozen=True)
class PivotLevel:
    """A single equity pivot level of the underlying."""

    name: str
    price: Decimal
    timeframe: SourceTag


@dataclass(frozen=True)
class Candle:
    """A one-minute OHLCV bar of the option."""

    timestamp_ms: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int = 0


@dataclass(frozen=True)
class CandidateLevel:
    """A raw candidate price level produced at trade-open time."""

    price: Decimal
    score: int
    source_tags: frozenset[SourceTag]
    side: LevelSide


@dataclass(frozen=True)
class LevelCluster:
    """Candidate levels merged by proximity into one representative price."""

    price: Decimal
    score: int
    source_tags: frozenset[SourceTag]
    side: Optional[LevelSide]
    member_prices: tuple[Decimal, ...]


@dataclass(frozen=True)
class StaticTargets:
    """The upstream signal's original, non-confluence delta-adjusted levels."""

    t1: Optional[Decimal] = None
    t2: Optional[Decimal] = None
    t3: Optional[Decimal] = None
    t4: Optional[Decimal] = None
    stop_loss: Optional[Decimal] = None


@dataclass(frozen=True)
class TargetLadder:
    """Ranked T1-T4 targets and stop-loss for one position."""

    t1: Optional[Decimal]
    t2: Optional[Decimal]
    t3: Optional[Decimal]
    t4: Optional[Decimal]
    stop_loss: Optional[Decimal]
    computed_at: datetime
    confluence: bool = True

    def price_for(self, target_index: int) -> Optional[Decimal]:
        """Return the target price for index 1-4."""
        return {1: self.t1, 2: self.t2, 3: self.t3, 4: self.t4}[target_index]

    @classmethod
    def from_static(cls, static: StaticTargets, computed_at: datetime) -> "TargetLadder":
        return cls(
            t1=static.t1,
            t2=static.t2,
            t3=static.t3,
            t4=static.t4,
            stop_loss=static.stop_loss,
            computed_at=computed_at,
            confluence=False,
        )


@dataclass(frozen=True)
class OiReading:
    """One accepted OI interpretation reading for an option."""

    timestamp_ms: int
    interpretation: OiInterpretation
    change_percent: float
    confidence: float


class OiWindow:
    """Fixed-capacity FIFO of the most recent OI readings for one position."""

    def __init__(self, capacity: int = 5) -> None:
        self._capacity = capacity
        self._readings: deque[OiReading] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, reading: OiReading) -> None:
        self._readings.append(reading)

    def snapshot(self) -> tuple[OiReading, ...]:
        return tuple(self._readings)

    def is_full(self) -> bool:
        return len(self._readings) == self._capacity

    def clear(self) -> None:
        self._readings.clear()

    def __len__(self) -> int:
        return len(self._readings)


@dataclass(frozen=True)
class OpenPositionRequest:
    """Everything needed to compute the exit plan when a trade opens.

    Attributes:
        scrip_code: Option instrument identifier; keys the position state.
        underlying_scrip_code: Underlying instrument whose pivots are used.
        side: LONG or SHORT (raw string accepted, validated on open).
        quantity: Total units at entry (lots x lot size).
        entry_price: Option premium at entry.
        underlying_entry_price: Underlying price at entry.
        delta: Option delta used to map pivots; defaulted when absent.
        lot_size: Units per lot.
        static_targets: Original signal levels used as the fallback ladder.
    """

    scrip_code: str
    underlying_scrip_code: str
    side: str
    quantity: int
    entry_price: Decimal
    underlying_entry_price: Decimal
    delta: Optional[Decimal] = None
    lot_size: int = 1
    static_targets: StaticTargets = field(default_factory=StaticTargets)


@dataclass
class PositionExitState:
    """Mutable exit state of one open position.

    Written only by the OI tracker and the exit coordinator, always
    under the position's own lock.
    """

    scrip_code: str
    side: Side
    quantity: int
    lot_size: int
    target_ladder: TargetLadder
    lot_allocation_per_target: dict[int, int]
    oi_window: OiWindow
    opened_at_ms: int
    remaining_quantity: int
    exit_flag: bool = False
    exit_pattern: Optional[str] = None
    immediate_exit_flag: bool = False
    immediate_exit_pattern: Optional[str] = None
    last_oi_check_ms: int = 0
    targets_hit: set[int] = field(default_factory=set)


@dataclass(frozen=True)
class PositionSnapshot:
    """Read-only copy of a position's exit state for observability."""

    scrip_code: str
    side: Side
    quantity: int
    remaining_quantity: int
    target_ladder: TargetLadder
    lot_allocation_per_target: dict[int, int]
    oi_window: tuple[OiReading, ...]
    exit_flag: bool
    exit_pattern: Optional[str]
    immediate_exit_flag: bool
    immediate_exit_pattern: Optional[str]
    last_oi_check_ms: int
    opened_at_ms: int
    targets_hit: tuple[int, ...]


@dataclass(frozen=True)
class ExitDecision:
    """What to close in response to a target hit or an OI immediate exit."""

    scrip_code: str
    target_index: Optional[int]
    quantity: int
    close_all: bool
    reason: str
    remaining_quantity: int
