"""
Data Transfer Objects for the exits application layer.

DTOs carry data between the interface and application layers.
They are plain dataclasses with no behavior.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class OpenPositionCommand:
    """Input DTO for opening a position.

    Attributes:
        scrip_code: Option instrument identifier.
        underlying_scrip_code: Underlying whose pivots are mapped.
        side: "LONG" or "SHORT".
        quantity: Total units (lots x lot_size).
        entry_price: Option premium at entry.
        underlying_entry_price: Underlying price at entry.
        delta: Option delta; the configured default is used when absent.
        lot_size: Units per lot.
        t1: Static T1 from the upstream signal.
        t2: Static T2.
        t3: Static T3.
        t4: Static T4.
        stop_loss: Static stop-loss.
    """

    scrip_code: str
    underlying_scrip_code: str
    side: str
    quantity: int
    entry_price: Decimal
    underlying_entry_price: Decimal
    delta: Optional[Decimal] = None
    lot_size: int = 1
    t1: Optional[Decimal] = None
    t2: Optional[Decimal] = None
    t3: Optional[Decimal] = None
    t4: Optional[Decimal] = None
    stop_loss: Optional[Decimal] = None


@dataclass(frozen=True)
class TargetHitCommand:
    """Input DTO for a target touch reported by the trade executor.

    Attributes:
        scrip_code: Option instrument identifier.
        target_index: 1-4.
    """

    scrip_code: str
    target_index: int


@dataclass(frozen=True)
class TargetLadderResult:
    """Output DTO for a position's exit ladder.

    Attributes:
        confluence: False when the static fallback ladder is in use.
    """

    t1: Optional[Decimal]
    t2: Optional[Decimal]
    t3: Optional[Decimal]
    t4: Optional[Decimal]
    stop_loss: Optional[Decimal]
    computed_at: datetime
    confluence: bool


@dataclass(frozen=True)
class OiReadingResult:
    """Output DTO for one accepted OI reading."""

    timestamp_ms: int
    interpretation: str
    change_percent: float
    confidence: float


@dataclass(frozen=True)
class PositionSnapshotResult:
    """Output DTO for a position's exit state.

    Attributes:
        lot_allocation: Units to close per target index.
        oi_window: Readings in the window, oldest first.
        exit_flag: Next target hit closes everything.
        immediate_exit_flag: Close everything now.
        targets_hit: Target indexes already resolved.
    """

    scrip_code: str
    side: str
    quantity: int
    remaining_quantity: int
    target_ladder: TargetLadderResult
    lot_allocation: dict[int, int]
    oi_window: list[OiReadingResult]
    exit_flag: bool
    exit_pattern: Optional[str]
    immediate_exit_flag: bool
    immediate_exit_pattern: Optional[str]
    last_oi_check_ms: int
    opened_at_ms: int
    targets_hit: list[int]


@dataclass(frozen=True)
class ExitDecisionResult:
    """Output DTO for an exit decision.

    Attributes:
        target_index: The target that fired, or None for an OI immediate exit.
        quantity: Units to close now.
        close_all: True when nothing remains open afterwards.
        reason: e.g. "T2 partial", "T2 all lots (LONG_UNWINDING 3/5)".
        remaining_quantity: Units still open after this decision.
    """

    scrip_code: str
    target_index: Optional[int]
    quantity: int
    close_all: bool
    reason: str
    remaining_quantity: int


@dataclass(frozen=True)
class ClosePositionResult:
    """Output DTO for a close request.

    Attributes:
        closed: False when nothing was tracked for the scrip code.
    """

    scrip_code: str
    closed: bool
