"""
Domain service: OI majority-vote exit patterns.

Stateless evaluators over an immutable snapshot of the last OI readings.
The FIFO window itself lives on the position state; these functions only
decide.

    LONG  position: danger = LONG_UNWINDING, urgent = SHORT_BUILDUP
    SHORT position: danger = SHORT_COVERING, urgent = LONG_BUILDUP

A pattern fires when at least ``votes_required`` readings of a full
window match it with confidence strictly above ``min_vote_confidence``.
Matches need not be consecutive.

No framework imports. No IO. No side effects.
"""

from typing import Optional, Sequence

from adaptive_exit.domain.exits.entities import OiInterpretation, OiReading, Side

DANGER_PATTERNS = {
    Side.LONG: OiInterpretation.LONG_UNWINDING,
    Side.SHORT: OiInterpretation.SHORT_COVERING,
}

URGENT_PATTERNS = {
    Side.LONG: OiInterpretation.SHORT_BUILDUP,
    Side.SHORT: OiInterpretation.LONG_BUILDUP,
}


def count_votes(
    readings: Sequence[OiReading],
    pattern: OiInterpretation,
    min_vote_confidence: float = 0.5,
) -> int:
    """Count readings matching ``pattern`` with confidence above the floor."""
    return sum(
        1
        for r in readings
        if r.interpretation is pattern and r.confidence > min_vote_confidence
    )


def _evaluate(
    readings: Sequence[OiReading],
    pattern: OiInterpretation,
    window_size: int,
    votes_required: int,
    min_vote_confidence: float,
) -> tuple[bool, Optional[str]]:
    if len(readings) < window_size:
        return False, None
    votes = count_votes(readings, pattern, min_vote_confidence)
    if votes >= votes_required:
        return True, f"{pattern.value} {votes}/{len(readings)}"
    return False, None


def evaluate_exit_pattern(
    readings: Sequence[OiReading],
    side: Side,
    window_size: int = 5,
    votes_required: int = 3,
    min_vote_confidence: float = 0.5,
) -> tuple[bool, Optional[str]]:
    """Decide whether the danger pattern for ``side`` holds.

    Args:
        readings: Snapshot of the window, oldest first.
        side: Position side.
        window_size: Readings required before any decision is made.
        votes_required: Matching readings needed to fire.
        min_vote_confidence: A reading votes only above this confidence.

    Returns:
        (fired, pattern) where pattern reads like "LONG_UNWINDING 3/5".
    """
    return _evaluate(
        readings, DANGER_PATTERNS[side], window_size, votes_required, min_vote_confidence
    )


def evaluate_immediate_exit_pattern(
    readings: Sequence[OiReading],
    side: Side,
    window_size: int = 5,
    votes_required: int = 3,
    min_vote_confidence: float = 0.5,
) -> tuple[bool, Optional[str]]:
    """Decide whether the opposite-buildup pattern for ``side`` holds."""
    return _evaluate(
        readings, URGENT_PATTERNS[side], window_size, votes_required, min_vote_confidence
    )
