"""
Domain service: Position exit coordination.

Owns the mutable exit state of every open position, keyed by option
scrip code. Each position carries its own lock; the registry lock only
guards lookups, inserts and removals and is never held while a position
is being updated, so different positions proceed independently.

Operations:
    - open_position: compute ladder + lot allocation, store state
    - on_target_hit: resolve a touched target against the OI exit flag
    - check_immediate_exit: close everything on an urgent OI pattern
    - close_position: drop state (idempotent)
    - snapshot / list_snapshots: read-only views for observability
"""

import logging
import threading
import time
from contextlib import contextmanager
from decimal import Decimal
from typing import Callable, Iterator, Optional, Sequence

from adaptive_exit.domain.exits.confluence import ConfluenceScorer
from adaptive_exit.domain.exits.entities import (
    TARGET_INDEXES,
    ExitDecision,
    OiWindow,
    OpenPositionRequest,
    PositionExitState,
    PositionSnapshot,
    Side,
)
from adaptive_exit.domain.exits.errors import InvalidRequestError, UnknownPositionError
from adaptive_exit.domain.exits.level_collector import LevelCollector
from adaptive_exit.domain.exits.lot_allocation import DEFAULT_PERCENTAGES, allocate_quantity

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class _PositionEntry:
    """A position's state together with the lock that serializes it."""

    __slots__ = ("state", "lock", "closed")

    def __init__(self, state: PositionExitState) -> None:
        self.state = state
        self.lock = threading.Lock()
        self.closed = False


def _parse_side(raw: object) -> Side:
    if isinstance(raw, Side):
        return raw
    try:
        return Side(str(raw).upper())
    except ValueError:
        raise InvalidRequestError(f"side must be LONG or SHORT, got {raw!r}") from None


def _validate(request: OpenPositionRequest) -> Side:
    if not request.scrip_code:
        raise InvalidRequestError("scrip_code is required")
    side = _parse_side(request.side)
    if request.quantity <= 0:
        raise InvalidRequestError(f"quantity must be positive, got {request.quantity}")
    if request.lot_size <= 0:
        raise InvalidRequestError(f"lot_size must be positive, got {request.lot_size}")
    if request.quantity % request.lot_size:
        raise InvalidRequestError(
            f"quantity {request.quantity} is not a multiple of lot_size {request.lot_size}"
        )
    if Decimal(str(request.entry_price)) <= 0:
        raise InvalidRequestError("entry_price must be positive")
    if Decimal(str(request.underlying_entry_price)) <= 0:
        raise InvalidRequestError("underlying_entry_price must be positive")
    return side


def _snapshot(state: PositionExitState) -> PositionSnapshot:
    return PositionSnapshot(
        scrip_code=state.scrip_code,
        side=state.side,
        quantity=state.quantity,
        remaining_quantity=state.remaining_quantity,
        target_ladder=state.target_ladder,
        lot_allocation_per_target=dict(state.lot_allocation_per_target),
        oi_window=state.oi_window.snapshot(),
        exit_flag=state.exit_flag,
        exit_pattern=state.exit_pattern,
        immediate_exit_flag=state.immediate_exit_flag,
        immediate_exit_pattern=state.immediate_exit_pattern,
        last_oi_check_ms=state.last_oi_check_ms,
        opened_at_ms=state.opened_at_ms,
        targets_hit=tuple(sorted(state.targets_hit)),
    )


class PositionExitCoordinator:
    """Holds per-position exit state and resolves exit decisions."""

    def __init__(
        self,
        level_collector: LevelCollector,
        scorer: ConfluenceScorer,
        lot_percentages: Sequence[int] = DEFAULT_PERCENTAGES,
        oi_window_size: int = 5,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._collector = level_collector
        self._scorer = scorer
        self._lot_percentages = tuple(lot_percentages)
        self._oi_window_size = oi_window_size
        self._clock = clock
        self._positions: dict[str, _PositionEntry] = {}
        self._registry_lock = threading.Lock()

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    def _entry(self, scrip_code: str) -> _PositionEntry:
        with self._registry_lock:
            entry = self._positions.get(scrip_code)
        if entry is None:
            raise UnknownPositionError(scrip_code)
        return entry

    @contextmanager
    def locked(self, scrip_code: str) -> Iterator[PositionExitState]:
        """Yield a position's state while holding that position's lock.

        Raises:
            UnknownPositionError: If the position is not tracked.
        """
        entry = self._entry(scrip_code)
        with entry.lock:
            if entry.closed:
                raise UnknownPositionError(scrip_code)
            yield entry.state

    def _destroy(self, entry: _PositionEntry) -> None:
        # Caller holds entry.lock.
        entry.closed = True
        entry.state.oi_window.clear()
        with self._registry_lock:
            if self._positions.get(entry.state.scrip_code) is entry:
                del self._positions[entry.state.scrip_code]

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def open_position(self, request: OpenPositionRequest) -> PositionSnapshot:
        """Compute the exit plan for a new position and start tracking it.

        Re-opening a tracked scrip code replaces its state entirely.

        Raises:
            InvalidRequestError: If quantity, lot size, prices or side are invalid.
        """
        side = _validate(request)
        entry_price = Decimal(str(request.entry_price))

        inputs = self._collector.gather(request)
        candidates = self._collector.collect(request, inputs)
        ladder = self._scorer.build_ladder(
            candidates, entry_price, side, request.static_targets
        )
        if inputs.missing_sources:
            logger.warning(
                "Position %s opened with reduced-confidence targets (missing: %s)",
                request.scrip_code,
                ", ".join(inputs.missing_sources),
            )

        opened_at = self._clock()
        state = PositionExitState(
            scrip_code=request.scrip_code,
            side=side,
            quantity=request.quantity,
            lot_size=request.lot_size,
            target_ladder=ladder,
            lot_allocation_per_target=allocate_quantity(
                request.quantity, request.lot_size, self._lot_percentages
            ),
            oi_window=OiWindow(self._oi_window_size),
            opened_at_ms=opened_at,
            remaining_quantity=request.quantity,
        )
        entry = _PositionEntry(state)

        with self._registry_lock:
            previous = self._positions.get(request.scrip_code)
            self._positions[request.scrip_code] = entry
        if previous is not None:
            with previous.lock:
                previous.closed = True
            logger.warning("Position %s re-opened; previous exit state replaced", request.scrip_code)

        logger.info(
            "Opened %s %s qty=%d allocation=%s ladder=(%s, %s, %s, %s) SL=%s confluence=%s",
            side.value,
            request.scrip_code,
            request.quantity,
            state.lot_allocation_per_target,
            ladder.t1,
            ladder.t2,
            ladder.t3,
            ladder.t4,
            ladder.stop_loss,
            ladder.confluence,
        )
        with entry.lock:
            return _snapshot(state)

    def on_target_hit(self, scrip_code: str, target_index: int) -> ExitDecision:
        """Resolve a touched target into the quantity to close.

        With the OI exit flag set every remaining unit closes, whichever
        target fired; otherwise only that target's pre-computed allocation.

        Raises:
            InvalidRequestError: If the index is not 1-4 or the slot has no price.
            UnknownPositionError: If the position is not tracked.
        """
        if target_index not in TARGET_INDEXES:
            raise InvalidRequestError(f"target_index must be 1-4, got {target_index}")

        entry = self._entry(scrip_code)
        with entry.lock:
            if entry.closed:
                raise UnknownPositionError(scrip_code)
            state = entry.state
            if state.target_ladder.price_for(target_index) is None:
                raise InvalidRequestError(f"T{target_index} has no target price")

            if target_index in state.targets_hit:
                return ExitDecision(
                    scrip_code=scrip_code,
                    target_index=target_index,
                    quantity=0,
                    close_all=False,
                    reason=f"T{target_index} already hit",
                    remaining_quantity=state.remaining_quantity,
                )

            if state.exit_flag:
                quantity = state.remaining_quantity
                reason = f"T{target_index} all lots ({state.exit_pattern})"
            else:
                quantity = min(
                    state.lot_allocation_per_target.get(target_index, 0),
                    state.remaining_quantity,
                )
                reason = f"T{target_index} partial"

            state.targets_hit.add(target_index)
            state.remaining_quantity -= quantity
            decision = ExitDecision(
                scrip_code=scrip_code,
                target_index=target_index,
                quantity=quantity,
                close_all=state.remaining_quantity == 0,
                reason=reason,
                remaining_quantity=state.remaining_quantity,
            )
            logger.info(
                "%s %s: closing %d, remaining %d",
                scrip_code,
                reason,
                quantity,
                state.remaining_quantity,
            )
            if state.remaining_quantity == 0:
                self._destroy(entry)
                logger.info("Position %s fully closed at T%d", scrip_code, target_index)
            return decision

    def check_immediate_exit(self, scrip_code: str) -> Optional[ExitDecision]:
        """Return a close-everything decision if the urgent OI pattern fired.

        Raises:
            UnknownPositionError: If the position is not tracked.
        """
        entry = self._entry(scrip_code)
        with entry.lock:
            if entry.closed:
                raise UnknownPositionError(scrip_code)
            state = entry.state
            if not state.immediate_exit_flag:
                return None

            quantity = state.remaining_quantity
            state.remaining_quantity = 0
            decision = ExitDecision(
                scrip_code=scrip_code,
                target_index=None,
                quantity=quantity,
                close_all=True,
                reason=f"OI_EXIT({state.immediate_exit_pattern})",
                remaining_quantity=0,
            )
            self._destroy(entry)
            logger.info("%s %s: closing %d", scrip_code, decision.reason, quantity)
            return decision

    def close_position(self, scrip_code: str) -> bool:
        """Stop tracking a position.

        Returns:
            True if state was removed, False if it was already absent.
        """
        with self._registry_lock:
            entry = self._positions.pop(scrip_code, None)
        if entry is None:
            logger.debug("Close for untracked position %s ignored", scrip_code)
            return False
        with entry.lock:
            entry.closed = True
            entry.state.oi_window.clear()
        logger.info("Position %s closed", scrip_code)
        return True

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def snapshot(self, scrip_code: str) -> PositionSnapshot:
        """Return a consistent copy of one position's exit state."""
        with self.locked(scrip_code) as state:
            return _snapshot(state)

    def list_snapshots(self) -> list[PositionSnapshot]:
        snapshots = []
        for scrip_code in self.open_scrip_codes():
            try:
                snapshots.append(self.snapshot(scrip_code))
            except UnknownPositionError:
                continue  # closed meanwhile
        return snapshots

    def open_scrip_codes(self) -> list[str]:
        with self._registry_lock:
            return sorted(self._positions)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._positions)
