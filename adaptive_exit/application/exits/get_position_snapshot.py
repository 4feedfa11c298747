"""
Use case: Read the exit state of tracked positions.

Input:  scrip_code (single) or nothing (list)
Output: PositionSnapshotResult / list[PositionSnapshotResult]
Side effects: None.
Failure cases: UnknownPositionError (single lookup only).
"""

import logging

from adaptive_exit.application.exits.dtos import (
    OiReadingResult,
    PositionSnapshotResult,
    TargetLadderResult,
)
from adaptive_exit.domain.exits.coordinator import PositionExitCoordinator
from adaptive_exit.domain.exits.entities import PositionSnapshot

logger = logging.getLogger(__name__)


def to_snapshot_result(snapshot: PositionSnapshot) -> PositionSnapshotResult:
    """Map a domain snapshot to its application DTO."""
    ladder = snapshot.target_ladder
    return PositionSnapshotResult(
        scrip_code=snapshot.scrip_code,
        side=snapshot.side.value,
        quantity=snapshot.quantity,
        remaining_quantity=snapshot.remaining_quantity,
        target_ladder=TargetLadderResult(
            t1=ladder.t1,
            t2=ladder.t2,
            t3=ladder.t3,
            t4=ladder.t4,
            stop_loss=ladder.stop_loss,
            computed_at=ladder.computed_at,
            confluence=ladder.confluence,
        ),
        lot_allocation=dict(snapshot.lot_allocation_per_target),
        oi_window=[
            OiReadingResult(
                timestamp_ms=r.timestamp_ms,
                interpretation=r.interpretation.value,
                change_percent=r.change_percent,
                confidence=r.confidence,
            )
            for r in snapshot.oi_window
        ],
        exit_flag=snapshot.exit_flag,
        exit_pattern=snapshot.exit_pattern,
        immediate_exit_flag=snapshot.immediate_exit_flag,
        immediate_exit_pattern=snapshot.immediate_exit_pattern,
        last_oi_check_ms=snapshot.last_oi_check_ms,
        opened_at_ms=snapshot.opened_at_ms,
        targets_hit=list(snapshot.targets_hit),
    )


class GetPositionSnapshotUseCase:
    """Returns read-only copies of position exit state."""

    def __init__(self, coordinator: PositionExitCoordinator) -> None:
        self._coordinator = coordinator

    def execute(self, scrip_code: str) -> PositionSnapshotResult:
        """Return one position's exit state.

        Raises:
            UnknownPositionError: If the position is not tracked.
        """
        return to_snapshot_result(self._coordinator.snapshot(scrip_code))

    def list_all(self) -> list[PositionSnapshotResult]:
        """Return every open position's exit state, ordered by scrip code."""
        snapshots = self._coordinator.list_snapshots()
        logger.debug("Listing %d open positions", len(snapshots))
        return [to_snapshot_result(s) for s in snapshots]
