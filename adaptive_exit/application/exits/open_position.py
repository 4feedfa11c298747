"""
Use case: Open a position and compute its adaptive exit plan.

Input:  OpenPositionCommand
Output: PositionSnapshotResult (ladder, lot allocation, empty OI window)
Side effects: Replaces any tracked state for the same scrip code.
Failure cases: InvalidRequestError. Missing market data never fails the
    call; it degrades to fewer candidates or the static ladder.
"""

import logging

from adaptive_exit.application.exits.dtos import OpenPositionCommand, PositionSnapshotResult
from adaptive_exit.application.exits.get_position_snapshot import to_snapshot_result
from adaptive_exit.domain.exits.coordinator import PositionExitCoordinator
from adaptive_exit.domain.exits.entities import OpenPositionRequest, StaticTargets

logger = logging.getLogger(__name__)


class OpenPositionUseCase:
    """Builds the domain request and hands it to the exit coordinator."""

    def __init__(self, coordinator: PositionExitCoordinator) -> None:
        self._coordinator = coordinator

    def execute(self, command: OpenPositionCommand) -> PositionSnapshotResult:
        """Run the open-position use case.

        Args:
            command: Position parameters and the static fallback levels.

        Returns:
            The initial exit state of the position.
        """
        logger.info(
            "Opening %s %s qty=%d entry=%s underlying=%s@%s",
            command.side,
            command.scrip_code,
            command.quantity,
            command.entry_price,
            command.underlying_scrip_code,
            command.underlying_entry_price,
        )
        request = OpenPositionRequest(
            scrip_code=command.scrip_code,
            underlying_scrip_code=command.underlying_scrip_code,
            side=command.side,
            quantity=command.quantity,
            entry_price=command.entry_price,
            underlying_entry_price=command.underlying_entry_price,
            delta=command.delta,
            lot_size=command.lot_size,
            static_targets=StaticTargets(
                t1=command.t1,
                t2=command.t2,
                t3=command.t3,
                t4=command.t4,
                stop_loss=command.stop_loss,
            ),
        )
        return to_snapshot_result(self._coordinator.open_position(request))
