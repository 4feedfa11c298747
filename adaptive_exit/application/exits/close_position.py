"""
Use case: Stop tracking a position closed by the executor.

Input:  scrip_code
Output: ClosePositionResult
Side effects: Drops the position's exit state and OI window.
Failure cases: None; closing an untracked position is a no-op.
"""

from adaptive_exit.application.exits.dtos import ClosePositionResult
from adaptive_exit.domain.exits.coordinator import PositionExitCoordinator


class ClosePositionUseCase:
    """Releases a position's exit state."""

    def __init__(self, coordinator: PositionExitCoordinator) -> None:
        self._coordinator = coordinator

    def execute(self, scrip_code: str) -> ClosePositionResult:
        closed = self._coordinator.close_position(scrip_code)
        return ClosePositionResult(scrip_code=scrip_code, closed=closed)
