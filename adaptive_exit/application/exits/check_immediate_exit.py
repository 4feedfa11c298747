"""
Use case: Close a position at once when the opposite OI buildup is confirmed.

Input:  scrip_code
Output: ExitDecisionResult, or None when no urgent pattern has fired
Side effects: Drops the position when a decision is returned.
Failure cases: UnknownPositionError.
"""

from typing import Optional

from adaptive_exit.application.exits.dtos import ExitDecisionResult
from adaptive_exit.application.exits.handle_target_hit import to_decision_result
from adaptive_exit.domain.exits.coordinator import PositionExitCoordinator


class CheckImmediateExitUseCase:
    """Polls the immediate-exit flag of one position."""

    def __init__(self, coordinator: PositionExitCoordinator) -> None:
        self._coordinator = coordinator

    def execute(self, scrip_code: str) -> Optional[ExitDecisionResult]:
        decision = self._coordinator.check_immediate_exit(scrip_code)
        if decision is None:
            return None
        return to_decision_result(decision)
