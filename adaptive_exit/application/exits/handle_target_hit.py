"""
Use case: Resolve a target touch into a close quantity.

Input:  TargetHitCommand (scrip_code, target_index)
Output: ExitDecisionResult
Side effects: Marks the target hit, reduces the remaining quantity and
    drops the position once nothing remains.
Failure cases: InvalidRequestError, UnknownPositionError.
"""

from adaptive_exit.application.exits.dtos import ExitDecisionResult, TargetHitCommand
from adaptive_exit.domain.exits.coordinator import PositionExitCoordinator
from adaptive_exit.domain.exits.entities import ExitDecision


def to_decision_result(decision: ExitDecision) -> ExitDecisionResult:
    return ExitDecisionResult(
        scrip_code=decision.scrip_code,
        target_index=decision.target_index,
        quantity=decision.quantity,
        close_all=decision.close_all,
        reason=decision.reason,
        remaining_quantity=decision.remaining_quantity,
    )


class HandleTargetHitUseCase:
    """Applies the OI exit flag to a target hit."""

    def __init__(self, coordinator: PositionExitCoordinator) -> None:
        self._coordinator = coordinator

    def execute(self, command: TargetHitCommand) -> ExitDecisionResult:
        """Run the target-hit use case.

        Args:
            command: The position and the target index that was touched.

        Returns:
            How many units to close and why.
        """
        decision = self._coordinator.on_target_hit(command.scrip_code, command.target_index)
        return to_decision_result(decision)
