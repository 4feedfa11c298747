"""
FastAPI router for the exits bounded context.

All routes delegate to use cases. No business logic here.
Input validation is handled by Pydantic schemas.
Error mapping is handled by centralized error handlers.
"""

from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request

from adaptive_exit.application.exits.check_immediate_exit import CheckImmediateExitUseCase
from adaptive_exit.application.exits.close_position import ClosePositionUseCase
from adaptive_exit.application.exits.dtos import (
    ExitDecisionResult,
    OpenPositionCommand,
    PositionSnapshotResult,
    TargetHitCommand,
)
from adaptive_exit.application.exits.get_position_snapshot import GetPositionSnapshotUseCase
from adaptive_exit.application.exits.handle_target_hit import HandleTargetHitUseCase
from adaptive_exit.application.exits.open_position import OpenPositionUseCase
from adaptive_exit.domain.exits.coordinator import PositionExitCoordinator
from adaptive_exit.interfaces.exits.dependencies import (
    get_check_immediate_exit_use_case,
    get_close_position_use_case,
    get_coordinator,
    get_handle_target_hit_use_case,
    get_oi_scheduler,
    get_open_position_use_case,
    get_position_snapshot_use_case,
)
from adaptive_exit.interfaces.exits.schemas import (
    ClosePositionResponse,
    ErrorResponse,
    ExitDecisionResponse,
    ImmediateExitResponse,
    OpenPositionRequest,
    PositionListResponse,
    PositionSnapshotResponse,
    SchedulerStatusResponse,
    TargetHitRequest,
    TaskResultSchema,
)
from adaptive_exit.realtime.scheduler import OiRefreshScheduler, TaskResult
from adaptive_exit.shared.security.rate_limiting import MANUAL_TICK_RATE_LIMIT, limiter

router = APIRouter(prefix="/exits", tags=["exits"])

ScripCode = Annotated[str, Path(min_length=1, max_length=32, pattern=r"^[A-Za-z0-9_\-]+$")]


def _snapshot_response(result: PositionSnapshotResult) -> PositionSnapshotResponse:
    return PositionSnapshotResponse.model_validate(asdict(result))


def _decision_response(result: ExitDecisionResult) -> ExitDecisionResponse:
    return ExitDecisionResponse.model_validate(asdict(result))


def _task_response(result: TaskResult) -> TaskResultSchema:
    return TaskResultSchema(
        task_name=result.task_name,
        status=result.status.value,
        started_at=result.started_at,
        finished_at=result.finished_at,
        duration_seconds=result.duration_seconds,
        details=result.details,
        error=result.error,
    )


@router.post(
    "/positions",
    response_model=PositionSnapshotResponse,
    status_code=201,
    responses={422: {"model": ErrorResponse}},
    summary="Open a position",
    description="Compute the confluence target ladder and lot allocation for a new position.",
)
def open_position(
    request: OpenPositionRequest,
    use_case: OpenPositionUseCase = Depends(get_open_position_use_case),
) -> PositionSnapshotResponse:
    """Start tracking a position and return its exit plan."""
    command = OpenPositionCommand(**request.model_dump())
    return _snapshot_response(use_case.execute(command))


@router.get(
    "/positions",
    response_model=PositionListResponse,
    summary="List open positions",
)
def list_positions(
    use_case: GetPositionSnapshotUseCase = Depends(get_position_snapshot_use_case),
) -> PositionListResponse:
    """Return the exit state of every tracked position."""
    positions = [_snapshot_response(r) for r in use_case.list_all()]
    return PositionListResponse(positions=positions, count=len(positions))


@router.get(
    "/positions/{scrip_code}",
    response_model=PositionSnapshotResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get position exit state",
)
def get_position(
    scrip_code: ScripCode,
    use_case: GetPositionSnapshotUseCase = Depends(get_position_snapshot_use_case),
) -> PositionSnapshotResponse:
    """Return ladder, allocation, OI window and flags of one position."""
    return _snapshot_response(use_case.execute(scrip_code))


@router.post(
    "/positions/{scrip_code}/target-hits",
    response_model=ExitDecisionResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Report a target hit",
    description="Return how many units to close now that the given target was touched.",
)
def target_hit(
    request: TargetHitRequest,
    scrip_code: ScripCode,
    use_case: HandleTargetHitUseCase = Depends(get_handle_target_hit_use_case),
) -> ExitDecisionResponse:
    """Resolve a target hit against the OI exit flag."""
    command = TargetHitCommand(scrip_code=scrip_code, target_index=request.target_index)
    return _decision_response(use_case.execute(command))


@router.post(
    "/positions/{scrip_code}/immediate-exit",
    response_model=ImmediateExitResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Check for an OI immediate exit",
)
def immediate_exit(
    scrip_code: ScripCode,
    use_case: CheckImmediateExitUseCase = Depends(get_check_immediate_exit_use_case),
) -> ImmediateExitResponse:
    """Return a close-everything decision if the opposite buildup fired."""
    result = use_case.execute(scrip_code)
    if result is None:
        return ImmediateExitResponse(scrip_code=scrip_code, exit=False)
    return ImmediateExitResponse(
        scrip_code=scrip_code, exit=True, decision=_decision_response(result)
    )


@router.delete(
    "/positions/{scrip_code}",
    response_model=ClosePositionResponse,
    summary="Close a position",
    description="Drop the position's exit state. Closing an untracked position is a no-op.",
)
def close_position(
    scrip_code: ScripCode,
    use_case: ClosePositionUseCase = Depends(get_close_position_use_case),
) -> ClosePositionResponse:
    result = use_case.execute(scrip_code)
    return ClosePositionResponse(scrip_code=result.scrip_code, closed=result.closed)


@router.get(
    "/scheduler",
    response_model=SchedulerStatusResponse,
    summary="OI poller status",
)
def scheduler_status(
    scheduler: OiRefreshScheduler = Depends(get_oi_scheduler),
    coordinator: PositionExitCoordinator = Depends(get_coordinator),
) -> SchedulerStatusResponse:
    """Return whether the OI poller runs and its most recent ticks."""
    history = scheduler.task_history[-20:]
    return SchedulerStatusResponse(
        running=scheduler.is_running,
        interval_seconds=scheduler.interval_seconds,
        open_positions=len(coordinator),
        in_flight=scheduler.in_flight,
        recent_tasks=[_task_response(r) for r in reversed(history)],
    )


@router.post(
    "/scheduler/run",
    response_model=TaskResultSchema,
    summary="Run one OI tick now",
    description="Refresh every open position's OI window and wait for completion.",
)
@limiter.limit(MANUAL_TICK_RATE_LIMIT)
def run_scheduler_tick(
    request: Request,
    scheduler: OiRefreshScheduler = Depends(get_oi_scheduler),
) -> TaskResultSchema:
    """Trigger a blocking OI tick."""
    return _task_response(scheduler.run_now())
