"""
Pydantic schemas for exits API request/response validation.

These schemas enforce input validation and define the API contract.
No business logic belongs here.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

SCRIP_DESCRIPTION = "Broker scrip code of the instrument"
SCRIP_PATTERN = r"^[A-Za-z0-9_\-]+$"
SCRIP_MAX_LEN = 32


class OpenPositionRequest(BaseModel):
    """Request schema for opening a position.

    Attributes:
        scrip_code: Option scrip code.
        underlying_scrip_code: Underlying scrip code for pivot lookup.
        side: LONG or SHORT.
        quantity: Total units; must be a multiple of lot_size.
        entry_price: Option premium at entry.
        underlying_entry_price: Underlying price at entry.
        delta: Option delta; the configured default applies when omitted.
        lot_size: Units per lot.
        t1: Static fallback targets and stop-loss from the signal.
    """

    scrip_code: str = Field(
        ..., min_length=1, max_length=SCRIP_MAX_LEN, pattern=SCRIP_PATTERN,
        description=SCRIP_DESCRIPTION,
    )
    underlying_scrip_code: str = Field(
        ..., min_length=1, max_length=SCRIP_MAX_LEN, pattern=SCRIP_PATTERN,
        description=SCRIP_DESCRIPTION,
    )
    side: str = Field(..., pattern=r"^(LONG|SHORT)$", description="Position side")
    quantity: int = Field(..., gt=0, description="Total units at entry")
    entry_price: Decimal = Field(..., gt=0, description="Option premium at entry")
    underlying_entry_price: Decimal = Field(..., gt=0, description="Underlying price at entry")
    delta: Decimal | None = Field(default=None, ge=-1, le=1, description="Option delta")
    lot_size: int = Field(default=1, gt=0, description="Units per lot")
    t1: Decimal | None = Field(default=None, gt=0)
    t2: Decimal | None = Field(default=None, gt=0)
    t3: Decimal | None = Field(default=None, gt=0)
    t4: Decimal | None = Field(default=None, gt=0)
    stop_loss: Decimal | None = Field(default=None, gt=0)


class TargetHitRequest(BaseModel):
    """Request schema for a target touch."""

    target_index: int = Field(..., ge=1, le=4, description="Target that was touched (1-4)")


class TargetLadderSchema(BaseModel):
    t1: Decimal | None
    t2: Decimal | None
    t3: Decimal | None
    t4: Decimal | None
    stop_loss: Decimal | None
    computed_at: datetime
    confluence: bool


class OiReadingSchema(BaseModel):
    timestamp_ms: int
    interpretation: str
    change_percent: float
    confidence: float


class PositionSnapshotResponse(BaseModel):
    """Response schema for a position's exit state."""

    scrip_code: str
    side: str
    quantity: int
    remaining_quantity: int
    target_ladder: TargetLadderSchema
    lot_allocation: dict[int, int]
    oi_window: list[OiReadingSchema]
    exit_flag: bool
    exit_pattern: str | None
    immediate_exit_flag: bool
    immediate_exit_pattern: str | None
    last_oi_check_ms: int
    opened_at_ms: int
    targets_hit: list[int]


class PositionListResponse(BaseModel):
    """Response schema for the open position listing."""

    positions: list[PositionSnapshotResponse]
    count: int


class ExitDecisionResponse(BaseModel):
    """Response schema for an exit decision."""

    scrip_code: str
    target_index: int | None
    quantity: int
    close_all: bool
    reason: str
    remaining_quantity: int


class ImmediateExitResponse(BaseModel):
    """Response schema for the immediate-exit check.

    Attributes:
        exit: True when the position must be closed now.
        decision: The close-everything decision, if any.
    """

    scrip_code: str
    exit: bool
    decision: ExitDecisionResponse | None = None


class ClosePositionResponse(BaseModel):
    scrip_code: str
    closed: bool


class TaskResultSchema(BaseModel):
    task_name: str
    status: str
    started_at: str
    finished_at: str | None = None
    duration_seconds: float = 0.0
    details: dict = Field(default_factory=dict)
    error: str | None = None


class SchedulerStatusResponse(BaseModel):
    """Response schema for the OI poller status."""

    running: bool
    interval_seconds: int
    open_positions: int
    in_flight: list[str]
    recent_tasks: list[TaskResultSchema]


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    oi_poller_running: bool = False


class ErrorResponse(BaseModel):
    """Standard error response returned by all error handlers."""

    error: str
    detail: str | None = None
