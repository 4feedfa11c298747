"""
Real-time OI poller for open positions.

Uses APScheduler to run one OI tick every ``oi_poll_interval_seconds``.
Each tick fans out to a thread pool with one refresh per open position,
so a slow or failing read for one instrument never delays another.
A position with a refresh still in flight is skipped for that tick.

Results of every tick are kept in a bounded history for the status API.
"""

import logging
import threading
import time
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from adaptive_exit.domain.exits.coordinator import PositionExitCoordinator
from adaptive_exit.domain.exits.oi_tracker import OiRefreshOutcome, OiWindowTracker

logger = logging.getLogger(__name__)

JOB_ID = "oi_refresh"


class TaskStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TaskResult:
    """Result of one OI tick."""

    task_name: str
    status: TaskStatus
    started_at: str
    finished_at: str | None = None
    duration_seconds: float = 0.0
    details: dict = field(default_factory=dict)
    error: str | None = None


class OiRefreshScheduler:
    """Drives OiWindowTracker.refresh for every open position on an interval.

    Usage:
        scheduler = OiRefreshScheduler(coordinator, tracker)
        scheduler.start()     # begin periodic ticks
        scheduler.run_now()   # one blocking tick
        scheduler.stop()      # graceful shutdown
    """

    def __init__(
        self,
        coordinator: PositionExitCoordinator,
        tracker: OiWindowTracker,
        interval_seconds: int = 60,
        max_workers: int = 16,
        timezone_name: str = "Asia/Kolkata",
    ) -> None:
        self._coordinator = coordinator
        self._tracker = tracker
        self._interval_seconds = interval_seconds
        self._max_workers = max_workers
        self._timezone_name = timezone_name

        self._running = False
        self._scheduler: Optional[BackgroundScheduler] = None
        self._pool: Optional[ThreadPoolExecutor] = None
        self._in_flight: set[str] = set()
        self._task_history: list[TaskResult] = []
        self._max_history = 200
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def interval_seconds(self) -> int:
        return self._interval_seconds

    @property
    def task_history(self) -> list[TaskResult]:
        with self._lock:
            return list(self._task_history)

    @property
    def in_flight(self) -> list[str]:
        with self._lock:
            return sorted(self._in_flight)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start periodic OI ticks."""
        if self._running:
            logger.warning("OI scheduler already running.")
            return

        self._scheduler = BackgroundScheduler(
            timezone=self._timezone_name,
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        self._scheduler.add_job(
            self.run_tick,
            IntervalTrigger(seconds=self._interval_seconds),
            id=JOB_ID,
            name="OI window refresh",
        )
        self._scheduler.start()
        self._running = True
        logger.info("OI scheduler started (every %ds).", self._interval_seconds)

    def stop(self) -> None:
        """Stop ticking and release the worker pool."""
        self._running = False

        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        with self._lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=False)

        logger.info("OI scheduler stopped.")

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    def run_tick(self) -> TaskResult:
        """Submit one refresh per open position and return without waiting."""
        return self._tick("oi_tick", block=False)

    def run_now(self) -> TaskResult:
        """Run one tick and wait for every refresh to finish.

        Returns:
            TaskResult whose details count the outcome of each refresh.
        """
        return self._tick("oi_tick_manual", block=True)

    def _tick(self, task_name: str, block: bool) -> TaskResult:
        start = time.monotonic()
        started_at = datetime.now(timezone.utc).isoformat()
        try:
            futures: list[Future] = []
            skipped = 0
            for scrip_code in self._coordinator.open_scrip_codes():
                future = self._submit(scrip_code)
                if future is None:
                    skipped += 1
                else:
                    futures.append(future)

            details: dict = {"submitted": len(futures), "skipped_in_flight": skipped}
            if block and futures:
                wait(futures)
                outcomes = Counter(
                    f.result().value if f.result() is not None else "failed"
                    for f in futures
                )
                details["outcomes"] = dict(outcomes)

            task_result = TaskResult(
                task_name=task_name,
                status=TaskStatus.COMPLETED,
                started_at=started_at,
                finished_at=datetime.now(timezone.utc).isoformat(),
                duration_seconds=round(time.monotonic() - start, 3),
                details=details,
            )
        except Exception as exc:
            task_result = TaskResult(
                task_name=task_name,
                status=TaskStatus.FAILED,
                started_at=started_at,
                finished_at=datetime.now(timezone.utc).isoformat(),
                duration_seconds=round(time.monotonic() - start, 3),
                error=str(exc),
            )
            logger.exception("OI tick failed.")

        self._record_result(task_result)
        return task_result

    def _submit(self, scrip_code: str) -> Optional[Future]:
        with self._lock:
            if scrip_code in self._in_flight:
                logger.debug("OI refresh for %s still in flight; skipped", scrip_code)
                return None
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="oi-refresh"
                )
            self._in_flight.add(scrip_code)
            pool = self._pool
        try:
            return pool.submit(self._refresh_one, scrip_code)
        except Exception:
            with self._lock:
                self._in_flight.discard(scrip_code)
            raise

    def _refresh_one(self, scrip_code: str) -> Optional[OiRefreshOutcome]:
        try:
            return self._tracker.refresh(scrip_code)
        except Exception:
            logger.exception("OI refresh failed for %s", scrip_code)
            return None
        finally:
            with self._lock:
                self._in_flight.discard(scrip_code)

    def _record_result(self, result: TaskResult) -> None:
        with self._lock:
            self._task_history.append(result)
            if len(self._task_history) > self._max_history:
                self._task_history = self._task_history[-self._max_history:]
