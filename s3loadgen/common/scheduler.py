"""
Rate-driven workload scheduler with fire-and-forget dispatch.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from s3loadgen.common.inflight_limiter import InFlightLimiter
from s3loadgen.configuration import MAX_IN_FLIGHT, SHUTDOWN_GRACE_SECONDS
from s3loadgen.persistence.prom import LoadGenMetrics
from s3loadgen.persistence.record import OperationKind

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[Any]]


def next_deadline(deadline: float, interval: float, now: float) -> float:
    """Advance a timer deadline by one interval, skipping deadlines already missed.

    A timer that fell behind the clock resumes on its original grid instead
    of firing a burst of catch-up ticks.
    """
    deadline += interval
    if deadline < now:
        missed = int((now - deadline) // interval) + 1
        deadline += missed * interval
    return deadline


class WorkloadScheduler:
    """Issues write and read ticks at independent fixed rates.

    Every tick hands its callback to a new task, so a slow operation never
    delays the next tick. The number of tasks in flight is bounded; ticks
    arriving at the limit are dropped and counted.
    """

    def __init__(
        self,
        max_in_flight: int = MAX_IN_FLIGHT,
        metrics: Optional[LoadGenMetrics] = None,
        shutdown_grace_seconds: float = SHUTDOWN_GRACE_SECONDS,
    ):
        """Initialize the scheduler.

        Args:
            max_in_flight: Maximum number of operations in flight at once
            metrics: Metrics to report dropped ticks and in-flight count to
            shutdown_grace_seconds: How long in-flight operations may run after stop
        """
        self.limiter = InFlightLimiter(max_in_flight)
        self.metrics = metrics
        self.shutdown_grace_seconds = shutdown_grace_seconds

        self.stop_event = asyncio.Event()
        self.is_running = False
        self.in_flight_tasks: Set[asyncio.Task] = set()

        self.tick_counts: Dict[OperationKind, int] = {
            OperationKind.WRITE: 0,
            OperationKind.READ: 0,
        }
        self.dropped_ticks: Dict[OperationKind, int] = {
            OperationKind.WRITE: 0,
            OperationKind.READ: 0,
        }

    async def run(
        self,
        write_interval: float,
        read_interval: float,
        on_write_tick: TickCallback,
        on_read_tick: TickCallback,
        duration: Optional[float] = None,
    ) -> None:
        """Drive both timers until ``stop()`` is called or ``duration`` elapses.

        Args:
            write_interval: Seconds between write ticks
            read_interval: Seconds between read ticks
            on_write_tick: Coroutine function run for every write tick
            on_read_tick: Coroutine function run for every read tick
            duration: Optional run time in seconds (None = until stopped)
        """
        if write_interval <= 0 or read_interval <= 0:
            raise ValueError(
                f"Intervals must be positive (write={write_interval}, read={read_interval})"
            )
        if self.is_running:
            raise RuntimeError("Scheduler is already running")

        # A stop requested before run() makes it return right away; the
        # event is cleared once a run ends so the scheduler can run again
        self.is_running = True
        logger.info(
            f"Starting workload: write every {write_interval * 1000:.0f}ms, "
            f"read every {read_interval * 1000:.0f}ms, "
            f"max {self.limiter.max_permits()} in flight"
        )

        timers: List[asyncio.Task] = [
            asyncio.create_task(self._timer(OperationKind.WRITE, write_interval, on_write_tick)),
            asyncio.create_task(self._timer(OperationKind.READ, read_interval, on_read_tick)),
        ]

        try:
            if duration is None:
                await self.stop_event.wait()
            else:
                try:
                    await asyncio.wait_for(self.stop_event.wait(), timeout=duration)
                except asyncio.TimeoutError:
                    logger.info(f"Workload duration of {duration}s elapsed")
        finally:
            for timer in timers:
                timer.cancel()
            await asyncio.gather(*timers, return_exceptions=True)
            await self._drain_in_flight()
            self.stop_event.clear()
            self.is_running = False

        logger.info(
            f"Workload stopped: {self.tick_counts[OperationKind.WRITE]} write ticks "
            f"({self.dropped_ticks[OperationKind.WRITE]} dropped), "
            f"{self.tick_counts[OperationKind.READ]} read ticks "
            f"({self.dropped_ticks[OperationKind.READ]} dropped)"
        )

    def stop(self) -> None:
        """Ask a running scheduler to stop both timers."""
        if not self.stop_event.is_set():
            logger.info("Stopping workload scheduler...")
        self.stop_event.set()

    async def _timer(self, kind: OperationKind, interval: float, callback: TickCallback):
        """Fire ``callback`` on a fixed grid of deadlines."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + interval

        while True:
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            self._dispatch(kind, callback)
            deadline = next_deadline(deadline, interval, loop.time())

    def _dispatch(self, kind: OperationKind, callback: TickCallback) -> None:
        """Start one operation without waiting for it."""
        self.tick_counts[kind] += 1

        if not self.limiter.try_acquire():
            self.dropped_ticks[kind] += 1
            if self.metrics:
                self.metrics.record_dropped_tick(kind)
            logger.debug(f"Dropped {kind.value} tick: {self.limiter}")
            return

        task = asyncio.create_task(self._run_operation(kind, callback))
        self.in_flight_tasks.add(task)
        task.add_done_callback(self._operation_done)
        self._report_in_flight()

    async def _run_operation(self, kind: OperationKind, callback: TickCallback):
        try:
            await callback()
        except Exception as e:
            logger.error(f"Unhandled error in {kind.value} operation: {e}", exc_info=True)

    def _operation_done(self, task: asyncio.Task):
        # Also runs for tasks cancelled before their first step
        self.in_flight_tasks.discard(task)
        self.limiter.release()
        self._report_in_flight()

    def _report_in_flight(self):
        if self.metrics:
            self.metrics.update_in_flight(self.limiter.in_flight())

    async def _drain_in_flight(self):
        """Give in-flight operations the grace period, then abandon the rest."""
        if not self.in_flight_tasks:
            return

        pending_count = len(self.in_flight_tasks)
        logger.info(
            f"Waiting up to {self.shutdown_grace_seconds}s for {pending_count} in-flight operations"
        )
        _, pending = await asyncio.wait(
            set(self.in_flight_tasks), timeout=self.shutdown_grace_seconds
        )

        if pending:
            logger.warning(f"Abandoning {len(pending)} in-flight operations")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
