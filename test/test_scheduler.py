"""
Tests for the rate-driven workload scheduler.
"""

import asyncio
import unittest

from s3loadgen.common.scheduler import WorkloadScheduler, next_deadline
from s3loadgen.persistence.prom import LoadGenMetrics
from s3loadgen.persistence.record import OperationKind


class TestNextDeadline(unittest.TestCase):
    """Deadline grid arithmetic."""

    def test_on_time(self):
        self.assertAlmostEqual(next_deadline(1.0, 0.5, 1.1), 1.5)

    def test_exactly_at_next_deadline(self):
        self.assertAlmostEqual(next_deadline(1.0, 0.5, 1.5), 1.5)

    def test_missed_deadlines_are_skipped(self):
        """Test that a late timer resumes on its grid without a burst."""
        self.assertAlmostEqual(next_deadline(1.0, 0.5, 2.7), 3.0)
        self.assertAlmostEqual(next_deadline(1.0, 0.5, 2.0), 2.5)


class TestWorkloadScheduler(unittest.IsolatedAsyncioTestCase):
    """Scheduling, dropping and shutdown behaviour."""

    async def asyncSetUp(self):
        self.metrics = LoadGenMetrics()
        self.completed = {OperationKind.WRITE: 0, OperationKind.READ: 0}

    def _callback(self, kind, latency):
        async def callback():
            await asyncio.sleep(latency)
            self.completed[kind] += 1
        return callback

    async def test_ticks_are_not_delayed_by_slow_operations(self):
        """Test that 50ms operations do not slow down 10ms and 5ms timers."""
        scheduler = WorkloadScheduler(max_in_flight=100, metrics=self.metrics,
                                      shutdown_grace_seconds=1.0)

        await scheduler.run(
            0.01, 0.005,
            self._callback(OperationKind.WRITE, 0.05),
            self._callback(OperationKind.READ, 0.05),
            duration=0.1,
        )

        writes = scheduler.tick_counts[OperationKind.WRITE]
        reads = scheduler.tick_counts[OperationKind.READ]
        self.assertGreaterEqual(writes, 6)
        self.assertLessEqual(writes, 11)
        self.assertGreaterEqual(reads, 12)
        self.assertLessEqual(reads, 21)
        self.assertGreater(reads, writes)

        # Everything dispatched finished within the grace period
        self.assertEqual(self.completed[OperationKind.WRITE], writes)
        self.assertEqual(self.completed[OperationKind.READ], reads)
        self.assertEqual(scheduler.limiter.in_flight(), 0)
        self.assertFalse(scheduler.is_running)
        self.assertEqual(self.metrics.snapshot()['in_flight'], 0)

    async def test_ticks_dropped_at_in_flight_limit(self):
        """Test that ticks arriving at the limit are dropped and counted."""
        scheduler = WorkloadScheduler(max_in_flight=1, metrics=self.metrics,
                                      shutdown_grace_seconds=1.0)

        await scheduler.run(
            0.01, 0.01,
            self._callback(OperationKind.WRITE, 0.2),
            self._callback(OperationKind.READ, 0.2),
            duration=0.1,
        )

        dropped = scheduler.dropped_ticks[OperationKind.WRITE] + scheduler.dropped_ticks[OperationKind.READ]
        total = scheduler.tick_counts[OperationKind.WRITE] + scheduler.tick_counts[OperationKind.READ]
        self.assertEqual(total - dropped, 1)
        self.assertGreater(dropped, 0)

        stats = self.metrics.snapshot()
        self.assertEqual(stats['dropped_write_ticks'], scheduler.dropped_ticks[OperationKind.WRITE])
        self.assertEqual(stats['dropped_read_ticks'], scheduler.dropped_ticks[OperationKind.READ])

    async def test_stop_ends_run(self):
        scheduler = WorkloadScheduler(shutdown_grace_seconds=1.0)
        run_task = asyncio.create_task(scheduler.run(
            0.01, 0.01,
            self._callback(OperationKind.WRITE, 0),
            self._callback(OperationKind.READ, 0),
        ))

        await asyncio.sleep(0.05)
        self.assertTrue(scheduler.is_running)
        scheduler.stop()
        await asyncio.wait_for(run_task, timeout=1.0)

        self.assertFalse(scheduler.is_running)
        self.assertGreater(scheduler.tick_counts[OperationKind.WRITE], 0)

    async def test_scheduler_runs_again_after_stop(self):
        """Test that a stopped scheduler can be started a second time."""
        scheduler = WorkloadScheduler(shutdown_grace_seconds=1.0)
        noop = self._callback(OperationKind.WRITE, 0)

        first = asyncio.create_task(scheduler.run(0.01, 0.01, noop, noop))
        await asyncio.sleep(0.05)
        scheduler.stop()
        await asyncio.wait_for(first, timeout=1.0)
        ticks_after_first = scheduler.tick_counts[OperationKind.WRITE]

        loop = asyncio.get_running_loop()
        started = loop.time()
        await scheduler.run(0.01, 0.01, noop, noop, duration=0.1)

        self.assertGreaterEqual(loop.time() - started, 0.09)
        self.assertGreater(scheduler.tick_counts[OperationKind.WRITE], ticks_after_first + 4)

    async def test_stop_before_run_returns_immediately(self):
        scheduler = WorkloadScheduler()
        scheduler.stop()

        await asyncio.wait_for(
            scheduler.run(
                0.01, 0.01,
                self._callback(OperationKind.WRITE, 0),
                self._callback(OperationKind.READ, 0),
            ),
            timeout=1.0,
        )

    async def test_operations_abandoned_after_grace(self):
        """Test that operations outliving the grace period are cancelled."""
        cancelled = []

        async def hung():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        scheduler = WorkloadScheduler(max_in_flight=10, shutdown_grace_seconds=0)

        await asyncio.wait_for(
            scheduler.run(0.01, 0.01, hung, hung, duration=0.05),
            timeout=2.0,
        )

        self.assertGreater(len(cancelled), 0)
        self.assertEqual(scheduler.limiter.in_flight(), 0)
        self.assertEqual(len(scheduler.in_flight_tasks), 0)

    async def test_callback_errors_do_not_stop_scheduler(self):
        calls = []

        async def failing():
            calls.append(True)
            raise RuntimeError("callback failed")

        scheduler = WorkloadScheduler(shutdown_grace_seconds=1.0)
        with self.assertLogs('s3loadgen.common.scheduler', level='ERROR'):
            await scheduler.run(0.01, 0.01, failing, failing, duration=0.1)

        self.assertGreater(len(calls), 4)
        self.assertEqual(scheduler.limiter.in_flight(), 0)

    async def test_invalid_intervals(self):
        scheduler = WorkloadScheduler()
        noop = self._callback(OperationKind.WRITE, 0)

        with self.assertRaises(ValueError):
            await scheduler.run(0, 0.1, noop, noop)
        with self.assertRaises(ValueError):
            await scheduler.run(0.1, -1, noop, noop)
        self.assertFalse(scheduler.is_running)


if __name__ == '__main__':
    unittest.main()
