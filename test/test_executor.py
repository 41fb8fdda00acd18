"""
Tests for classified operations and the metrics they update.
"""

import unittest

from s3loadgen.algorithms.executor import OperationExecutor
from s3loadgen.persistence.prom import LoadGenMetrics
from s3loadgen.persistence.record import OperationKind, Success, Miss, TransientError
from s3loadgen.systems.base import ObjectStream
from s3loadgen.systems.errors import StorageError, ObjectNotFoundError
from s3loadgen.systems.memory import InMemoryStorageSystem

BUCKET = "bucket"
PAYLOAD = b"0123456789abcdef"


class _ShortBody:
    """Body that ends before the advertised content length."""

    def __init__(self, data):
        self._data = data

    async def read(self, amt=None):
        data, self._data = self._data, b""
        return data

    def close(self):
        pass


class _ShortStore(InMemoryStorageSystem):
    async def get_object(self, bucket, key):
        return ObjectStream(_ShortBody(b"abc"), content_length=10)


class _NotFoundOnPutStore(InMemoryStorageSystem):
    async def put_object(self, bucket, key, data):
        raise ObjectNotFoundError(bucket, key)


class TestExecuteRead(unittest.IsolatedAsyncioTestCase):
    """Read classification: Success, Miss or TransientError."""

    async def asyncSetUp(self):
        self.store = InMemoryStorageSystem(latency_seconds=0.001)
        await self.store.create_bucket(BUCKET)
        await self.store.put_object(BUCKET, "present", PAYLOAD)
        self.metrics = LoadGenMetrics()
        self.executor = OperationExecutor(self.store, self.metrics, chunk_size=4)

    async def test_read_success(self):
        """Test that a stored object is fully drained and timed."""
        outcome = await self.executor.execute_read(BUCKET, "present")

        self.assertIsInstance(outcome, Success)
        self.assertEqual(outcome.bytes, len(PAYLOAD))
        self.assertGreater(outcome.duration, 0)

        stats = self.metrics.snapshot()
        self.assertEqual(stats['read_attempts'], 1)
        self.assertEqual(stats['read_hits'], 1)
        self.assertEqual(stats['read_latency_count'], 1)
        self.assertGreater(stats['read_latency_sum'], 0)

    async def test_read_not_found_is_miss(self):
        """Test that a missing key is a Miss and never an error."""
        outcome = await self.executor.execute_read(BUCKET, "absent")

        self.assertEqual(outcome, Miss("absent"))
        stats = self.metrics.snapshot()
        self.assertEqual(stats['read_attempts'], 1)
        self.assertEqual(stats['read_misses'], 1)
        self.assertEqual(stats['read_errors'], 0)
        self.assertEqual(stats['read_latency_count'], 0)

    async def test_read_generic_fault_is_transient(self):
        """Test that a backend fault is a TransientError and never a Miss."""
        self.store.get_fault = StorageError("Internal error", BUCKET, "present")

        outcome = await self.executor.execute_read(BUCKET, "present")

        self.assertIsInstance(outcome, TransientError)
        self.assertIs(outcome.cause, self.store.get_fault)
        stats = self.metrics.snapshot()
        self.assertEqual(stats['read_errors'], 1)
        self.assertEqual(stats['read_misses'], 0)
        self.assertEqual(stats['read_latency_count'], 0)

    async def test_drain_failure_is_transient(self):
        """Test that a body breaking mid-transfer is an error, not a miss."""
        self.store.broken_stream_keys.add("present")

        outcome = await self.executor.execute_read(BUCKET, "present")

        self.assertIsInstance(outcome, TransientError)
        self.assertEqual(self.metrics.snapshot()['read_misses'], 0)
        self.assertEqual(self.metrics.snapshot()['read_errors'], 1)

    async def test_short_body_is_transient(self):
        """Test that a body shorter than its content length is an error."""
        executor = OperationExecutor(_ShortStore(), self.metrics)

        outcome = await executor.execute_read(BUCKET, "any")

        self.assertIsInstance(outcome, TransientError)
        self.assertIn("Incomplete read", str(outcome.cause))

    async def test_histogram_counts_only_successes(self):
        """Test that latency observations equal the number of successes."""
        await self.store.put_object(BUCKET, "other", PAYLOAD)
        successes = 0
        for key in ("present", "absent", "other", "absent", "present"):
            if isinstance(await self.executor.execute_read(BUCKET, key), Success):
                successes += 1
        self.store.get_fault = StorageError("boom")
        await self.executor.execute_read(BUCKET, "present")

        stats = self.metrics.snapshot()
        self.assertEqual(successes, 3)
        self.assertEqual(stats['read_attempts'], 6)
        self.assertEqual(stats['read_latency_count'], successes)
        self.assertEqual(stats['read_hits'] + stats['read_misses'] + stats['read_errors'], 6)


class TestExecuteWrite(unittest.IsolatedAsyncioTestCase):
    """Write classification and counters."""

    async def asyncSetUp(self):
        self.store = InMemoryStorageSystem(latency_seconds=0.001)
        await self.store.create_bucket(BUCKET)
        self.metrics = LoadGenMetrics()
        self.executor = OperationExecutor(self.store, self.metrics)

    async def test_write_success(self):
        outcome = await self.executor.execute_write(BUCKET, "key", PAYLOAD)

        self.assertIsInstance(outcome, Success)
        self.assertEqual(outcome.bytes, len(PAYLOAD))
        self.assertGreater(outcome.duration, 0)
        self.assertEqual(self.store.buckets[BUCKET]["key"], PAYLOAD)

        stats = self.metrics.snapshot()
        self.assertEqual(stats['write_attempts'], 1)
        self.assertEqual(stats['write_successes'], 1)
        self.assertEqual(stats['write_errors'], 0)
        self.assertEqual(stats['write_latency_count'], 1)

    async def test_write_failure(self):
        """Test that a failed put is counted once and not retried."""
        self.store.failing_put_keys.add("key")

        outcome = await self.executor.execute_write(BUCKET, "key", PAYLOAD)

        self.assertIsInstance(outcome, TransientError)
        stats = self.metrics.snapshot()
        self.assertEqual(stats['write_attempts'], 1)
        self.assertEqual(stats['write_errors'], 1)
        self.assertEqual(stats['write_latency_count'], 0)

    async def test_write_not_found_is_error(self):
        """Test that a not-found answer to a put is still a write error."""
        executor = OperationExecutor(_NotFoundOnPutStore(), self.metrics)

        outcome = await executor.execute_write(BUCKET, "key", PAYLOAD)

        self.assertIsInstance(outcome, TransientError)
        self.assertEqual(self.metrics.snapshot()['write_errors'], 1)

    async def test_warmup_writes_use_separate_counters(self):
        """Test that warm-up writes do not touch steady-state write metrics."""
        await self.executor.execute_write(BUCKET, "a", PAYLOAD, kind=OperationKind.WARMUP)
        self.store.failing_put_keys.add("b")
        await self.executor.execute_write(BUCKET, "b", PAYLOAD, kind=OperationKind.WARMUP)

        stats = self.metrics.snapshot()
        self.assertEqual(stats['warmup_writes'], 2)
        self.assertEqual(stats['warmup_errors'], 1)
        self.assertEqual(stats['write_attempts'], 0)
        self.assertEqual(stats['write_latency_count'], 0)

    async def test_timer_excludes_work_outside_store_call(self):
        """Test that the recorded duration is measured with the injected clock."""
        ticks = iter([10.0, 10.25])
        executor = OperationExecutor(self.store, self.metrics, clock=lambda: next(ticks))

        outcome = await executor.execute_write(BUCKET, "key", PAYLOAD)

        self.assertEqual(outcome.duration, 0.25)
        self.assertAlmostEqual(self.metrics.snapshot()['write_latency_sum'], 0.25)


if __name__ == '__main__':
    unittest.main()
