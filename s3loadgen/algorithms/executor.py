"""
Classified object store operations with latency measurement.
"""

import logging
import time
from typing import Callable

from s3loadgen.configuration import READ_CHUNK_SIZE_BYTES
from s3loadgen.persistence.prom import LoadGenMetrics
from s3loadgen.persistence.record import (
    OperationKind,
    OperationRecord,
    Outcome,
    Success,
    Miss,
    TransientError,
)
from s3loadgen.systems.base import ObjectStorageSystem, ObjectStream
from s3loadgen.systems.errors import ObjectNotFoundError, StorageError

logger = logging.getLogger(__name__)


class OperationExecutor:
    """Runs one put or get, times it and turns the result into an Outcome.

    Each call is exactly one attempt: failures are reported, never retried.
    The timer wraps only the store call (and, for reads, draining the body).
    """

    def __init__(
        self,
        storage_system: ObjectStorageSystem,
        metrics: LoadGenMetrics,
        chunk_size: int = READ_CHUNK_SIZE_BYTES,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.storage_system = storage_system
        self.metrics = metrics
        self.chunk_size = chunk_size
        self._clock = clock

    async def execute_write(self, bucket: str, key: str, payload: bytes,
                            kind: OperationKind = OperationKind.WRITE) -> Outcome:
        """Put ``payload`` under ``bucket/key``."""
        self.metrics.record_attempt(kind)
        started_at = time.time()

        start = self._clock()
        try:
            size = await self.storage_system.put_object(bucket, key, payload)
        except Exception as e:
            duration = self._clock() - start
            logger.error(f"Cannot put S3 object {bucket}/{key}: {e}")
            outcome = TransientError(e)
        else:
            duration = self._clock() - start
            outcome = Success(size, duration)
            logger.debug(f"Object stored: {bucket}/{key} ({size}B) in {duration:f} seconds")

        self.metrics.record(OperationRecord(kind, key, outcome, duration, started_at))
        return outcome

    async def execute_read(self, bucket: str, key: str) -> Outcome:
        """Get ``bucket/key`` and drain it completely."""
        self.metrics.record_attempt(OperationKind.READ)
        started_at = time.time()

        start = self._clock()
        try:
            stream = await self.storage_system.get_object(bucket, key)
        except ObjectNotFoundError:
            duration = self._clock() - start
            logger.debug(f"Object {key} is missing in {bucket} bucket")
            outcome = Miss(key)
        except Exception as e:
            duration = self._clock() - start
            logger.error(f"Cannot touch S3 object {bucket}/{key}: {e}")
            outcome = TransientError(e)
        else:
            # Latency is end-to-end transfer time, so the body is drained first
            try:
                async with stream:
                    size = await self._drain(stream)
            except Exception as e:
                duration = self._clock() - start
                logger.error(f"Cannot read S3 object {bucket}/{key}: {e}")
                outcome = TransientError(e)
            else:
                duration = self._clock() - start
                outcome = Success(size, duration)
                logger.debug(f"Object fetched: {bucket}/{key} ({size}B) in {duration:f} seconds")

        self.metrics.record(OperationRecord(OperationKind.READ, key, outcome, duration, started_at))
        return outcome

    async def _drain(self, stream: ObjectStream) -> int:
        """Read the stream to the end and return the number of bytes seen."""
        total = 0
        while True:
            chunk = await stream.read(self.chunk_size)
            if not chunk:
                break
            total += len(chunk)

        if stream.content_length is not None and total != stream.content_length:
            # A short body is a broken transfer, not a missing object
            raise StorageError(
                f"Incomplete read: expected {stream.content_length} bytes, got {total}"
            )
        return total
