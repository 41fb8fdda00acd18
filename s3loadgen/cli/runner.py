"""
Load generation run: bucket preparation, corpus warm-up and steady-state workload.
"""

import asyncio
import logging
import random
import signal
from typing import Dict, Optional

from s3loadgen.algorithms.corpus import CorpusManager, PopulationReport
from s3loadgen.algorithms.executor import OperationExecutor
from s3loadgen.algorithms.payload import PayloadGenerator
from s3loadgen.common.scheduler import WorkloadScheduler
from s3loadgen.configuration import (
    WRITE_BUCKET_NAME,
    READ_BUCKET_NAME,
    BUCKET_LOCATION,
    OBJECT_KEY_PREFIX,
    WRITE_KEY_SPACE,
    WRITE_INTERVAL_SECONDS,
    READ_INTERVAL_SECONDS,
    PAYLOAD_SIZE_BYTES,
    CORPUS_SIZE,
    MAX_IN_FLIGHT,
    WARM_UP_MODE,
    WARM_UP_MODES,
    WARM_UP_MODE_BLOCK,
    SHUTDOWN_GRACE_SECONDS,
    PROGRESS_INTERVAL_SECONDS,
)
from s3loadgen.persistence.prom import LoadGenMetrics
from s3loadgen.persistence.record import OperationKind, Outcome
from s3loadgen.systems.base import ObjectStorageSystem

logger = logging.getLogger(__name__)


class LoadGenRunner:
    """Runs the load generator against one storage system."""

    def __init__(
        self,
        storage_system: ObjectStorageSystem,
        metrics: LoadGenMetrics = None,
        write_bucket: str = WRITE_BUCKET_NAME,
        read_bucket: str = READ_BUCKET_NAME,
        bucket_location: str = BUCKET_LOCATION,
        write_interval: float = WRITE_INTERVAL_SECONDS,
        read_interval: float = READ_INTERVAL_SECONDS,
        payload_size: int = PAYLOAD_SIZE_BYTES,
        corpus_size: int = CORPUS_SIZE,
        key_prefix: str = OBJECT_KEY_PREFIX,
        max_in_flight: int = MAX_IN_FLIGHT,
        warm_up_mode: str = WARM_UP_MODE,
        shutdown_grace_seconds: float = SHUTDOWN_GRACE_SECONDS,
        progress_interval: float = PROGRESS_INTERVAL_SECONDS,
        rng: random.Random = None,
    ):
        if warm_up_mode not in WARM_UP_MODES:
            raise ValueError(f"Unsupported warm-up mode: {warm_up_mode}. Must be one of {WARM_UP_MODES}.")
        if payload_size < 0:
            raise ValueError(f"Payload size must be >= 0, got {payload_size}")

        self.storage_system = storage_system
        self.metrics = metrics or LoadGenMetrics()
        self.write_bucket = write_bucket
        self.read_bucket = read_bucket
        self.bucket_location = bucket_location
        self.write_interval = write_interval
        self.read_interval = read_interval
        self.payload_size = payload_size
        self.key_prefix = key_prefix
        self.warm_up_mode = warm_up_mode
        self.progress_interval = progress_interval
        self.rng = rng or random.Random()

        self.payload_generator = PayloadGenerator()
        self.corpus = CorpusManager(corpus_size, key_prefix, rng=self.rng)
        self.executor = OperationExecutor(storage_system, self.metrics)
        self.scheduler = WorkloadScheduler(max_in_flight, self.metrics, shutdown_grace_seconds)

        self._warm_up_task: Optional[asyncio.Task] = None
        self._stopping = False

        logger.info(
            f"Initialized load generator: {payload_size}B payloads, corpus of {corpus_size}, "
            f"warm-up mode '{warm_up_mode}'"
        )

    async def prepare_buckets(self):
        """Create or verify the write and read buckets; failure is fatal."""
        for bucket in (self.write_bucket, self.read_bucket):
            await self.storage_system.ensure_bucket(bucket, self.bucket_location or None)

    async def _write_corpus_object(self, object_id: int) -> Outcome:
        payload = self.payload_generator.generate(self.payload_size)
        return await self.executor.execute_write(
            self.read_bucket, self.corpus.key_for(object_id), payload, kind=OperationKind.WARMUP
        )

    async def populate_corpus(self) -> PopulationReport:
        return await self.corpus.populate(self._write_corpus_object)

    async def write_tick(self) -> Outcome:
        """One steady-state write to a random key of the write bucket."""
        key = f"{self.key_prefix}-{self.rng.randint(1, WRITE_KEY_SPACE)}"
        # Generated before the executor starts its timer
        payload = self.payload_generator.generate(self.payload_size)
        return await self.executor.execute_write(self.write_bucket, key, payload)

    async def read_tick(self) -> Optional[Outcome]:
        """One read of a corpus key sampled from the whole configured range."""
        if self.corpus.size == 0:
            return None
        return await self.executor.execute_read(self.read_bucket, self.corpus.sample_key())

    async def populate(self) -> PopulationReport:
        """Prepare buckets and fill the read bucket, without running the workload."""
        async with self.storage_system:
            await self.prepare_buckets()
            return await self.populate_corpus()

    async def run(self, duration: Optional[float] = None) -> Dict[str, float]:
        """Execute a complete run.

        Args:
            duration: Stop after this many seconds (None = until stop() is called)

        Returns:
            Metrics snapshot at the end of the run

        Raises:
            BucketPreparationError: A bucket can neither be created nor verified
            CorpusPopulationError: The store became unreachable during warm-up
        """
        async with self.storage_system:
            await self.prepare_buckets()
            if self._stopping:
                logger.info("Stop requested during bucket preparation, skipping warm-up and workload")
                return self.metrics.snapshot()

            self._warm_up_task = asyncio.create_task(self.populate_corpus())
            if self.warm_up_mode == WARM_UP_MODE_BLOCK:
                try:
                    await self._warm_up_task
                except asyncio.CancelledError:
                    if not self._stopping:
                        raise
                    logger.info("Warm-up interrupted, skipping workload")
                    return self.metrics.snapshot()
            else:
                logger.info("Populating read corpus in the background; early reads may miss")
                self._warm_up_task.add_done_callback(self._on_background_warm_up_done)

            if self.corpus.size == 0:
                logger.warning("Corpus size is 0: read ticks will be skipped")

            progress_task = asyncio.create_task(self._report_progress())
            try:
                await self.scheduler.run(
                    self.write_interval,
                    self.read_interval,
                    self.write_tick,
                    self.read_tick,
                    duration=duration,
                )
            finally:
                progress_task.cancel()
                await asyncio.gather(progress_task, return_exceptions=True)
                if not self._warm_up_task.done():
                    self._warm_up_task.cancel()
                    await asyncio.gather(self._warm_up_task, return_exceptions=True)

            if not self._warm_up_task.cancelled() and self._warm_up_task.exception():
                raise self._warm_up_task.exception()

        summary = self.metrics.snapshot()
        self._log_summary(summary)
        return summary

    def stop(self):
        """Stop the run: abort a blocking warm-up, or end the workload."""
        self._stopping = True
        self.scheduler.stop()
        if (
            self.warm_up_mode == WARM_UP_MODE_BLOCK
            and self._warm_up_task is not None
            and not self._warm_up_task.done()
        ):
            self._warm_up_task.cancel()

    def install_signal_handlers(self):
        """Route SIGINT and SIGTERM to stop() on the running loop."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except NotImplementedError:
                logger.debug(f"Signal handlers not supported here, {sig.name} not installed")

    def _on_background_warm_up_done(self, task: asyncio.Task):
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background warm-up failed: {error}")
            self.scheduler.stop()

    async def _report_progress(self):
        """Log a progress line every progress_interval seconds."""
        if self.progress_interval <= 0:
            return
        while True:
            await asyncio.sleep(self.progress_interval)
            stats = self.metrics.snapshot()
            logger.info(
                f"Progress: {stats['write_attempts']:.0f} writes ({stats['write_errors']:.0f} errors), "
                f"{stats['read_attempts']:.0f} reads ({stats['read_hits']:.0f} hits, "
                f"{stats['read_misses']:.0f} misses, {stats['read_errors']:.0f} errors), "
                f"{self.scheduler.limiter.in_flight()} in flight, "
                f"{self.storage_system.get_connection_count()} connections"
            )

    def _log_summary(self, summary: Dict[str, float]):
        logger.info("=== Load Generation Results ===")
        logger.info(
            f"Writes: {summary['write_attempts']:.0f} attempted, "
            f"{summary['write_successes']:.0f} succeeded, {summary['write_errors']:.0f} failed"
        )
        logger.info(
            f"Reads: {summary['read_attempts']:.0f} attempted, {summary['read_hits']:.0f} hits, "
            f"{summary['read_misses']:.0f} misses, {summary['read_errors']:.0f} errors"
        )
        if summary['write_latency_count']:
            logger.info(
                f"Average write latency: "
                f"{summary['write_latency_sum'] / summary['write_latency_count'] * 1000:.1f} ms"
            )
        if summary['read_latency_count']:
            logger.info(
                f"Average read latency: "
                f"{summary['read_latency_sum'] / summary['read_latency_count'] * 1000:.1f} ms"
            )
        dropped = summary['dropped_write_ticks'] + summary['dropped_read_ticks']
        if dropped:
            logger.warning(f"Dropped ticks at the in-flight limit: {dropped:.0f}")
