"""
Prometheus metrics for the load generator.
"""

import logging
from typing import Dict, List, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

from s3loadgen.configuration import (
    METRICS_PORT,
    WRITE_LATENCY_BUCKETS,
    READ_LATENCY_BUCKETS,
)
from s3loadgen.persistence.record import (
    OperationKind,
    OperationRecord,
    Success,
    Miss,
    TransientError,
)

logger = logging.getLogger(__name__)


class LoadGenMetrics:
    """Counters and latency histograms for one load generator run.

    Every metric lives in a registry owned by this object, so several
    instances (one per test, for example) never collide on metric names.
    """

    def __init__(
        self,
        port: int = METRICS_PORT,
        registry: Optional[CollectorRegistry] = None,
        write_buckets: List[float] = None,
        read_buckets: List[float] = None,
    ):
        self.port = port
        self.registry = registry or CollectorRegistry()
        self.server_started = False

        # Steady-state writes
        self.write_ops = Counter(
            's3_write_counter', 's3 writes operations counter.', registry=self.registry)
        self.write_successes = Counter(
            's3_write_success_counter', 's3 writes success counter.', registry=self.registry)
        self.write_errors = Counter(
            's3_write_err_counter', 's3 writes errors counter.', registry=self.registry)
        self.write_durations = Histogram(
            's3_write_durations_histogram_seconds',
            'S3 write operations latency distributions.',
            buckets=write_buckets or WRITE_LATENCY_BUCKETS,
            registry=self.registry,
        )

        # Reads
        self.read_ops = Counter(
            's3_read_counter', 's3 reads operations counter.', registry=self.registry)
        self.read_hits = Counter(
            's3_read_hit_counter', 's3 reads hit counter.', registry=self.registry)
        self.read_misses = Counter(
            's3_read_miss_counter', 's3 reads miss counter.', registry=self.registry)
        self.read_errors = Counter(
            's3_read_err_counter', 's3 read errors counter.', registry=self.registry)
        self.read_durations = Histogram(
            's3_read_durations_histogram_seconds',
            'S3 read operations latency distributions.',
            buckets=read_buckets or READ_LATENCY_BUCKETS,
            registry=self.registry,
        )

        # Corpus warm-up
        self.warmup_ops = Counter(
            's3_warmup_write_counter', 's3 warm-up writes counter.', registry=self.registry)
        self.warmup_errors = Counter(
            's3_warmup_write_err_counter', 's3 warm-up write errors counter.', registry=self.registry)

        # Scheduler
        self.dropped_ticks = Counter(
            's3_dropped_ticks_counter',
            'Ticks skipped because the in-flight limit was reached.',
            ['operation'],
            registry=self.registry,
        )
        self.in_flight = Gauge(
            's3_in_flight_operations', 'Operations currently in flight.', registry=self.registry)

    def start_server(self):
        """Start the Prometheus HTTP server."""
        if not self.server_started:
            try:
                start_http_server(self.port, registry=self.registry)
                self.server_started = True
                logger.info(f"Serving Prometheus metrics endpoint at :{self.port}")
            except OSError as e:
                logger.error(f"Failed to start Prometheus server on port {self.port}: {e}")

    def record_attempt(self, kind: OperationKind):
        """Count an operation before it is issued."""
        if kind == OperationKind.WRITE:
            self.write_ops.inc()
        elif kind == OperationKind.READ:
            self.read_ops.inc()
        else:
            self.warmup_ops.inc()

    def record(self, record: OperationRecord):
        """Fold a finished operation into the counters and histograms.

        Only successes are observed in the latency histograms.
        """
        outcome = record.outcome

        if record.kind == OperationKind.READ:
            if isinstance(outcome, Success):
                self.read_hits.inc()
                self.read_durations.observe(outcome.duration)
            elif isinstance(outcome, Miss):
                self.read_misses.inc()
            else:
                self.read_errors.inc()

        elif record.kind == OperationKind.WRITE:
            if isinstance(outcome, Success):
                self.write_successes.inc()
                self.write_durations.observe(outcome.duration)
            elif isinstance(outcome, TransientError):
                self.write_errors.inc()

        elif not isinstance(outcome, Success):
            self.warmup_errors.inc()

    def record_dropped_tick(self, kind: OperationKind):
        self.dropped_ticks.labels(operation=kind.value).inc()

    def update_in_flight(self, in_flight: int):
        self.in_flight.set(in_flight)

    def _sample(self, name: str, labels: Dict[str, str] = None) -> float:
        return self.registry.get_sample_value(name, labels or {}) or 0.0

    def snapshot(self) -> Dict[str, float]:
        """Current metric values, keyed by short names."""
        return {
            'write_attempts': self._sample('s3_write_counter_total'),
            'write_successes': self._sample('s3_write_success_counter_total'),
            'write_errors': self._sample('s3_write_err_counter_total'),
            'write_latency_count': self._sample('s3_write_durations_histogram_seconds_count'),
            'write_latency_sum': self._sample('s3_write_durations_histogram_seconds_sum'),
            'read_attempts': self._sample('s3_read_counter_total'),
            'read_hits': self._sample('s3_read_hit_counter_total'),
            'read_misses': self._sample('s3_read_miss_counter_total'),
            'read_errors': self._sample('s3_read_err_counter_total'),
            'read_latency_count': self._sample('s3_read_durations_histogram_seconds_count'),
            'read_latency_sum': self._sample('s3_read_durations_histogram_seconds_sum'),
            'warmup_writes': self._sample('s3_warmup_write_counter_total'),
            'warmup_errors': self._sample('s3_warmup_write_err_counter_total'),
            'dropped_write_ticks': self._sample(
                's3_dropped_ticks_counter_total', {'operation': OperationKind.WRITE.value}),
            'dropped_read_ticks': self._sample(
                's3_dropped_ticks_counter_total', {'operation': OperationKind.READ.value}),
            'in_flight': self._sample('s3_in_flight_operations'),
        }
