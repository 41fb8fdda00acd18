"""
Configuration constants for the S3 load generator.

This module contains all configuration parameters including:
- Object store endpoint and credentials
- Bucket names and object key layout
- Workload rates, payload and corpus sizes
- Concurrency bounds and shutdown behaviour
- Prometheus histogram layout
"""

import os
from typing import List, Tuple


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# OBJECT STORE CONFIGURATION
# =============================================================================

# Endpoint is host:port; the scheme is derived from S3_USE_SSL
S3_ENDPOINT: str = os.getenv("S3_ENDPOINT", "localhost:9000")
S3_ACCESS_KEY_ID: str = os.getenv("S3_ACCESS_KEY_ID", "")
S3_SECRET_ACCESS_KEY: str = os.getenv("S3_SECRET_ACCESS_KEY", "")
S3_USE_SSL: bool = _env_flag("S3_USE_SSL", False)
S3_REGION: str = os.getenv("S3_REGION", "us-east-1")

# Location constraint passed on bucket creation (empty = backend default)
BUCKET_LOCATION: str = os.getenv("BUCKET_LOCATION", "")

WRITE_BUCKET_NAME: str = os.getenv("WRITE_BUCKET_NAME", "s3-loadgen-writes")
READ_BUCKET_NAME: str = os.getenv("READ_BUCKET_NAME", "s3-loadgen-reads")

# =============================================================================
# OBJECT LAYOUT
# =============================================================================

OBJECT_KEY_PREFIX: str = "s3-loadgen"
OBJECT_CONTENT_TYPE: str = "text/plain"

# Steady-state writes pick a random id in 1..WRITE_KEY_SPACE
WRITE_KEY_SPACE: int = 9_999_999_999

# Payload content: letters framed by newlines
PAYLOAD_ALPHABET: bytes = b"\nabcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ\n"

# =============================================================================
# WORKLOAD PARAMETERS
# =============================================================================

WRITE_INTERVAL_SECONDS: float = float(os.getenv("WRITE_INTERVAL_SECONDS", "0.2"))
READ_INTERVAL_SECONDS: float = float(os.getenv("READ_INTERVAL_SECONDS", "0.1"))
PAYLOAD_SIZE_BYTES: int = int(os.getenv("PAYLOAD_SIZE_BYTES", "250000"))
CORPUS_SIZE: int = int(os.getenv("CORPUS_SIZE", "2000"))

# "block": fill the read bucket before the first tick
# "background": fill it while the workload is already running
WARM_UP_MODE_BLOCK: str = "block"
WARM_UP_MODE_BACKGROUND: str = "background"
WARM_UP_MODES: Tuple[str, ...] = (WARM_UP_MODE_BLOCK, WARM_UP_MODE_BACKGROUND)
WARM_UP_MODE: str = os.getenv("WARM_UP_MODE", WARM_UP_MODE_BLOCK)

# =============================================================================
# CONCURRENCY AND TIMEOUTS
# =============================================================================

MAX_IN_FLIGHT: int = int(os.getenv("MAX_IN_FLIGHT", "256"))  # Ticks beyond this are dropped
SHUTDOWN_GRACE_SECONDS: float = 10.0  # In-flight operations get this long to finish on stop

CONNECT_TIMEOUT_SECONDS: int = 5
READ_TIMEOUT_SECONDS: int = 60
REQUEST_TIMEOUT_SECONDS: float = 60.0  # Upper bound on a single store request

# One tick is one attempt: botocore must not retry behind our back
MAX_ATTEMPTS: int = 1

READ_CHUNK_SIZE_BYTES: int = 64 * 1024

# =============================================================================
# METRICS AND REPORTING
# =============================================================================

METRICS_PORT: int = int(os.getenv("METRICS_PORT", "9090"))
PROGRESS_INTERVAL_SECONDS: float = 30.0

WRITE_LATENCY_BUCKETS: List[float] = [
    0.01, 0.02, 0.03, 0.04, 0.05, 0.06, 0.07, 0.08, 0.09, 0.1, 0.11,
    0.12, 0.14, 0.16, 0.18, 0.2, 0.25, 0.3, 0.4, 0.5, 0.75, 1,
]
READ_LATENCY_BUCKETS: List[float] = [
    0.006, 0.01, 0.012, 0.014, 0.016, 0.018, 0.02, 0.024, 0.028, 0.035,
    0.05, 0.075, 0.1, 0.125, 0.15, 0.2, 0.25, 0.3, 0.4, 0.5,
]

# =============================================================================
# CLI DEFAULTS
# =============================================================================

DEFAULT_LOG_LEVEL: str = "info"
DEFAULT_STORAGE: str = "s3"
STORAGE_TYPES: Tuple[str, ...] = ("s3", "memory")
