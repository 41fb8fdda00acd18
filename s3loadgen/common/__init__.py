"""
Common utilities for the load generator.
"""

from .inflight_limiter import InFlightLimiter
from .scheduler import WorkloadScheduler

__all__ = ['InFlightLimiter', 'WorkloadScheduler']
