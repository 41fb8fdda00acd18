"""
Fixed-size in-flight limiter for bounding concurrent operations.
"""

import logging

logger = logging.getLogger(__name__)


class InFlightLimiter:
    """Non-blocking permit counter with precise in-flight tracking.

    Used from the event loop thread only, so no locking is needed. Callers
    that cannot get a permit are expected to give up (drop the tick) rather
    than wait for one.
    """

    def __init__(self, max_in_flight: int):
        """Initialize the limiter.

        Args:
            max_in_flight: Maximum number of operations allowed in flight
        """
        if max_in_flight < 1:
            raise ValueError(f"max_in_flight must be >= 1, got {max_in_flight}")
        self._max_permits = max_in_flight
        self._in_flight = 0

        logger.info(f"Initialized InFlightLimiter with {max_in_flight} permits")

    def try_acquire(self) -> bool:
        """Take a permit if one is free.

        Returns:
            True if a permit was acquired, False if the limit is reached
        """
        if self._in_flight >= self._max_permits:
            return False
        self._in_flight += 1
        return True

    def release(self) -> None:
        """Give a permit back."""
        if self._in_flight > 0:
            self._in_flight -= 1
        else:
            logger.warning("Attempted to release limiter when in_flight is 0")

    def in_flight(self) -> int:
        return self._in_flight

    def max_permits(self) -> int:
        return self._max_permits

    def __repr__(self) -> str:
        return f"InFlightLimiter(in_flight={self._in_flight}/{self._max_permits})"
