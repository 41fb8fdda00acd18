"""
Read corpus bookkeeping: which keys the read path may ask for.
"""

import logging
import random
import time
from typing import Awaitable, Callable, List, Optional

from s3loadgen.configuration import CORPUS_SIZE, OBJECT_KEY_PREFIX
from s3loadgen.persistence.record import Outcome, Success, TransientError
from s3loadgen.systems.errors import StorageUnavailableError

logger = logging.getLogger(__name__)

# Log warm-up progress every N objects
POPULATE_PROGRESS_INTERVAL = 100


class CorpusPopulationError(Exception):
    """Warm-up could not reach the store at all."""


class EmptyCorpusError(LookupError):
    """A key was requested from a corpus of size zero."""


class PopulationReport:
    """Summary of a warm-up pass."""

    def __init__(self, attempted: int, succeeded: int, failed_ids: List[int], duration: float):
        self.attempted = attempted
        self.succeeded = succeeded
        self.failed_ids = failed_ids
        self.duration = duration

    @property
    def failed(self) -> int:
        return len(self.failed_ids)

    def __repr__(self) -> str:
        return (
            f"PopulationReport(attempted={self.attempted}, succeeded={self.succeeded}, "
            f"failed={self.failed}, duration={self.duration:.2f}s)"
        )


class CorpusManager:
    """Owns the identifiers ``1..size`` of the objects in the read bucket.

    Keys are ``{prefix}-{id}``. The set of identifiers is fixed at
    construction and never mutated, so concurrent readers need no locking.
    Sampling draws from the whole configured range, including identifiers
    whose warm-up write failed: reading those back must show up as misses.
    """

    def __init__(self, size: int = CORPUS_SIZE, prefix: str = OBJECT_KEY_PREFIX,
                 rng: random.Random = None):
        if size < 0:
            raise ValueError(f"Corpus size must be >= 0, got {size}")
        self.size = size
        self.prefix = prefix
        self._rng = rng or random.Random()
        self.populated = False
        self.report: Optional[PopulationReport] = None

    def key_for(self, object_id: int) -> str:
        return f"{self.prefix}-{object_id}"

    @property
    def keys(self) -> List[str]:
        return [self.key_for(i) for i in range(1, self.size + 1)]

    def sample(self) -> int:
        """Return a uniformly random identifier in ``[1, size]``."""
        if self.size == 0:
            raise EmptyCorpusError("Cannot sample from an empty corpus")
        return self._rng.randint(1, self.size)

    def sample_key(self) -> str:
        return self.key_for(self.sample())

    async def populate(self, write_fn: Callable[[int], Awaitable[Outcome]]) -> PopulationReport:
        """Write every identifier once, in order.

        Per-object failures are counted and population moves on. A store that
        cannot be reached at all aborts it.

        Args:
            write_fn: Coroutine function writing the object for an identifier

        Returns:
            The population report (also kept on ``self.report``)

        Raises:
            CorpusPopulationError: The store is unreachable
        """
        logger.info(f"Populating read corpus with {self.size} objects")
        start_time = time.time()
        succeeded = 0
        failed_ids: List[int] = []

        for object_id in range(1, self.size + 1):
            outcome = await write_fn(object_id)

            if isinstance(outcome, Success):
                succeeded += 1
            else:
                failed_ids.append(object_id)
                if isinstance(outcome, TransientError) and isinstance(
                    outcome.cause, StorageUnavailableError
                ):
                    raise CorpusPopulationError(
                        f"Store unreachable while writing {self.key_for(object_id)}"
                    ) from outcome.cause

            if object_id % POPULATE_PROGRESS_INTERVAL == 0:
                logger.info(f"Corpus progress: {object_id}/{self.size} objects written")

        self.report = PopulationReport(
            attempted=self.size,
            succeeded=succeeded,
            failed_ids=failed_ids,
            duration=time.time() - start_time,
        )
        self.populated = True

        if failed_ids:
            logger.warning(
                f"Corpus populated with {len(failed_ids)} failed writes out of {self.size}; "
                f"reads of those keys will count as misses"
            )
        else:
            logger.info(f"Corpus populated: {succeeded} objects in {self.report.duration:.2f}s")

        return self.report
