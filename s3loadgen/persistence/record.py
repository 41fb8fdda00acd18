"""
Basic data structures for load generator operations.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Union


class OperationKind(str, Enum):
    """What an operation was issued for."""

    WRITE = "write"
    READ = "read"
    WARMUP = "warmup"


@dataclass(frozen=True)
class Success:
    """The operation completed; ``bytes`` were transferred in ``duration`` seconds."""

    bytes: int
    duration: float


@dataclass(frozen=True)
class Miss:
    """The store reported ``key`` as not found."""

    key: str


@dataclass(frozen=True)
class TransientError:
    """Any other failure of the operation."""

    cause: Exception


Outcome = Union[Success, Miss, TransientError]


class OperationRecord:
    """Data structure for one operation attempt; discarded once recorded."""

    def __init__(self, kind: OperationKind, key: str, outcome: Outcome,
                 duration: float, started_at: float = None):
        self.kind = kind
        self.key = key
        self.outcome = outcome
        self.duration = duration
        self.started_at = started_at or time.time()
