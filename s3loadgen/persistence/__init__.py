"""
Operation records and the metrics they feed.
"""

from .record import OperationKind, OperationRecord, Success, Miss, TransientError, Outcome
from .prom import LoadGenMetrics

__all__ = [
    'OperationKind',
    'OperationRecord',
    'Success',
    'Miss',
    'TransientError',
    'Outcome',
    'LoadGenMetrics',
]
