"""
Workload engine: corpus bookkeeping, payloads and classified operations.
"""

from .corpus import CorpusManager, PopulationReport, CorpusPopulationError, EmptyCorpusError
from .executor import OperationExecutor
from .payload import PayloadGenerator

__all__ = [
    'CorpusManager',
    'PopulationReport',
    'CorpusPopulationError',
    'EmptyCorpusError',
    'OperationExecutor',
    'PayloadGenerator',
]
