"""
Object storage systems the load generator can drive.
"""

from .base import ObjectStorageSystem, ObjectStream
from .errors import (
    StorageError,
    ObjectNotFoundError,
    StorageUnavailableError,
    BucketPreparationError,
)

__all__ = [
    'ObjectStorageSystem',
    'ObjectStream',
    'StorageError',
    'ObjectNotFoundError',
    'StorageUnavailableError',
    'BucketPreparationError',
]
