"""
Error types raised at the object storage seam.
"""

from typing import Optional


class StorageError(Exception):
    """A store operation failed; the next tick may well succeed."""

    def __init__(self, message: str, bucket: Optional[str] = None, key: Optional[str] = None):
        super().__init__(message)
        self.bucket = bucket
        self.key = key


class ObjectNotFoundError(StorageError):
    """The store reports that the requested key does not exist."""

    def __init__(self, bucket: str, key: str):
        super().__init__(f"Object {key} does not exist in bucket {bucket}", bucket, key)


class StorageUnavailableError(StorageError):
    """The store endpoint cannot be reached at all."""


class BucketPreparationError(StorageError):
    """A required bucket can neither be created nor verified."""
