"""
Async base classes for object storage systems.
"""

import logging
from typing import Optional

from s3loadgen.systems.errors import BucketPreparationError, StorageError

logger = logging.getLogger(__name__)


class ObjectStream:
    """Readable body of a fetched object.

    Wraps any body exposing ``async read(amt)`` and ``close()``. Use it as an
    async context manager so the underlying connection is released even when
    draining fails half way.
    """

    def __init__(self, body, content_length: Optional[int] = None):
        self._body = body
        self.content_length = content_length

    async def read(self, amt: Optional[int] = None) -> bytes:
        """Read up to ``amt`` bytes; an empty result means end of stream."""
        return await self._body.read(amt)

    def close(self) -> None:
        self._body.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()


class ObjectStorageSystem:
    """Async base class for object storage systems.

    Implementations are shared by every in-flight operation and must be safe
    for concurrent use from the event loop without extra locking.
    """

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        return None

    async def put_object(self, bucket: str, key: str, data: bytes) -> int:
        """Store ``data`` under ``bucket/key`` and return the stored size."""
        raise NotImplementedError

    async def get_object(self, bucket: str, key: str) -> ObjectStream:
        """Open ``bucket/key`` for reading.

        Raises:
            ObjectNotFoundError: The key does not exist
            StorageError: Any other failure
        """
        raise NotImplementedError

    async def stat_object(self, bucket: str, key: str) -> int:
        """Return the size of ``bucket/key``; raises ObjectNotFoundError when missing."""
        raise NotImplementedError

    async def bucket_exists(self, bucket: str) -> bool:
        raise NotImplementedError

    async def create_bucket(self, bucket: str, location: Optional[str] = None) -> None:
        raise NotImplementedError

    def get_connection_count(self) -> int:
        """Number of established connections, or -1 when unknown."""
        return -1

    async def ensure_bucket(self, bucket: str, location: Optional[str] = None) -> bool:
        """Create ``bucket`` or verify that we already own it.

        Returns:
            True if the bucket was created, False if it already existed

        Raises:
            BucketPreparationError: The bucket can neither be created nor verified
        """
        try:
            await self.create_bucket(bucket, location)
        except StorageError as create_error:
            # Creation fails when the bucket is already ours (e.g. a second run)
            try:
                exists = await self.bucket_exists(bucket)
            except StorageError as e:
                raise BucketPreparationError(
                    f"Cannot create or verify bucket {bucket}: {e}", bucket
                ) from e
            if not exists:
                raise BucketPreparationError(
                    f"Cannot create bucket {bucket}: {create_error}", bucket
                ) from create_error
            logger.info(f"We already own {bucket} bucket")
            return False

        logger.info(f"Successfully created {bucket} bucket")
        return True
