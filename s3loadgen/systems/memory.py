"""
In-memory object storage system for dry runs and tests.
"""

import asyncio
import logging
from typing import Dict, Iterable, Optional, Set

from s3loadgen.systems.base import ObjectStorageSystem, ObjectStream
from s3loadgen.systems.errors import (
    StorageError,
    ObjectNotFoundError,
    StorageUnavailableError,
)

logger = logging.getLogger(__name__)


class _MemoryBody:
    """Chunked reader over stored bytes, optionally breaking half way through."""

    def __init__(self, data: bytes, bucket: str, key: str, broken: bool = False):
        self._data = data
        self._position = 0
        self._bucket = bucket
        self._key = key
        self._broken = broken
        self.closed = False

    async def read(self, amt: Optional[int] = None) -> bytes:
        if self._broken and self._position >= len(self._data) // 2:
            raise StorageError(
                f"Connection reset while streaming {self._key}", self._bucket, self._key
            )
        end = len(self._data) if amt is None else self._position + amt
        if self._broken:
            end = min(end, len(self._data) // 2)
        chunk = self._data[self._position:end]
        self._position += len(chunk)
        return chunk

    def close(self) -> None:
        self.closed = True


class InMemoryStorageSystem(ObjectStorageSystem):
    """Dictionary-backed store with optional latency and fault injection.

    Attributes:
        latency_seconds: Delay applied to every request
        failing_put_keys: Keys whose puts fail with StorageError
        broken_stream_keys: Keys whose bodies fail mid-transfer
        get_fault: When set, every get raises this error
        unreachable: When True, every request raises StorageUnavailableError
    """

    def __init__(
        self,
        latency_seconds: float = 0.0,
        failing_put_keys: Iterable[str] = (),
        unreachable: bool = False,
    ):
        self.latency_seconds = latency_seconds
        self.failing_put_keys: Set[str] = set(failing_put_keys)
        self.broken_stream_keys: Set[str] = set()
        self.get_fault: Optional[StorageError] = None
        self.unreachable = unreachable
        self.buckets: Dict[str, Dict[str, bytes]] = {}

    async def _request(self, bucket: str, key: Optional[str] = None) -> None:
        if self.latency_seconds > 0:
            await asyncio.sleep(self.latency_seconds)
        if self.unreachable:
            raise StorageUnavailableError("In-memory store marked unreachable", bucket, key)

    def _bucket(self, bucket: str, key: Optional[str] = None) -> Dict[str, bytes]:
        try:
            return self.buckets[bucket]
        except KeyError:
            raise StorageError(f"Bucket {bucket} does not exist", bucket, key) from None

    async def put_object(self, bucket: str, key: str, data: bytes) -> int:
        await self._request(bucket, key)
        objects = self._bucket(bucket, key)
        if key in self.failing_put_keys:
            raise StorageError(f"Injected put failure for {key}", bucket, key)
        objects[key] = bytes(data)
        return len(data)

    async def get_object(self, bucket: str, key: str) -> ObjectStream:
        await self._request(bucket, key)
        if self.get_fault is not None:
            raise self.get_fault
        objects = self._bucket(bucket, key)
        if key not in objects:
            raise ObjectNotFoundError(bucket, key)
        data = objects[key]
        body = _MemoryBody(data, bucket, key, broken=key in self.broken_stream_keys)
        return ObjectStream(body, len(data))

    async def stat_object(self, bucket: str, key: str) -> int:
        await self._request(bucket, key)
        objects = self._bucket(bucket, key)
        if key not in objects:
            raise ObjectNotFoundError(bucket, key)
        return len(objects[key])

    async def bucket_exists(self, bucket: str) -> bool:
        await self._request(bucket)
        return bucket in self.buckets

    async def create_bucket(self, bucket: str, location: Optional[str] = None) -> None:
        await self._request(bucket)
        if bucket in self.buckets:
            raise StorageError(f"Bucket {bucket} already exists", bucket)
        self.buckets[bucket] = {}
        logger.debug(f"Created in-memory bucket {bucket}")
