"""
S3-compatible object storage system backed by aioboto3.
"""

import asyncio
import logging
import os
from typing import Optional

import aioboto3
import psutil
from aiohttp import ClientError as AioHttpClientError
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
)

from s3loadgen.configuration import (
    S3_ENDPOINT,
    S3_USE_SSL,
    S3_REGION,
    MAX_IN_FLIGHT,
    MAX_ATTEMPTS,
    CONNECT_TIMEOUT_SECONDS,
    READ_TIMEOUT_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
    OBJECT_CONTENT_TYPE,
)
from s3loadgen.systems.base import ObjectStorageSystem, ObjectStream
from s3loadgen.systems.errors import (
    StorageError,
    ObjectNotFoundError,
    StorageUnavailableError,
)

logger = logging.getLogger(__name__)

# Error codes S3 uses for a missing key (GetObject vs HeadObject)
NOT_FOUND_ERROR_CODES = frozenset({"NoSuchKey", "NotFound", "404"})
MISSING_BUCKET_ERROR_CODES = frozenset({"NoSuchBucket", "NotFound", "404"})
THROTTLING_STATUS_CODES = (429, 503)

_TRANSPORT_ERRORS = (BotoCoreError, ClientError, AioHttpClientError, asyncio.TimeoutError)


def build_endpoint_url(endpoint: str, use_ssl: bool) -> str:
    """Turn a host:port endpoint into a URL; explicit schemes are kept."""
    if "://" in endpoint:
        return endpoint
    scheme = "https" if use_ssl else "http"
    return f"{scheme}://{endpoint}"


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "Unknown")


class _S3ObjectStream(ObjectStream):
    """Streaming body that reports transfer failures as StorageError."""

    def __init__(self, body, content_length, bucket, key, timeout):
        super().__init__(body, content_length)
        self._bucket = bucket
        self._key = key
        self._timeout = timeout

    async def read(self, amt: Optional[int] = None) -> bytes:
        try:
            return await asyncio.wait_for(self._body.read(amt), timeout=self._timeout)
        except _TRANSPORT_ERRORS as e:
            raise StorageError(
                f"Transfer of {self._key} interrupted: {type(e).__name__}: {e}",
                self._bucket,
                self._key,
            ) from e


class S3System(ObjectStorageSystem):
    """S3-compatible storage (MinIO, AWS S3, R2, ...) over a pooled aioboto3 client."""

    def __init__(
        self,
        endpoint: str = S3_ENDPOINT,
        credentials: dict = None,
        use_ssl: bool = S3_USE_SSL,
        max_pool_connections: int = None,
        request_timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        if credentials is None:
            credentials = {}

        self.endpoint = endpoint
        self.endpoint_url = build_endpoint_url(endpoint, use_ssl)
        self.request_timeout = request_timeout

        # Single source of truth for config
        self._config = self._create_config(max_pool_connections or MAX_IN_FLIGHT + 16)

        self.session = aioboto3.Session(
            aws_access_key_id=credentials.get("access_key_id"),
            aws_secret_access_key=credentials.get("secret_access_key"),
            region_name=credentials.get("region_name", S3_REGION),
        )

        self.client = None
        self._client_context = None

        logger.info(
            f"Initialized S3 storage for {self.endpoint_url} "
            f"(max_pool_connections={self._config.max_pool_connections})"
        )

    def _create_config(self, max_pool_connections: int) -> Config:
        """Create the botocore config shared by every request."""
        return Config(
            # Every in-flight operation may hold a connection
            max_pool_connections=max_pool_connections,
            connect_timeout=CONNECT_TIMEOUT_SECONDS,
            read_timeout=READ_TIMEOUT_SECONDS,
            # Retries would hide latency and errors: one tick is one attempt
            retries={
                'max_attempts': MAX_ATTEMPTS,
                'mode': 'standard',
            },
            # Path-style addressing works for MinIO and most on-prem stores
            s3={'addressing_style': 'path'},
            tcp_keepalive=True,
        )

    async def __aenter__(self):
        """Open the pooled client."""
        self._client_context = self.session.client(
            "s3",
            endpoint_url=self.endpoint_url,
            config=self._config,
        )
        self.client = await self._client_context.__aenter__()
        logger.info(f"S3 client connected to {self.endpoint_url}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close the pooled client."""
        if self._client_context:
            await self._client_context.__aexit__(exc_type, exc_val, exc_tb)
        self._client_context = None
        self.client = None

    def get_connection_count(self) -> int:
        """Get number of established connections for this process."""
        try:
            process = psutil.Process(os.getpid())
            connections = process.net_connections(kind='inet')
            return len([c for c in connections if c.status == psutil.CONN_ESTABLISHED])
        except psutil.Error as e:
            logger.debug(f"Failed to get connection count: {e}")
            return -1

    async def _call(self, operation: str, bucket: str, key: Optional[str] = None, **kwargs):
        """Invoke a client operation with the request timeout and error translation."""
        if not self.client:
            raise RuntimeError("Storage client not initialized. Use async context manager.")

        if key is not None:
            kwargs["Key"] = key
        method = getattr(self.client, operation)
        try:
            return await asyncio.wait_for(
                method(Bucket=bucket, **kwargs), timeout=self.request_timeout
            )
        except _TRANSPORT_ERRORS as e:
            raise self._translate_error(e, bucket, key) from e

    def _translate_error(self, error: Exception, bucket: str, key: Optional[str]) -> StorageError:
        """Map botocore/aiohttp failures onto the storage error types."""
        if isinstance(error, ClientError):
            code = _error_code(error)
            status_code = error.response.get('ResponseMetadata', {}).get('HTTPStatusCode', 0)
            if key is not None and code in NOT_FOUND_ERROR_CODES:
                return ObjectNotFoundError(bucket, key)
            if status_code in THROTTLING_STATUS_CODES:
                return StorageError(f"Throttled: {code} (HTTP {status_code})", bucket, key)
            return StorageError(f"S3 error {code} (HTTP {status_code})", bucket, key)

        if isinstance(error, (EndpointConnectionError, ConnectTimeoutError)):
            return StorageUnavailableError(
                f"Cannot reach {self.endpoint_url}: {error}", bucket, key
            )

        if isinstance(error, asyncio.TimeoutError):
            return StorageError(
                f"Request timed out after {self.request_timeout}s", bucket, key
            )

        return StorageError(f"{type(error).__name__}: {error}", bucket, key)

    async def put_object(self, bucket: str, key: str, data: bytes) -> int:
        await self._call(
            "put_object",
            bucket,
            key,
            Body=data,
            ContentLength=len(data),
            ContentType=OBJECT_CONTENT_TYPE,
        )
        return len(data)

    async def get_object(self, bucket: str, key: str) -> ObjectStream:
        response = await self._call("get_object", bucket, key)
        return _S3ObjectStream(
            response["Body"],
            response.get("ContentLength"),
            bucket,
            key,
            self.request_timeout,
        )

    async def stat_object(self, bucket: str, key: str) -> int:
        response = await self._call("head_object", bucket, key)
        return response["ContentLength"]

    async def bucket_exists(self, bucket: str) -> bool:
        try:
            await self._call("head_bucket", bucket)
        except StorageError as e:
            cause = e.__cause__
            if isinstance(cause, ClientError) and _error_code(cause) in MISSING_BUCKET_ERROR_CODES:
                return False
            raise
        return True

    async def create_bucket(self, bucket: str, location: Optional[str] = None) -> None:
        kwargs = {}
        if location:
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": location}
        await self._call("create_bucket", bucket, **kwargs)
