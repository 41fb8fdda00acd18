"""
Factory module for creating storage system instances.
"""

import logging

# Suppress boto3/botocore logging BEFORE importing any boto3-related modules
logging.getLogger('botocore').setLevel(logging.CRITICAL)
logging.getLogger('botocore.credentials').setLevel(logging.CRITICAL)
logging.getLogger('boto3').setLevel(logging.CRITICAL)
logging.getLogger('aioboto3').setLevel(logging.CRITICAL)
logging.getLogger('aiobotocore').setLevel(logging.CRITICAL)
logging.getLogger('urllib3').setLevel(logging.CRITICAL)
logging.getLogger('s3transfer').setLevel(logging.CRITICAL)

from s3loadgen.configuration import (
    S3_ENDPOINT,
    S3_ACCESS_KEY_ID,
    S3_SECRET_ACCESS_KEY,
    S3_USE_SSL,
    S3_REGION,
    MAX_IN_FLIGHT,
)
from s3loadgen.systems.base import ObjectStorageSystem
from s3loadgen.systems.memory import InMemoryStorageSystem
from s3loadgen.systems.s3 import S3System

logger = logging.getLogger(__name__)


def create_storage_system(
    storage_type: str,
    endpoint: str = S3_ENDPOINT,
    access_key_id: str = S3_ACCESS_KEY_ID,
    secret_access_key: str = S3_SECRET_ACCESS_KEY,
    use_ssl: bool = S3_USE_SSL,
    region: str = S3_REGION,
    max_in_flight: int = MAX_IN_FLIGHT,
) -> ObjectStorageSystem:
    """Create and return the appropriate storage system based on type.

    Args:
        storage_type: Storage type ('s3' or 'memory')
        endpoint: S3 endpoint host:port (or full URL)
        access_key_id: S3 access key ID
        secret_access_key: S3 secret key
        use_ssl: Whether to talk HTTPS to the endpoint
        region: Signing region
        max_in_flight: In-flight limit, used to size the connection pool

    Returns:
        Storage system instance (S3System or InMemoryStorageSystem)

    Raises:
        ValueError: If storage_type is not supported
    """
    storage_type = storage_type.lower()

    if storage_type == "s3":
        logger.info(f"Connecting to {endpoint}")
        credentials = {
            "access_key_id": access_key_id,
            "secret_access_key": secret_access_key,
            "region_name": region,
        }
        return S3System(
            endpoint=endpoint,
            credentials=credentials,
            use_ssl=use_ssl,
            max_pool_connections=max_in_flight + 16,
        )

    elif storage_type == "memory":
        logger.info("Using in-memory storage (dry run)")
        return InMemoryStorageSystem()

    else:
        raise ValueError(f"Unsupported storage type: {storage_type}. Must be 's3' or 'memory'.")
