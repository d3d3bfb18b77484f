"""Object store factory — storage backend selection.

  storage.backend == "memory" → MemoryObjectStore (development only)
  otherwise                   → MinioObjectStore

With storage.create_bucket true, a missing bucket is created at startup;
otherwise an unreachable or missing bucket is only logged, and uploads will
fail with 500 until it is available.
"""

from __future__ import annotations

from uploadgate.config import Config
from uploadgate.storage.protocol import ObjectStore
from uploadgate.utils.logger import get_logger

logger = get_logger(__name__)


async def create_object_store(config: Config) -> ObjectStore:
    storage = config.storage

    if storage.backend == "memory":
        from uploadgate.storage.memory_store import MemoryObjectStore

        logger.warning(
            "object_store_selected",
            backend="MemoryObjectStore",
            bucket=storage.bucket,
            note="objects are not persisted across restarts",
        )
        return MemoryObjectStore(
            bucket=storage.bucket, public_base_url=storage.public_base_url
        )

    from uploadgate.storage.minio_store import MinioObjectStore

    store = MinioObjectStore(
        bucket=storage.bucket,
        endpoint=storage.endpoint,
        access_key=storage.access_key,
        secret_key=storage.secret_key,
        secure=storage.secure,
        region=storage.region,
    )
    if storage.create_bucket:
        await store.ensure_bucket()
    elif not await store.health_check():
        logger.warning(
            "object_store_bucket_unavailable",
            bucket=storage.bucket,
            endpoint=storage.endpoint,
        )

    logger.info(
        "object_store_selected",
        backend="MinioObjectStore",
        bucket=storage.bucket,
        endpoint=storage.endpoint,
        secure=storage.secure,
    )
    return store
