"""MinioObjectStore — S3-compatible object storage via the MinIO SDK.

Works against MinIO, AWS S3, GCS interoperability endpoints and any other
S3-compatible service. The SDK is synchronous; every call is dispatched to
the default thread pool with run_in_executor so the event loop never blocks
on object-store I/O.

Environment (read by config.py):
  MINIO_ENDPOINT, MINIO_ACCESS_KEY, MINIO_SECRET_KEY, BUCKET_NAME
"""

from __future__ import annotations

import asyncio
import functools
import io
from datetime import timedelta
from typing import Any, Callable, Mapping, Optional, TypeVar
from urllib.parse import quote

from minio import Minio

from uploadgate.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Characters left unescaped in metadata values; everything else is
# percent-encoded so non-ASCII filenames survive as x-amz-meta-* headers.
_METADATA_SAFE_CHARS = " /:+-_.,()"


def encode_metadata(metadata: Mapping[str, str]) -> dict[str, str]:
    """Percent-encode metadata values so they are valid HTTP header values."""
    return {name: quote(str(value), safe=_METADATA_SAFE_CHARS) for name, value in metadata.items()}


class MinioObjectStore:
    """ObjectStore backed by a ``minio.Minio`` client.

    Usage:
        store = MinioObjectStore(bucket="uploads", endpoint="minio:9000",
                                 access_key="...", secret_key="...")
        await store.ensure_bucket()
        await store.write("applications/app1/a.png", data,
                          content_type="image/png", metadata={...})
        url = await store.sign_download_url("applications/app1/a.png",
                                            ttl=timedelta(days=7))
    """

    def __init__(
        self,
        bucket: str,
        endpoint: str = "localhost:9000",
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        secure: bool = True,
        region: Optional[str] = None,
        client: Optional[Any] = None,
    ) -> None:
        self._bucket = bucket
        self._endpoint = endpoint
        self._client = client or Minio(
            endpoint=endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
            region=region,
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    async def _run(self, fn: Callable[..., T], **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, **kwargs))

    async def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist. Raises on connection errors."""
        exists = await self._run(self._client.bucket_exists, bucket_name=self._bucket)
        if not exists:
            await self._run(self._client.make_bucket, bucket_name=self._bucket)
            logger.info("bucket_created", bucket=self._bucket, endpoint=self._endpoint)

    async def write(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str,
        metadata: Mapping[str, str],
    ) -> None:
        await self._run(
            self._client.put_object,
            bucket_name=self._bucket,
            object_name=key,
            data=io.BytesIO(data),
            length=len(data),
            content_type=content_type,
            metadata=encode_metadata(metadata),
        )

    async def sign_download_url(self, key: str, *, ttl: timedelta) -> str:
        return await self._run(
            self._client.presigned_get_object,
            bucket_name=self._bucket,
            object_name=key,
            expires=ttl,
        )

    async def health_check(self) -> bool:
        try:
            return bool(await self._run(self._client.bucket_exists, bucket_name=self._bucket))
        except Exception as exc:
            logger.warning("object_store_unhealthy", bucket=self._bucket, error=str(exc))
            return False

    async def close(self) -> None:
        logger.debug("object_store_closed", bucket=self._bucket)
