"""ObjectStore Protocol — the storage collaborator seam.

The bucket is bound when the store is constructed; keys are the
``applications/...`` strings produced by resolve_storage_key(). Stores raise
on failure; the orchestrator turns any exception into a StorageFailureError.
Writes to an existing key overwrite it (last write wins).
"""

from __future__ import annotations

from datetime import timedelta
from typing import Mapping, Protocol, runtime_checkable


@runtime_checkable
class ObjectStore(Protocol):
    """Implementations: MinioObjectStore (default), MemoryObjectStore."""

    @property
    def bucket(self) -> str:
        ...

    async def write(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str,
        metadata: Mapping[str, str],
    ) -> None:
        """Store data under key with the given content type and metadata."""
        ...

    async def sign_download_url(self, key: str, *, ttl: timedelta) -> str:
        """Return a URL that retrieves key until ttl elapses."""
        ...

    async def health_check(self) -> bool:
        """Returns True if the bucket is reachable. Must not raise."""
        ...

    async def close(self) -> None:
        ...
