"""MemoryObjectStore — process-local object store for development and tests.

Selected with ``storage.backend: memory``. Objects live in a dict and vanish
on restart. Download URLs point at the app's own ``/objects`` route and are
HMAC-signed with a per-process secret, so they expire like real presigned
URLs and cannot be forged by changing the key or the expiry.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Mapping, Optional
from urllib.parse import parse_qs, quote, unquote, urlsplit

from uploadgate.utils.clock import utc_now
from uploadgate.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class StoredObject:
    data: bytes
    content_type: str
    metadata: dict[str, str] = field(default_factory=dict)


class MemoryObjectStore:
    """Dict-backed ObjectStore. Last write wins."""

    def __init__(
        self,
        bucket: str = "uploads",
        public_base_url: str = "http://localhost:8080/objects",
        secret: Optional[bytes] = None,
    ) -> None:
        self._bucket = bucket
        self._public_base_url = public_base_url.rstrip("/")
        self._secret = secret or secrets.token_bytes(32)
        self._objects: dict[str, StoredObject] = {}

    @property
    def bucket(self) -> str:
        return self._bucket

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, key: object) -> bool:
        return key in self._objects

    def get(self, key: str) -> Optional[StoredObject]:
        return self._objects.get(key)

    async def write(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str,
        metadata: Mapping[str, str],
    ) -> None:
        self._objects[key] = StoredObject(
            data=bytes(data), content_type=content_type, metadata=dict(metadata)
        )

    async def sign_download_url(self, key: str, *, ttl: timedelta) -> str:
        expires = int((utc_now() + ttl).timestamp())
        signature = self._signature(key, expires)
        return (
            f"{self._public_base_url}/{self._bucket}/{quote(key)}"
            f"?expires={expires}&signature={signature}"
        )

    def verify(self, key: str, expires: int, signature: str) -> bool:
        """True if signature matches key/expires and the URL has not expired."""
        if expires < int(utc_now().timestamp()):
            return False
        return hmac.compare_digest(self._signature(key, expires), signature)

    def resolve_url(self, url: str) -> Optional[StoredObject]:
        """Return the object a signed URL points at, or None if invalid/expired."""
        parts = urlsplit(url)
        prefix = f"{urlsplit(self._public_base_url).path}/{self._bucket}/"
        if not parts.path.startswith(prefix):
            return None
        key = unquote(parts.path[len(prefix):])
        query = parse_qs(parts.query)
        try:
            expires = int(query["expires"][0])
            signature = query["signature"][0]
        except (KeyError, IndexError, ValueError):
            return None
        if not self.verify(key, expires, signature):
            return None
        return self.get(key)

    def _signature(self, key: str, expires: int) -> str:
        message = f"{self._bucket}\n{key}\n{expires}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        logger.debug("memory_object_store_closed", objects=len(self._objects))
