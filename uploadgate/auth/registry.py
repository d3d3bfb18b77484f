"""KeyRegistry — decides whether an API key may upload, and where to.

authorize() is the only entry point. It never raises: infrastructure errors
from the KeyStore are logged and reported as KEY_NOT_FOUND, so authorization
fails closed. Reasons are logged here and returned for the orchestrator's
logs; the HTTP layer never distinguishes them to the caller.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from uploadgate.auth.keys import key_fingerprint
from uploadgate.auth.models import (
    AuthOutcome,
    Authorized,
    Unauthorized,
    UnauthorizedReason,
)
from uploadgate.auth.protocol import KeyStore
from uploadgate.utils.clock import utc_now
from uploadgate.utils.logger import get_logger

logger = get_logger(__name__)


class KeyRegistry:
    """Resolve an opaque API key to a tenant grant.

    Args:
        store: KeyStore backend (owned by the caller; closed at shutdown).
        clock: Returns the current aware UTC time. Injected for tests.
    """

    def __init__(
        self,
        store: KeyStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._clock = clock

    @property
    def store(self) -> KeyStore:
        return self._store

    async def authorize(self, api_key: Optional[str]) -> AuthOutcome:
        if not api_key:
            return Unauthorized(UnauthorizedReason.KEY_ABSENT)

        key_id = key_fingerprint(api_key)[:12]

        try:
            record = await self._store.lookup(api_key)
        except Exception as exc:
            logger.error(
                "key_lookup_failed",
                key_id=key_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return Unauthorized(UnauthorizedReason.KEY_NOT_FOUND)

        if record is None:
            return self._deny(UnauthorizedReason.KEY_NOT_FOUND, key_id)

        if record.disabled:
            return self._deny(UnauthorizedReason.KEY_DISABLED, key_id)

        if record.is_expired(self._clock()):
            return self._deny(UnauthorizedReason.KEY_EXPIRED, key_id)

        logger.debug(
            "key_authorized",
            key_id=key_id,
            application_id=record.application_id,
            has_path=bool(record.path),
        )
        return Authorized(application_id=record.application_id, path=record.path or None)

    @staticmethod
    def _deny(reason: UnauthorizedReason, key_id: str) -> Unauthorized:
        logger.info("key_rejected", key_id=key_id, reason=reason.value)
        return Unauthorized(reason)
