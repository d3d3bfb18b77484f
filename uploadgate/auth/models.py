"""API key registry data contracts.

ApiKeyRecord is what a KeyStore returns for a key. AuthOutcome is what the
KeyRegistry returns to the upload pipeline: either Authorized (tenant grant)
or Unauthorized (reason, for logs only, never echoed to the caller).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union


@dataclass(frozen=True)
class ApiKeyRecord:
    """One issued API key, as stored in the registry.

    Records are created out-of-band (``uploadgate-keys create``) and are
    read-only from the upload path's perspective.
    """

    key_id: str
    """SHA-256 hex digest of the plaintext key. The plaintext is never stored."""
    application_id: str
    """Tenant the key grants access to."""
    path: Optional[str] = None
    """Tenant-relative sub-path prefix. None (or "") means the tenant root."""
    disabled: bool = False
    expires_at: Optional[datetime] = None
    """UTC expiry. None means the key never expires."""
    created_at: Optional[datetime] = None
    """UTC creation time. Used as the tie-break when several records share a key."""
    record_id: Optional[str] = None
    """Backend row identifier (ULID for the SQLite store)."""

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now

    def is_usable(self, now: datetime) -> bool:
        return not self.disabled and not self.is_expired(now)


class UnauthorizedReason(str, Enum):
    KEY_ABSENT = "key-absent"
    KEY_DISABLED = "key-disabled"
    KEY_EXPIRED = "key-expired"
    KEY_NOT_FOUND = "key-not-found"


@dataclass(frozen=True)
class Authorized:
    application_id: str
    path: Optional[str] = None


@dataclass(frozen=True)
class Unauthorized:
    reason: UnauthorizedReason


AuthOutcome = Union[Authorized, Unauthorized]
