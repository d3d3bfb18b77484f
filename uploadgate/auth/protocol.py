"""KeyStore Protocol — the registry backend seam.

Contract: given a plaintext key, return at most one authoritative
ApiKeyRecord, or None. Backends whose storage model allows several records
for the same key MUST reduce them with select_authoritative() rather than
trusting backend result ordering.

Backends are free to raise on infrastructure errors; KeyRegistry treats any
exception as "not found" (fail closed).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional, Protocol, runtime_checkable

from uploadgate.auth.models import ApiKeyRecord

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@runtime_checkable
class KeyStore(Protocol):
    """Read-only registry backend used by KeyRegistry.

    Implementations: SQLiteKeyStore (default), SupabaseKeyStore.
    Selection via create_key_store() (auth/factory.py).
    """

    async def lookup(self, api_key: str) -> Optional[ApiKeyRecord]:
        """Return the authoritative record for api_key, or None."""
        ...

    async def health_check(self) -> bool:
        """Returns True if the backend is reachable. Must not raise."""
        ...

    async def close(self) -> None:
        """Release connections. Called during graceful shutdown."""
        ...


def select_authoritative(records: Iterable[ApiKeyRecord]) -> Optional[ApiKeyRecord]:
    """Pick the record that speaks for a key when a backend returns several.

    The most recently created record wins; records without created_at sort
    oldest. Equal timestamps fall back to the larger record_id, which for
    ULIDs is also the later one. Returns None for an empty collection.
    """
    best: Optional[ApiKeyRecord] = None
    for record in records:
        if best is None or _sort_key(record) > _sort_key(best):
            best = record
    return best


def _sort_key(record: ApiKeyRecord) -> tuple[datetime, str]:
    return (record.created_at or _EPOCH, record.record_id or "")
