"""SupabaseKeyStore — API key registry backed by a Supabase table.

Table ``api_keys`` (created out-of-band in the Supabase project) uses the same
columns as the SQLite store: id, key_digest, application_id, path, disabled,
expires_at, created_at. Rows are fetched as a collection and reduced with
select_authoritative(); PostgREST ordering is not trusted on its own.

Unlike SupabaseBackend (audit), this store does NOT swallow errors: a failed
lookup must reach KeyRegistry so it can fail closed.

Selected when registry.backend is "supabase"; SUPABASE_URL and a service-role
SUPABASE_KEY must both be set.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from uploadgate.auth.keys import key_fingerprint
from uploadgate.auth.models import ApiKeyRecord
from uploadgate.auth.protocol import select_authoritative
from uploadgate.constants import SUPABASE_TIMEOUT_S
from uploadgate.utils.clock import parse_timestamp
from uploadgate.utils.logger import get_logger

logger = get_logger(__name__)

_TABLE_NAME = "api_keys"

#: Upper bound on candidate rows fetched for one key.
_MAX_CANDIDATES = 10


def _row_to_record(row: dict[str, Any]) -> ApiKeyRecord:
    return ApiKeyRecord(
        key_id=row["key_digest"],
        application_id=row["application_id"],
        path=row.get("path") or None,
        disabled=bool(row.get("disabled", False)),
        expires_at=parse_timestamp(row.get("expires_at")),
        created_at=parse_timestamp(row.get("created_at")),
        record_id=str(row["id"]) if row.get("id") is not None else None,
    )


class SupabaseKeyStore:
    """Async Supabase KeyStore.

    Usage:
        store = SupabaseKeyStore(url="https://...", key="service-role-key")
        await store.initialize()
        record = await store.lookup("upk-01HZ...")
    """

    def __init__(
        self,
        url: str,
        key: str,
        table_name: str = _TABLE_NAME,
        timeout_s: float = SUPABASE_TIMEOUT_S,
        client: Optional[Any] = None,
    ) -> None:
        self._url = url
        self._key = key
        self._table_name = table_name
        self._timeout_s = timeout_s
        self._client: Optional[Any] = client

    async def initialize(self) -> None:
        """Create the async Supabase client. Raises on connection failure."""
        if self._client is not None:
            return
        from supabase import create_async_client

        self._client = await asyncio.wait_for(
            create_async_client(self._url, self._key),
            timeout=self._timeout_s,
        )
        logger.info(
            "supabase_key_store_initialized",
            table=self._table_name,
            timeout_s=self._timeout_s,
        )

    async def lookup(self, api_key: str) -> Optional[ApiKeyRecord]:
        if self._client is None:
            raise RuntimeError("SupabaseKeyStore not initialized — call initialize() first")

        query = (
            self._client.table(self._table_name)
            .select("*")
            .eq("key_digest", key_fingerprint(api_key))
            .order("created_at", desc=True)
            .limit(_MAX_CANDIDATES)
        )
        response = await asyncio.wait_for(query.execute(), timeout=self._timeout_s)
        rows = response.data or []
        if len(rows) > 1:
            logger.warning(
                "multiple_key_records",
                key_id=key_fingerprint(api_key)[:12],
                candidates=len(rows),
            )
        return select_authoritative(_row_to_record(row) for row in rows)

    async def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            await asyncio.wait_for(
                self._client.table(self._table_name).select("id").limit(1).execute(),
                timeout=self._timeout_s,
            )
            return True
        except Exception as exc:
            logger.warning("supabase_key_store_unhealthy", error=str(exc))
            return False

    async def close(self) -> None:
        self._client = None
        logger.debug("supabase_key_store_closed")
