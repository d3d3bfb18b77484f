"""SupabaseBackend — upload audit log kept in a Supabase table.

Selected by the factory when SUPABASE_URL and SUPABASE_KEY (service role)
are both set. Every call is bounded by SUPABASE_TIMEOUT_S and degrades to a
safe default on failure: an unreachable Supabase never fails an upload.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict
from datetime import timedelta
from typing import Any, Optional

from uploadgate.audit.models import UploadAuditEvent
from uploadgate.audit.protocol import AuditFilters
from uploadgate.constants import SUPABASE_TIMEOUT_S
from uploadgate.utils.clock import parse_timestamp, utc_now
from uploadgate.utils.logger import get_logger

logger = get_logger(__name__)

_TABLE_NAME = "upload_events"


class SupabaseBackend:
    """AuditBackend over the ``upload_events`` table of a Supabase project.

    The table has the same columns as the local SQLite log; it is provisioned
    out of band, not by this class.
    """

    def __init__(
        self,
        url: str,
        key: str,
        table_name: str = _TABLE_NAME,
        timeout_s: float = SUPABASE_TIMEOUT_S,
    ) -> None:
        self._url = url
        self._key = key
        self._table_name = table_name
        self._timeout_s = timeout_s
        self._client: Optional[Any] = None

    async def initialize(self) -> None:
        """Connect. On failure the backend stays inert instead of blocking startup."""
        from supabase import create_async_client

        try:
            self._client = await asyncio.wait_for(
                create_async_client(self._url, self._key), timeout=self._timeout_s
            )
        except Exception as exc:
            logger.error(
                "audit_supabase_connect_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            self._client = None
            return
        logger.info("audit_supabase_connected", table=self._table_name)

    async def close(self) -> None:
        self._client = None

    def _table(self) -> Any:
        return self._client.table(self._table_name)  # type: ignore[union-attr]

    async def _run(self, operation: str, query: Any, **context: Any) -> Any:
        """Execute a built query under the timeout. Returns None on any failure."""
        try:
            return await asyncio.wait_for(query.execute(), timeout=self._timeout_s)
        except Exception as exc:
            logger.error(
                "audit_supabase_call_failed",
                operation=operation,
                error=str(exc),
                error_type=type(exc).__name__,
                **context,
            )
            return None

    async def log_event(self, event: UploadAuditEvent) -> None:
        if self._client is None:
            return
        await self._run(
            "insert",
            self._table().insert(_event_to_dict(event)),
            event_id=event.event_id,
        )

    async def query_events(self, filters: AuditFilters) -> list[UploadAuditEvent]:
        if self._client is None:
            return []
        query = self._table().select("*").order("timestamp", desc=True)
        if filters.application_id is not None:
            query = query.eq("application_id", filters.application_id)
        if filters.outcome is not None:
            query = query.eq("outcome", filters.outcome)
        if filters.since is not None:
            query = query.gte("timestamp", filters.since.isoformat())
        if filters.until is not None:
            query = query.lte("timestamp", filters.until.isoformat())
        query = query.range(filters.offset, filters.offset + filters.limit - 1)

        response = await self._run("select", query)
        if response is None:
            return []
        return [_dict_to_event(row) for row in response.data or []]

    async def health_check(self) -> bool:
        if self._client is None:
            return False
        response = await self._run(
            "health", self._table().select("event_id").limit(1)
        )
        return response is not None

    async def prune_old_events(self, retention_days: int = 90) -> int:
        """Returns the number of rows PostgREST echoes back as deleted."""
        if self._client is None:
            return 0
        cutoff = utc_now() - timedelta(days=retention_days)
        response = await self._run(
            "prune",
            self._table().delete().lt("timestamp", cutoff.isoformat()),
            retention_days=retention_days,
        )
        deleted = len(response.data or []) if response is not None else 0
        if deleted:
            logger.info("audit_events_pruned", deleted=deleted, retention_days=retention_days)
        return deleted


def _event_to_dict(event: UploadAuditEvent) -> dict[str, Any]:
    row = asdict(event)
    row["timestamp"] = event.timestamp.isoformat()
    return row


def _dict_to_event(row: dict[str, Any]) -> UploadAuditEvent:
    return UploadAuditEvent(
        event_id=row["event_id"],
        timestamp=parse_timestamp(row.get("timestamp")) or utc_now(),
        application_id=row.get("application_id", ""),
        filename=row.get("filename", ""),
        storage_key=row.get("storage_key", ""),
        size_bytes=int(row.get("size_bytes", 0)),
        content_type=row.get("content_type", ""),
        key_id=row.get("key_id", ""),
        outcome=row.get("outcome", "PUBLISHED"),
        request_id=row.get("request_id"),
        schema_version=row.get("schema_version", 1),
    )
