"""Unit tests for the Supabase-backed registry and audit log.

The supabase AsyncClient is replaced by a fluent MagicMock chain, so these
tests never reach the network.

  SupabaseKeyStore — errors propagate (registry fails closed), several rows
                     are reduced with select_authoritative()
  SupabaseBackend  — every method swallows errors and returns a safe default
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import FIXED_NOW
from uploadgate.audit.models import UploadAuditEvent
from uploadgate.audit.protocol import AuditBackend, AuditFilters
from uploadgate.audit.supabase_backend import SupabaseBackend, _dict_to_event, _event_to_dict
from uploadgate.auth.keys import key_fingerprint
from uploadgate.auth.protocol import KeyStore
from uploadgate.auth.supabase_store import SupabaseKeyStore

# ─── Helpers ──────────────────────────────────────────────────────────────────


def _build_client(data: Optional[list[Any]] = None, error: Optional[Exception] = None) -> MagicMock:
    """Client whose table(...) returns a fluent chain ending in execute()."""
    response = MagicMock()
    response.data = data or []
    execute = AsyncMock(side_effect=error) if error else AsyncMock(return_value=response)

    chain = MagicMock()
    for method in ("select", "insert", "delete", "order", "limit", "range", "eq", "gte", "lte", "lt"):
        getattr(chain, method).return_value = chain
    chain.execute = execute

    client = MagicMock()
    client.table.return_value = chain
    return client


def _event() -> UploadAuditEvent:
    return UploadAuditEvent(
        event_id="01EVENT",
        timestamp=FIXED_NOW,
        application_id="app1",
        filename="cat.png",
        storage_key="applications/app1/cat.png",
        size_bytes=3,
        content_type="image/png",
        key_id="f" * 64,
    )


# ─── SupabaseKeyStore ─────────────────────────────────────────────────────────


class TestSupabaseKeyStore:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(SupabaseKeyStore(url="https://x.supabase.co", key="k"), KeyStore)

    async def test_lookup_requires_initialize(self) -> None:
        store = SupabaseKeyStore(url="https://x.supabase.co", key="k")
        with pytest.raises(RuntimeError, match="not initialized"):
            await store.lookup("upk-1")

    async def test_lookup_queries_by_digest(self) -> None:
        client = _build_client(
            [{"id": "01A", "key_digest": "d", "application_id": "app1", "path": "",
              "disabled": False, "expires_at": None, "created_at": "2026-01-01T00:00:00Z"}]
        )
        store = SupabaseKeyStore(url="https://x.supabase.co", key="k", client=client)

        record = await store.lookup("upk-1")

        chain = client.table.return_value
        chain.eq.assert_called_once_with("key_digest", key_fingerprint("upk-1"))
        assert record is not None
        assert record.application_id == "app1"
        assert record.path is None

    async def test_several_rows_reduced_to_newest(self) -> None:
        rows = [
            {"id": "01A", "key_digest": "d", "application_id": "old",
             "created_at": "2025-01-01T00:00:00Z"},
            {"id": "01B", "key_digest": "d", "application_id": "new",
             "created_at": "2026-01-01T00:00:00Z", "disabled": True},
        ]
        store = SupabaseKeyStore(url="https://x", key="k", client=_build_client(rows))
        record = await store.lookup("upk-1")
        assert record is not None
        assert record.application_id == "new"
        assert record.disabled is True

    async def test_no_rows_returns_none(self) -> None:
        store = SupabaseKeyStore(url="https://x", key="k", client=_build_client([]))
        assert await store.lookup("upk-1") is None

    async def test_errors_propagate(self) -> None:
        client = _build_client(error=ConnectionError("down"))
        store = SupabaseKeyStore(url="https://x", key="k", client=client)
        with pytest.raises(ConnectionError):
            await store.lookup("upk-1")

    async def test_timeout_propagates(self) -> None:
        async def _slow() -> None:
            await asyncio.sleep(1)

        client = _build_client()
        client.table.return_value.execute = _slow
        store = SupabaseKeyStore(url="https://x", key="k", timeout_s=0.01, client=client)
        with pytest.raises(asyncio.TimeoutError):
            await store.lookup("upk-1")

    async def test_health_check(self) -> None:
        store = SupabaseKeyStore(url="https://x", key="k")
        assert await store.health_check() is False
        store = SupabaseKeyStore(url="https://x", key="k", client=_build_client())
        assert await store.health_check() is True


# ─── SupabaseBackend (audit) ──────────────────────────────────────────────────


class TestSupabaseBackend:
    def _backend(self, client: Optional[MagicMock]) -> SupabaseBackend:
        backend = SupabaseBackend(url="https://x.supabase.co", key="k")
        backend._client = client
        return backend

    def test_satisfies_protocol(self) -> None:
        assert isinstance(SupabaseBackend(url="https://x", key="k"), AuditBackend)

    async def test_no_client_returns_safe_defaults(self) -> None:
        backend = self._backend(None)
        assert await backend.log_event(_event()) is None
        assert await backend.query_events(AuditFilters()) == []
        assert await backend.health_check() is False
        assert await backend.prune_old_events() == 0

    async def test_log_event_inserts_row(self) -> None:
        client = _build_client()
        await self._backend(client).log_event(_event())
        client.table.return_value.insert.assert_called_once_with(_event_to_dict(_event()))

    async def test_errors_swallowed(self) -> None:
        backend = self._backend(_build_client(error=ConnectionError("down")))
        assert await backend.log_event(_event()) is None
        assert await backend.query_events(AuditFilters()) == []
        assert await backend.health_check() is False
        assert await backend.prune_old_events() == 0

    async def test_query_applies_filters_and_range(self) -> None:
        client = _build_client([_event_to_dict(_event())])
        events = await self._backend(client).query_events(
            AuditFilters(application_id="app1", outcome="PUBLISHED", limit=10, offset=5)
        )
        chain = client.table.return_value
        chain.eq.assert_any_call("application_id", "app1")
        chain.eq.assert_any_call("outcome", "PUBLISHED")
        chain.range.assert_called_once_with(5, 14)
        assert [e.event_id for e in events] == ["01EVENT"]

    def test_serialisation_round_trip(self) -> None:
        assert _dict_to_event(_event_to_dict(_event())) == _event()
