"""Root test configuration for uploadgate.

Every test runs with an isolated environment: Supabase credentials and
config-file overrides are removed, and the key store / audit DB paths point
into tmp_path so nothing touches ~/.uploadgate.

Shared fakes:
  FakeKeyStore       — dict-backed KeyStore; can be told to raise
  RecordingAudit     — AuditBackend that keeps every event in memory
  FailingObjectStore — ObjectStore whose write or sign step raises
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Mapping, Optional

import pytest

from uploadgate.audit.models import UploadAuditEvent
from uploadgate.audit.protocol import AuditFilters
from uploadgate.auth.models import ApiKeyRecord
from uploadgate.auth.registry import KeyRegistry
from uploadgate.storage.memory_store import MemoryObjectStore
from uploadgate.upload.orchestrator import UploadOrchestrator

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

_ISOLATED_ENV_VARS = (
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "UPLOADGATE_CONFIG",
    "UPLOADGATE_PORT",
    "PORT",
    "BUCKET_NAME",
    "MINIO_ENDPOINT",
    "MINIO_ACCESS_KEY",
    "MINIO_SECRET_KEY",
    "UPLOADGATE_STORAGE_BACKEND",
)


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in _ISOLATED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("UPLOADGATE_KEYS_DB_PATH", str(tmp_path / "keys.db"))
    monkeypatch.setenv("UPLOADGATE_AUDIT_DB_PATH", str(tmp_path / "audit.db"))


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Reset the in-memory rate limiter storage between tests."""
    from uploadgate.api.limiter import limiter, set_upload_rate_limit
    from uploadgate.constants import DEFAULT_UPLOAD_RATE_LIMIT

    limiter.reset()
    set_upload_rate_limit(DEFAULT_UPLOAD_RATE_LIMIT)


# ─── Fakes ────────────────────────────────────────────────────────────────────


class FakeKeyStore:
    """KeyStore keyed by plaintext. ``error`` makes every lookup raise it."""

    def __init__(self, records: Optional[dict[str, ApiKeyRecord]] = None) -> None:
        self.records: dict[str, ApiKeyRecord] = dict(records or {})
        self.error: Optional[Exception] = None
        self.lookups: list[str] = []

    async def lookup(self, api_key: str) -> Optional[ApiKeyRecord]:
        self.lookups.append(api_key)
        if self.error is not None:
            raise self.error
        return self.records.get(api_key)

    async def health_check(self) -> bool:
        return self.error is None

    async def close(self) -> None:
        pass


class RecordingAudit:
    def __init__(self) -> None:
        self.events: list[UploadAuditEvent] = []

    async def log_event(self, event: UploadAuditEvent) -> None:
        self.events.append(event)

    async def query_events(self, filters: AuditFilters) -> list[UploadAuditEvent]:
        return list(reversed(self.events))[filters.offset : filters.offset + filters.limit]

    async def health_check(self) -> bool:
        return True

    async def prune_old_events(self, retention_days: int = 90) -> int:
        return 0

    async def close(self) -> None:
        pass


class FailingObjectStore(MemoryObjectStore):
    """MemoryObjectStore that fails at the chosen step."""

    def __init__(self, fail_on: str, message: str = "bucket unreachable") -> None:
        super().__init__(bucket="uploads")
        self.fail_on = fail_on
        self.message = message

    async def write(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str,
        metadata: Mapping[str, str],
    ) -> None:
        if self.fail_on == "write":
            raise ConnectionError(self.message)
        await super().write(key, data, content_type=content_type, metadata=metadata)

    async def sign_download_url(self, key: str, *, ttl: timedelta) -> str:
        if self.fail_on == "sign":
            raise RuntimeError(self.message)
        return await super().sign_download_url(key, ttl=ttl)


# ─── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def key_store() -> FakeKeyStore:
    return FakeKeyStore(
        {
            "k1": ApiKeyRecord(key_id="d1", application_id="app1"),
            "k2": ApiKeyRecord(key_id="d2", application_id="app2", path="invoices"),
            "k-disabled": ApiKeyRecord(key_id="d3", application_id="app1", disabled=True),
            "k-expired": ApiKeyRecord(
                key_id="d4",
                application_id="app1",
                expires_at=FIXED_NOW - timedelta(seconds=1),
            ),
        }
    )


@pytest.fixture
def registry(key_store: FakeKeyStore) -> KeyRegistry:
    return KeyRegistry(key_store, clock=lambda: FIXED_NOW)


@pytest.fixture
def object_store() -> MemoryObjectStore:
    return MemoryObjectStore(bucket="uploads", public_base_url="http://test/objects")


@pytest.fixture
def audit() -> RecordingAudit:
    return RecordingAudit()


@pytest.fixture
def orchestrator(
    registry: KeyRegistry,
    object_store: MemoryObjectStore,
    audit: RecordingAudit,
) -> UploadOrchestrator:
    return UploadOrchestrator(registry, object_store, audit, clock=lambda: FIXED_NOW)
