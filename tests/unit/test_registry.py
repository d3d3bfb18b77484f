"""Unit tests for uploadgate/auth/registry.py and select_authoritative().

KeyRegistry contract:
  - absent key → KEY_ABSENT, and the store is never consulted
  - unknown / disabled / expired → Unauthorized with the matching reason
  - disabled is reported before expired
  - expiry is strict: expires_at == now is still valid
  - store exceptions fail closed as KEY_NOT_FOUND
  - an empty registry path is reported as None
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import FIXED_NOW, FakeKeyStore
from uploadgate.auth.models import ApiKeyRecord, Authorized, Unauthorized, UnauthorizedReason
from uploadgate.auth.protocol import KeyStore, select_authoritative
from uploadgate.auth.registry import KeyRegistry


def _registry(records: dict[str, ApiKeyRecord]) -> tuple[KeyRegistry, FakeKeyStore]:
    store = FakeKeyStore(records)
    return KeyRegistry(store, clock=lambda: FIXED_NOW), store


class TestAuthorize:
    @pytest.mark.parametrize("api_key", [None, ""])
    async def test_absent_key_skips_lookup(self, api_key) -> None:
        registry, store = _registry({})
        outcome = await registry.authorize(api_key)
        assert outcome == Unauthorized(UnauthorizedReason.KEY_ABSENT)
        assert store.lookups == []

    async def test_unknown_key(self, registry: KeyRegistry) -> None:
        outcome = await registry.authorize("nope")
        assert outcome == Unauthorized(UnauthorizedReason.KEY_NOT_FOUND)

    async def test_valid_key_without_path(self, registry: KeyRegistry) -> None:
        assert await registry.authorize("k1") == Authorized("app1", None)

    async def test_valid_key_with_path(self, registry: KeyRegistry) -> None:
        assert await registry.authorize("k2") == Authorized("app2", "invoices")

    async def test_disabled_key(self, registry: KeyRegistry) -> None:
        outcome = await registry.authorize("k-disabled")
        assert outcome == Unauthorized(UnauthorizedReason.KEY_DISABLED)

    async def test_expired_key(self, registry: KeyRegistry) -> None:
        outcome = await registry.authorize("k-expired")
        assert outcome == Unauthorized(UnauthorizedReason.KEY_EXPIRED)

    async def test_disabled_reported_before_expired(self) -> None:
        registry, _ = _registry(
            {
                "k": ApiKeyRecord(
                    key_id="d",
                    application_id="app1",
                    disabled=True,
                    expires_at=FIXED_NOW - timedelta(days=1),
                )
            }
        )
        outcome = await registry.authorize("k")
        assert outcome == Unauthorized(UnauthorizedReason.KEY_DISABLED)

    async def test_expiry_equal_to_now_is_valid(self) -> None:
        registry, _ = _registry(
            {"k": ApiKeyRecord(key_id="d", application_id="app1", expires_at=FIXED_NOW)}
        )
        assert await registry.authorize("k") == Authorized("app1", None)

    async def test_future_expiry_is_valid(self) -> None:
        registry, _ = _registry(
            {
                "k": ApiKeyRecord(
                    key_id="d",
                    application_id="app1",
                    expires_at=FIXED_NOW + timedelta(minutes=1),
                )
            }
        )
        assert await registry.authorize("k") == Authorized("app1", None)

    async def test_empty_path_reported_as_none(self) -> None:
        registry, _ = _registry({"k": ApiKeyRecord(key_id="d", application_id="app1", path="")})
        assert await registry.authorize("k") == Authorized("app1", None)

    async def test_store_error_fails_closed(self, key_store: FakeKeyStore) -> None:
        key_store.error = ConnectionError("registry unreachable")
        registry = KeyRegistry(key_store, clock=lambda: FIXED_NOW)
        outcome = await registry.authorize("k1")
        assert outcome == Unauthorized(UnauthorizedReason.KEY_NOT_FOUND)

    async def test_clock_is_read_per_call(self) -> None:
        """A key that expires between two calls is rejected on the second."""
        now = [FIXED_NOW - timedelta(seconds=1)]
        store = FakeKeyStore(
            {"k": ApiKeyRecord(key_id="d", application_id="app1", expires_at=FIXED_NOW)}
        )
        registry = KeyRegistry(store, clock=lambda: now[0])

        assert isinstance(await registry.authorize("k"), Authorized)
        now[0] = FIXED_NOW + timedelta(seconds=1)
        assert await registry.authorize("k") == Unauthorized(UnauthorizedReason.KEY_EXPIRED)

    def test_fake_store_satisfies_protocol(self, key_store: FakeKeyStore) -> None:
        assert isinstance(key_store, KeyStore)


class TestSelectAuthoritative:
    def _record(self, record_id: str, created_at, **kwargs) -> ApiKeyRecord:
        return ApiKeyRecord(
            key_id="d",
            application_id=kwargs.pop("application_id", "app1"),
            created_at=created_at,
            record_id=record_id,
            **kwargs,
        )

    def test_empty_returns_none(self) -> None:
        assert select_authoritative([]) is None

    def test_newest_created_at_wins(self) -> None:
        old = self._record("01A", FIXED_NOW - timedelta(days=2), application_id="old")
        new = self._record("01B", FIXED_NOW, application_id="new", disabled=True)
        assert select_authoritative([new, old]) is new
        assert select_authoritative([old, new]) is new

    def test_tie_broken_by_record_id(self) -> None:
        a = self._record("01HZA", FIXED_NOW, application_id="a")
        b = self._record("01HZB", FIXED_NOW, application_id="b")
        assert select_authoritative([b, a]) is b
        assert select_authoritative([a, b]) is b

    def test_missing_created_at_sorts_oldest(self) -> None:
        undated = self._record("01Z", None, application_id="undated")
        dated = self._record("01A", datetime(2000, 1, 1, tzinfo=timezone.utc))
        assert select_authoritative([undated, dated]) is dated
