"""uploadgate API key registry package.

Public API:
  - KeyRegistry            — authorize(api_key) -> AuthOutcome (fail closed)
  - KeyStore               — backend Protocol (lookup / health_check / close)
  - SQLiteKeyStore         — default backend (aiosqlite)
  - create_key_store()     — backend selection by config + env vars
  - select_authoritative() — deterministic tie-break for multi-record keys
  - create_api_key(), set_key_disabled(), init_key_store() — administration
"""

from __future__ import annotations

from uploadgate.auth.keys import (
    SQLiteKeyStore,
    create_api_key,
    fetch_key_records,
    init_key_store,
    key_fingerprint,
    set_key_disabled,
)
from uploadgate.auth.models import (
    ApiKeyRecord,
    AuthOutcome,
    Authorized,
    Unauthorized,
    UnauthorizedReason,
)
from uploadgate.auth.protocol import KeyStore, select_authoritative
from uploadgate.auth.registry import KeyRegistry

__all__ = [
    "ApiKeyRecord",
    "AuthOutcome",
    "Authorized",
    "Unauthorized",
    "UnauthorizedReason",
    "KeyStore",
    "KeyRegistry",
    "SQLiteKeyStore",
    "select_authoritative",
    "create_api_key",
    "fetch_key_records",
    "init_key_store",
    "key_fingerprint",
    "set_key_disabled",
]
