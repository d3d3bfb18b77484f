"""API keys: the SQLite-backed registry and its administrative operations.

A key is issued as ``upk-<ULID>`` and shown to the operator once. keys.db keeps
only its SHA-256 digest next to the tenant grant (application id, optional
path, disabled flag, expiry). The upload path only reads this file; the
writers are create_api_key() and set_key_disabled(), driven by admin.py.

Several records may share a digest. lookup() takes the newest by
(created_at, id), the same order select_authoritative() uses elsewhere.
"""

from __future__ import annotations

import hashlib
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiosqlite

from uploadgate.auth.models import ApiKeyRecord
from uploadgate.constants import API_KEY_PREFIX
from uploadgate.utils.clock import parse_timestamp, utc_now
from uploadgate.utils.logger import get_logger
from uploadgate.utils.ulid import generate_ulid

logger = get_logger(__name__)

#: Used when neither an explicit path nor UPLOADGATE_KEYS_DB_PATH is given.
_DEFAULT_KEYS_DB_PATH: str = str(Path.home() / ".uploadgate" / "keys.db")

_SCHEMA_VERSION = 1

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS api_keys (
    id              TEXT PRIMARY KEY,
    key_digest      TEXT NOT NULL,
    application_id  TEXT NOT NULL,
    path            TEXT,
    disabled        INTEGER NOT NULL DEFAULT 0,
    expires_at      TEXT,
    created_at      TEXT NOT NULL
);
"""

_CREATE_INDEX_SQL = """
CREATE INDEX IF NOT EXISTS idx_keys_digest ON api_keys (key_digest, created_at DESC);
"""

_SELECT_COLUMNS = (
    "id, key_digest, application_id, path, disabled, expires_at, created_at"
)


def key_fingerprint(api_key: str) -> str:
    """Return the SHA-256 hex digest of a plaintext key.

    Keys carry 80 random bits from the ULID, so an unsalted digest is enough
    for lookup and for identifying the key in audit records.
    """
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def _resolve_db_path(db_path: Optional[Path]) -> Path:
    """Explicit argument, then $UPLOADGATE_KEYS_DB_PATH, then the default."""
    if db_path is not None:
        return Path(os.path.expanduser(str(db_path)))
    env_path = os.environ.get("UPLOADGATE_KEYS_DB_PATH")
    if env_path:
        return Path(os.path.expanduser(env_path))
    return Path(_DEFAULT_KEYS_DB_PATH)


def _row_to_record(row: aiosqlite.Row) -> ApiKeyRecord:
    return ApiKeyRecord(
        key_id=row["key_digest"],
        application_id=row["application_id"],
        path=row["path"] or None,
        disabled=bool(row["disabled"]),
        expires_at=parse_timestamp(row["expires_at"]),
        created_at=parse_timestamp(row["created_at"]),
        record_id=row["id"],
    )


async def init_key_store(db_path: Optional[Path] = None) -> Path:
    """Create keys.db if needed, check its version and restrict it to the owner.

    Safe to repeat. Returns the resolved path.

    Raises:
        RuntimeError: keys.db carries a schema version other than 0 or 1.
        OSError: The directory cannot be created or the file chmod-ed.
    """
    path = _resolve_db_path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(str(path)) as db:
        await db.execute("PRAGMA journal_mode=WAL")
        async with db.execute("PRAGMA user_version") as cursor:
            row = await cursor.fetchone()
        current_version = row[0] if row else 0
        if current_version not in (0, _SCHEMA_VERSION):
            raise RuntimeError(
                f"Unsupported key store schema version: {current_version}. "
                f"Expected {_SCHEMA_VERSION}; refusing to open {path}."
            )
        await db.execute(_CREATE_TABLE_SQL)
        await db.execute(_CREATE_INDEX_SQL)
        await db.execute(f"PRAGMA user_version = {_SCHEMA_VERSION}")
        await db.commit()

    # Owner-only regardless of umask.
    os.chmod(path, 0o600)

    logger.debug("key_store_ready", path=str(path))
    return path


# ─── Administrative operations ────────────────────────────────────────────────


async def create_api_key(
    application_id: str,
    path: Optional[str] = None,
    expires_at: Optional[datetime] = None,
    db_path: Optional[Path] = None,
) -> tuple[str, ApiKeyRecord]:
    """Issue a new ``upk-<ULID>`` key granting access to application_id.

    The caller receives the plaintext exactly once; only its digest is stored.

    Returns:
        (plaintext_key, record)

    Raises:
        ValueError: If application_id is empty.
    """
    if not application_id:
        raise ValueError("application_id is required")

    db = _resolve_db_path(db_path)
    await init_key_store(db)

    record_id = generate_ulid()
    plaintext = f"{API_KEY_PREFIX}{generate_ulid()}"
    created_at = utc_now()
    record = ApiKeyRecord(
        key_id=key_fingerprint(plaintext),
        application_id=application_id,
        path=path or None,
        disabled=False,
        expires_at=expires_at,
        created_at=created_at,
        record_id=record_id,
    )

    async with aiosqlite.connect(str(db)) as conn:
        await conn.execute(
            "INSERT INTO api_keys "
            "(id, key_digest, application_id, path, disabled, expires_at, created_at) "
            "VALUES (?, ?, ?, ?, 0, ?, ?)",
            (
                record.record_id,
                record.key_id,
                record.application_id,
                record.path,
                record.expires_at.isoformat() if record.expires_at else None,
                created_at.isoformat(),
            ),
        )
        await conn.commit()

    logger.info(
        "API key created",
        application_id=application_id,
        record_id=record_id,
        has_path=record.path is not None,
        expires_at=record.expires_at.isoformat() if record.expires_at else None,
    )
    return plaintext, record


async def set_key_disabled(
    api_key: str,
    disabled: bool,
    db_path: Optional[Path] = None,
) -> int:
    """Disable (or re-enable) every record stored for api_key.

    Returns:
        Number of records updated (0 if the key is unknown).
    """
    db = _resolve_db_path(db_path)
    await init_key_store(db)
    async with aiosqlite.connect(str(db)) as conn:
        cursor = await conn.execute(
            "UPDATE api_keys SET disabled = ? WHERE key_digest = ?",
            (int(disabled), key_fingerprint(api_key)),
        )
        await conn.commit()
        count: int = cursor.rowcount  # type: ignore[assignment]

    logger.info(
        "API key disabled" if disabled else "API key enabled",
        key_id=key_fingerprint(api_key)[:12],
        records=count,
    )
    return count


async def fetch_key_records(
    api_key: str,
    db_path: Optional[Path] = None,
) -> list[ApiKeyRecord]:
    """Return every record stored for api_key, newest first."""
    db = _resolve_db_path(db_path)
    await init_key_store(db)
    async with aiosqlite.connect(str(db)) as conn:
        conn.row_factory = aiosqlite.Row
        async with conn.execute(
            f"SELECT {_SELECT_COLUMNS} FROM api_keys WHERE key_digest = ? "
            "ORDER BY created_at DESC, id DESC",
            (key_fingerprint(api_key),),
        ) as cursor:
            rows = await cursor.fetchall()
    return [_row_to_record(row) for row in rows]


# ─── KeyStore implementation ──────────────────────────────────────────────────


class SQLiteKeyStore:
    """aiosqlite-backed KeyStore.

    Opens a short-lived connection per lookup; the registry is read-mostly and
    the connection cost is small next to the object-store write that follows.

    Usage:
        store = SQLiteKeyStore(db_path)
        await store.initialize()
        record = await store.lookup("upk-01HZ...")
    """

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self._db_path: Path = _resolve_db_path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        """Create the schema if needed. Raises RuntimeError on a version mismatch."""
        await init_key_store(self._db_path)

    async def lookup(self, api_key: str) -> Optional[ApiKeyRecord]:
        """Return the newest record for api_key, or None.

        Exceptions (missing file, locked database) propagate to the registry.
        """
        async with aiosqlite.connect(str(self._db_path)) as conn:
            conn.row_factory = aiosqlite.Row
            async with conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM api_keys WHERE key_digest = ? "
                "ORDER BY created_at DESC, id DESC LIMIT 1",
                (key_fingerprint(api_key),),
            ) as cursor:
                row = await cursor.fetchone()
        return _row_to_record(row) if row is not None else None

    async def health_check(self) -> bool:
        try:
            async with aiosqlite.connect(str(self._db_path)) as conn:
                await conn.execute("SELECT 1 FROM api_keys LIMIT 1")
            return True
        except Exception:
            return False

    async def close(self) -> None:
        """No-op: connections are per-lookup."""
        logger.debug("key_store_closed", db_path=str(self._db_path))
