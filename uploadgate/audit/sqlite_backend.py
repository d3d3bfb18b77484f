"""LocalSQLiteBackend — the default upload audit log, stored with aiosqlite.

One long-lived connection per process, opened by initialize():
  - journal_mode=WAL, so the admin CLI can read while the gateway appends
  - PRAGMA user_version guards the schema; an unknown version refuses startup
  - event_id is UNIQUE and inserts use OR IGNORE, so a retried append is a no-op

run_retention_pruner() is the background task the lifespan starts to trim
events older than audit.retention_days once a day.
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime, timedelta
from typing import Any, Optional

import aiosqlite

from uploadgate.audit.models import UploadAuditEvent
from uploadgate.audit.protocol import AuditFilters
from uploadgate.utils.clock import parse_timestamp, utc_now
from uploadgate.utils.logger import get_logger

logger = get_logger(__name__)

_SCHEMA_VERSION = 1

_COLUMNS = (
    "event_id",
    "timestamp",
    "application_id",
    "filename",
    "storage_key",
    "size_bytes",
    "content_type",
    "key_id",
    "outcome",
    "request_id",
    "schema_version",
)

_CREATE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS upload_events (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id        TEXT NOT NULL UNIQUE,
    timestamp       TEXT NOT NULL,
    application_id  TEXT NOT NULL,
    filename        TEXT NOT NULL,
    storage_key     TEXT NOT NULL,
    size_bytes      INTEGER NOT NULL,
    content_type    TEXT NOT NULL,
    key_id          TEXT NOT NULL,
    outcome         TEXT NOT NULL CHECK(outcome IN ('PUBLISHED', 'UNPUBLISHED')),
    request_id      TEXT,
    schema_version  INTEGER NOT NULL DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_upload_timestamp
    ON upload_events(timestamp DESC);

CREATE INDEX IF NOT EXISTS idx_upload_application_timestamp
    ON upload_events(application_id, timestamp DESC);
"""

_INSERT_SQL = (
    f"INSERT OR IGNORE INTO upload_events ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in _COLUMNS)})"
)

# Hour of day (UTC) at which the retention pruner runs.
_PRUNE_HOUR_UTC = 3
_PRUNE_RETRY_S = 3600


def _event_params(event: UploadAuditEvent) -> tuple[Any, ...]:
    return (
        event.event_id,
        event.timestamp.isoformat(),
        event.application_id,
        event.filename,
        event.storage_key,
        event.size_bytes,
        event.content_type,
        event.key_id,
        event.outcome,
        event.request_id,
        event.schema_version,
    )


def _row_to_event(row: aiosqlite.Row) -> UploadAuditEvent:
    fields = {name: row[name] for name in _COLUMNS}
    fields["timestamp"] = parse_timestamp(fields["timestamp"])
    return UploadAuditEvent(**fields)


class LocalSQLiteBackend:
    """AuditBackend over a local SQLite file (default ~/.uploadgate/audit.db).

    The factory passes UPLOADGATE_AUDIT_DB_PATH or audit.path; tests pass a
    tmp_path file directly.
    """

    def __init__(self, db_path: str = "~/.uploadgate/audit.db") -> None:
        self._db_path: str = os.path.expanduser(db_path)
        self._db: Optional[aiosqlite.Connection] = None

    @property
    def db_path(self) -> str:
        return self._db_path

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Audit database not initialized; call initialize() first")
        return self._db

    async def initialize(self) -> None:
        """Open the connection and create or verify the schema.

        Raises:
            RuntimeError: If PRAGMA user_version is neither 0 (fresh) nor 1.
        """
        os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)

        db = await aiosqlite.connect(self._db_path)
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA journal_mode=WAL;")

        async with db.execute("PRAGMA user_version;") as cursor:
            row = await cursor.fetchone()
        version = row[0] if row else 0

        if version not in (0, _SCHEMA_VERSION):
            await db.close()
            raise RuntimeError(
                f"Unsupported audit database schema version: {version}. "
                f"Move {self._db_path} aside to start a fresh upload audit log."
            )

        if version == 0:
            await db.executescript(_CREATE_SCHEMA_SQL)
            # user_version is set outside executescript(); some builds ignore PRAGMAs there.
            await db.execute(f"PRAGMA user_version = {_SCHEMA_VERSION};")
            await db.commit()

        self._db = db
        logger.info(
            "audit_db_ready",
            db_path=self._db_path,
            created=version == 0,
            schema_version=_SCHEMA_VERSION,
        )

    async def close(self) -> None:
        if self._db is None:
            return
        await self._db.close()
        self._db = None
        logger.debug("audit_db_closed", db_path=self._db_path)

    async def log_event(self, event: UploadAuditEvent) -> None:
        """Append one event. Runs as a background task and never raises."""
        try:
            db = self._conn()
            await db.execute(_INSERT_SQL, _event_params(event))
            await db.commit()
        except Exception as exc:
            logger.error(
                "audit_write_failed",
                event_id=event.event_id,
                storage_key=event.storage_key,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def query_events(self, filters: AuditFilters) -> list[UploadAuditEvent]:
        sql, params = _build_select_sql(filters)
        async with self._conn().execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_event(row) for row in rows]

    async def health_check(self) -> bool:
        if self._db is None:
            return False
        try:
            await self._db.execute("SELECT 1")
        except aiosqlite.Error:
            return False
        return True

    async def prune_old_events(self, retention_days: int = 90) -> int:
        """Delete events strictly older than the cutoff; returns the row count."""
        cutoff = utc_now() - timedelta(days=retention_days)
        db = self._conn()
        cursor = await db.execute(
            "DELETE FROM upload_events WHERE timestamp < ?", (cutoff.isoformat(),)
        )
        await db.commit()
        deleted: int = cursor.rowcount  # type: ignore[assignment]
        if deleted:
            logger.info(
                "audit_events_pruned",
                deleted=deleted,
                retention_days=retention_days,
                cutoff=cutoff.isoformat(),
            )
        return deleted


def _build_select_sql(filters: AuditFilters) -> tuple[str, list[Any]]:
    """SELECT for query_events(). Every value is bound, never interpolated."""
    clauses: list[tuple[str, Any]] = []
    if filters.application_id is not None:
        clauses.append(("application_id = ?", filters.application_id))
    if filters.outcome is not None:
        clauses.append(("outcome = ?", filters.outcome))
    if filters.since is not None:
        clauses.append(("timestamp >= ?", filters.since.isoformat()))
    if filters.until is not None:
        clauses.append(("timestamp <= ?", filters.until.isoformat()))

    sql = "SELECT * FROM upload_events"
    if clauses:
        sql += " WHERE " + " AND ".join(clause for clause, _ in clauses)
    sql += " ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?"
    return sql, [value for _, value in clauses] + [filters.limit, filters.offset]


def _seconds_until(hour: int, now: datetime) -> float:
    next_run = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


async def run_retention_pruner(
    backend: LocalSQLiteBackend,
    retention_days: int = 90,
) -> None:
    """Prune the audit log once a day at 03:00 UTC until cancelled.

    A failed prune is logged and retried an hour later.
    """
    while True:
        try:
            delay = _seconds_until(_PRUNE_HOUR_UTC, utc_now())
            logger.debug("retention_pruner_sleeping", seconds=delay)
            await asyncio.sleep(delay)
            await backend.prune_old_events(retention_days=retention_days)
        except asyncio.CancelledError:
            logger.info("retention_pruner_cancelled")
            raise
        except Exception as exc:
            logger.error(
                "retention_prune_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                retry_in_seconds=_PRUNE_RETRY_S,
            )
            await asyncio.sleep(_PRUNE_RETRY_S)
