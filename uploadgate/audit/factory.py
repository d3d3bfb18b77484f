"""Pick and initialize the audit backend for the running gateway.

  audit.enabled false                 -> NullAuditBackend
  SUPABASE_URL and SUPABASE_KEY set   -> SupabaseBackend
  otherwise                           -> LocalSQLiteBackend at
                                         UPLOADGATE_AUDIT_DB_PATH or audit.path

A RuntimeError from LocalSQLiteBackend.initialize() (unknown schema version)
is left to propagate so the lifespan aborts startup.
"""

from __future__ import annotations

import os
from urllib.parse import urlsplit

from uploadgate.audit.protocol import AuditBackend, NullAuditBackend
from uploadgate.config import Config
from uploadgate.utils.logger import get_logger

logger = get_logger(__name__)

_ENV_SUPABASE_URL = "SUPABASE_URL"
_ENV_SUPABASE_KEY = "SUPABASE_KEY"
_ENV_AUDIT_DB_PATH = "UPLOADGATE_AUDIT_DB_PATH"


async def create_audit_backend(config: Config) -> AuditBackend:
    backend: AuditBackend
    if not config.audit.enabled:
        backend = NullAuditBackend()
        logger.info("audit_backend_selected", backend="null")
        return backend

    supabase_url = os.getenv(_ENV_SUPABASE_URL)
    supabase_key = os.getenv(_ENV_SUPABASE_KEY)
    if supabase_url and supabase_key:
        from uploadgate.audit.supabase_backend import SupabaseBackend

        backend = SupabaseBackend(url=supabase_url, key=supabase_key)
        await backend.initialize()
        # Host only; the service key is never logged.
        logger.info(
            "audit_backend_selected",
            backend="supabase",
            host=urlsplit(supabase_url).hostname or "unknown",
        )
        return backend

    from uploadgate.audit.sqlite_backend import LocalSQLiteBackend

    sqlite_backend = LocalSQLiteBackend(db_path=os.getenv(_ENV_AUDIT_DB_PATH, config.audit.path))
    await sqlite_backend.initialize()
    logger.info("audit_backend_selected", backend="sqlite", db_path=sqlite_backend.db_path)
    return sqlite_backend
