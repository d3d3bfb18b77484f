"""Key store factory — registry backend selection and initialization.

Backend selection:
  1. registry.backend == "supabase" and SUPABASE_URL + SUPABASE_KEY both set
     → SupabaseKeyStore
  2. Otherwise → SQLiteKeyStore at UPLOADGATE_KEYS_DB_PATH / registry.path

A "supabase" backend without credentials falls back to SQLite with a warning,
mirroring the audit backend factory.
"""

from __future__ import annotations

import os
from pathlib import Path

from uploadgate.auth.protocol import KeyStore
from uploadgate.config import Config
from uploadgate.utils.logger import get_logger

logger = get_logger(__name__)

_ENV_SUPABASE_URL = "SUPABASE_URL"
_ENV_SUPABASE_KEY = "SUPABASE_KEY"


async def create_key_store(config: Config) -> KeyStore:
    """Create and initialize the configured KeyStore.

    Raises:
        RuntimeError: If the SQLite key store has an incompatible schema version.
                      Propagated to the FastAPI lifespan → startup refused.
    """
    supabase_url = os.getenv(_ENV_SUPABASE_URL)
    supabase_key = os.getenv(_ENV_SUPABASE_KEY)

    if config.registry.backend == "supabase":
        if supabase_url and supabase_key:
            return await _create_supabase_store(supabase_url, supabase_key)
        logger.warning(
            "registry_backend_fallback",
            requested="supabase",
            reason="SUPABASE_URL / SUPABASE_KEY not set",
        )
    return await _create_sqlite_store(config.registry.path)


async def _create_supabase_store(url: str, key: str) -> KeyStore:
    from uploadgate.auth.supabase_store import SupabaseKeyStore

    store = SupabaseKeyStore(url=url, key=key)
    await store.initialize()
    logger.info(
        "key_store_selected",
        backend="SupabaseKeyStore",
        # Host only; the service key is never logged.
        supabase_host=url.split("//")[-1].split(".")[0] if "//" in url else "unknown",
    )
    return store


async def _create_sqlite_store(db_path: str) -> KeyStore:
    from uploadgate.auth.keys import SQLiteKeyStore

    store = SQLiteKeyStore(Path(os.path.expanduser(db_path)))
    await store.initialize()
    logger.info("key_store_selected", backend="SQLiteKeyStore", db_path=str(store.db_path))
    return store
