"""uploadgate audit backend package.

    from uploadgate.audit import UploadAuditEvent, AuditBackend, AuditFilters

Layout:
    models.py           — UploadAuditEvent + OutcomeType
    protocol.py         — AuditBackend Protocol + AuditFilters + NullAuditBackend
    sqlite_backend.py   — LocalSQLiteBackend (aiosqlite, WAL mode, version guard)
    supabase_backend.py — SupabaseBackend (async client, 5s timeout, exception swallowing)
    factory.py          — create_audit_backend() — backend selection
"""

from uploadgate.audit.models import OutcomeType, UploadAuditEvent
from uploadgate.audit.protocol import AuditBackend, AuditFilters, NullAuditBackend

__all__ = [
    "OutcomeType",
    "UploadAuditEvent",
    "AuditFilters",
    "AuditBackend",
    "NullAuditBackend",
]
