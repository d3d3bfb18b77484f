"""UploadAuditEvent dataclass and type aliases for the upload audit log.

One event is appended per upload that reached the object store. The API key
is recorded only as its SHA-256 fingerprint (the registry's lookup column),
never in plaintext.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional

# ─── Type Aliases ─────────────────────────────────────────────────────────────

OutcomeType = Literal["PUBLISHED", "UNPUBLISHED"]
"""PUBLISHED: stored and a download URL was issued.
UNPUBLISHED: stored, but URL signing failed and the caller got a 500."""


# ─── UploadAuditEvent ─────────────────────────────────────────────────────────


@dataclass
class UploadAuditEvent:
    """Audit record for an object written by the upload pipeline.

    schema_version=1 — increment on breaking schema changes.

    Usage at call sites:
        asyncio.create_task(backend.log_event(event))  # fire-and-forget ONLY
    """

    event_id: str
    """ULID-format unique identifier for this event."""
    timestamp: datetime
    """UTC datetime of the write."""
    application_id: str
    filename: str
    storage_key: str
    size_bytes: int
    content_type: str
    key_id: str
    """SHA-256 fingerprint of the API key used."""
    outcome: OutcomeType = "PUBLISHED"
    request_id: Optional[str] = None
    schema_version: int = 1
