"""Audit backend interface for upload events.

create_audit_backend() (audit/factory.py) returns one of:
  LocalSQLiteBackend   local file, the default
  SupabaseBackend      when Supabase credentials are configured
  NullAuditBackend     when audit.enabled is false
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from uploadgate.audit.models import UploadAuditEvent
from uploadgate.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AuditFilters:
    """Selection for query_events(). None fields do not constrain the query."""

    application_id: Optional[str] = None
    outcome: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    limit: int = 50
    offset: int = 0


@runtime_checkable
class AuditBackend(Protocol):
    """What the orchestrator, lifespan and admin CLI need from an audit log.

    The orchestrator schedules log_event() as a task and never awaits it on
    the request path, so an implementation must log its own failures.
    """

    async def log_event(self, event: UploadAuditEvent) -> None:
        ...

    async def query_events(self, filters: AuditFilters) -> list[UploadAuditEvent]:
        """Matching events, newest first."""
        ...

    async def health_check(self) -> bool:
        ...

    async def prune_old_events(self, retention_days: int = 90) -> int:
        """Remove events older than retention_days; returns how many went."""
        ...

    async def close(self) -> None:
        ...


class NullAuditBackend:
    """Discards every event."""

    async def log_event(self, event: UploadAuditEvent) -> None:
        logger.debug("audit_event_discarded", event_id=event.event_id)

    async def query_events(self, filters: AuditFilters) -> list[UploadAuditEvent]:
        return []

    async def health_check(self) -> bool:
        return True

    async def prune_old_events(self, retention_days: int = 90) -> int:
        return 0

    async def close(self) -> None:
        pass


assert isinstance(NullAuditBackend(), AuditBackend), "NullAuditBackend drifted from AuditBackend"
