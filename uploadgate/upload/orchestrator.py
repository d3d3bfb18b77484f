"""UploadOrchestrator — the only component in the upload path with side effects.

Pipeline (strictly sequential, no retries, no speculative work):

    RECEIVED ──validate_headers──▶ VALIDATED ──KeyRegistry.authorize──▶ AUTHORIZED
      ──resolve_storage_key + ObjectStore.write──▶ STORED
      ──ObjectStore.sign_download_url──▶ PUBLISHED

Any stage may terminate the request with an UploadError that records the
stage the pipeline was in when it failed.

Signing failure after a successful write is reported as a 500 even though
the object now exists in the bucket. It is logged as
``upload_stored_but_unpublished`` and audited with outcome UNPUBLISHED.

Audit events are dispatched with asyncio.create_task() once the outcome is
decided; they never alter or delay the result.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Optional

from uploadgate.audit.models import OutcomeType, UploadAuditEvent
from uploadgate.audit.protocol import AuditBackend
from uploadgate.auth.keys import key_fingerprint
from uploadgate.auth.models import Authorized, UnauthorizedReason
from uploadgate.auth.registry import KeyRegistry
from uploadgate.constants import DOWNLOAD_URL_TTL, UPLOAD_SOURCE_TAG
from uploadgate.storage.protocol import ObjectStore
from uploadgate.upload.errors import (
    RequestMalformedError,
    StorageFailureError,
    UnauthorizedError,
    UnsafeStorageKeyError,
)
from uploadgate.upload.models import (
    Rejected,
    RejectionReason,
    UploadRequest,
    UploadResult,
    UploadStage,
)
from uploadgate.upload.paths import resolve_storage_key
from uploadgate.upload.validator import validate_headers
from uploadgate.utils.clock import utc_now
from uploadgate.utils.logger import PerformanceLogger, get_logger
from uploadgate.utils.ulid import generate_ulid

logger = get_logger(__name__)

# (status, error, message) per validation rejection.
_REJECTIONS: dict[RejectionReason, tuple[int, str, Optional[str]]] = {
    RejectionReason.MISSING_CONTENT_TYPE: (
        415,
        "Unsupported media type",
        "Content-Type header is required and must be image/*",
    ),
    RejectionReason.UNSUPPORTED_MEDIA_TYPE: (
        415,
        "Unsupported media type",
        "Content-Type must be image/*",
    ),
    RejectionReason.MISSING_CONTENT_DISPOSITION: (
        400,
        "Missing Content-Disposition header",
        None,
    ),
    RejectionReason.INVALID_CONTENT_DISPOSITION: (
        400,
        "Invalid Content-Disposition header",
        'Expected: attachment; filename="<name>"',
    ),
}


class UploadOrchestrator:
    """Run one upload request through validation, authorization and storage.

    Collaborators are injected and owned by the caller (the FastAPI lifespan
    in production, fixtures in tests). The orchestrator holds no per-request
    state; concurrent handle() calls share nothing but the collaborators.
    """

    def __init__(
        self,
        registry: KeyRegistry,
        store: ObjectStore,
        audit_backend: Optional[AuditBackend] = None,
        *,
        download_url_ttl: timedelta = DOWNLOAD_URL_TTL,
        upload_source: str = UPLOAD_SOURCE_TAG,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._registry = registry
        self._store = store
        self._audit = audit_backend
        self._download_url_ttl = download_url_ttl
        self._upload_source = upload_source
        self._clock = clock
        self._pending_audits: set[asyncio.Task[None]] = set()

    async def handle(self, request: UploadRequest) -> UploadResult:
        """Process one upload.

        Raises:
            RequestMalformedError: Bad Content-Type / Content-Disposition or
                an unsafe filename (400 / 415).
            UnauthorizedError: Missing, unknown, disabled or expired key (401).
            StorageFailureError: Write or sign failure, or an unsafe registry
                path (500).
        """
        # ── RECEIVED → VALIDATED ─────────────────────────────────────────────
        outcome = validate_headers(request.content_type, request.content_disposition)
        if isinstance(outcome, Rejected):
            status, error, message = _REJECTIONS[outcome.reason]
            logger.info("upload_rejected", reason=outcome.reason.value, status=status)
            raise RequestMalformedError(
                UploadStage.RECEIVED,
                outcome.reason.value,
                error,
                message,
                status_code=status,
            )
        filename = outcome.filename
        content_type = request.content_type or ""

        # ── VALIDATED → AUTHORIZED ───────────────────────────────────────────
        auth = await self._registry.authorize(request.api_key)
        if not isinstance(auth, Authorized):
            missing = auth.reason is UnauthorizedReason.KEY_ABSENT
            raise UnauthorizedError(
                UploadStage.VALIDATED,
                auth.reason.value,
                "Missing API key" if missing else "Invalid API key",
            )

        # ── AUTHORIZED → STORED ──────────────────────────────────────────────
        storage_key = self._resolve(auth, filename)
        uploaded_at = self._clock()
        metadata = {
            "originalName": filename,
            "size": str(len(request.body)),
            "uploadedAt": uploaded_at.isoformat(),
            "source": self._upload_source,
        }

        try:
            with PerformanceLogger(
                "object_write", logger, storage_key=storage_key, size=len(request.body)
            ):
                await self._store.write(
                    storage_key,
                    request.body,
                    content_type=content_type,
                    metadata=metadata,
                )
        except Exception as exc:
            raise StorageFailureError(
                UploadStage.AUTHORIZED,
                "write-failed",
                "Failed to upload file",
                str(exc),
            ) from exc

        # ── STORED → PUBLISHED ───────────────────────────────────────────────
        try:
            download_url = await self._store.sign_download_url(
                storage_key, ttl=self._download_url_ttl
            )
        except Exception as exc:
            logger.error(
                "upload_stored_but_unpublished",
                storage_key=storage_key,
                application_id=auth.application_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            self._audit_upload(request, auth, filename, storage_key, uploaded_at, "UNPUBLISHED")
            raise StorageFailureError(
                UploadStage.STORED,
                "sign-failed",
                "Failed to generate download URL",
                str(exc),
            ) from exc

        logger.info(
            "upload_published",
            application_id=auth.application_id,
            storage_key=storage_key,
            size=len(request.body),
            content_type=content_type,
        )
        self._audit_upload(request, auth, filename, storage_key, uploaded_at, "PUBLISHED")

        return UploadResult(
            filename=filename,
            size=len(request.body),
            content_type=content_type,
            storage_key=storage_key,
            download_url=download_url,
        )

    def _resolve(self, auth: Authorized, filename: str) -> str:
        try:
            return resolve_storage_key(auth.application_id, auth.path, filename)
        except UnsafeStorageKeyError as exc:
            if exc.component == "filename":
                logger.info("upload_rejected", reason="unsafe-filename", detail=exc.detail)
                raise RequestMalformedError(
                    UploadStage.AUTHORIZED,
                    "unsafe-filename",
                    "Invalid filename",
                    f"Filename {exc.detail}",
                ) from exc
            logger.error(
                "unsafe_registry_record",
                application_id=auth.application_id,
                component=exc.component,
                detail=exc.detail,
            )
            raise StorageFailureError(
                UploadStage.AUTHORIZED,
                "unsafe-storage-path",
                "Failed to upload file",
                "Storage path rejected",
            ) from exc

    # ── Audit ─────────────────────────────────────────────────────────────────

    def _audit_upload(
        self,
        request: UploadRequest,
        auth: Authorized,
        filename: str,
        storage_key: str,
        uploaded_at: datetime,
        outcome: OutcomeType,
    ) -> None:
        """Fire-and-forget audit append. Never raises, never awaited."""
        if self._audit is None:
            return
        try:
            event = UploadAuditEvent(
                event_id=generate_ulid(),
                timestamp=uploaded_at,
                application_id=auth.application_id,
                filename=filename,
                storage_key=storage_key,
                size_bytes=len(request.body),
                content_type=request.content_type or "",
                key_id=key_fingerprint(request.api_key or ""),
                outcome=outcome,
                request_id=request.request_id,
            )
            task = asyncio.create_task(self._audit.log_event(event))
        except Exception as exc:
            logger.warning(
                "Failed to schedule upload audit event",
                storage_key=storage_key,
                error=str(exc),
            )
            return
        self._pending_audits.add(task)
        task.add_done_callback(self._pending_audits.discard)

    async def drain(self) -> None:
        """Wait for in-flight audit appends. Called at shutdown and in tests."""
        if self._pending_audits:
            await asyncio.gather(*self._pending_audits, return_exceptions=True)
