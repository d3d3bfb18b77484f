"""uploadgate upload pipeline.

Layout:
    models.py       — UploadRequest, ValidationOutcome, UploadStage, UploadResult
    validator.py    — validate_headers() (pure)
    paths.py        — resolve_storage_key() (pure, namespace-hardened)
    errors.py       — UploadError hierarchy rendered by the HTTP layer
    orchestrator.py — UploadOrchestrator (the side-effecting pipeline)
"""

from uploadgate.upload.errors import (
    RequestMalformedError,
    StorageFailureError,
    UnauthorizedError,
    UnsafeStorageKeyError,
    UploadError,
)
from uploadgate.upload.models import (
    Accepted,
    Rejected,
    RejectionReason,
    UploadRequest,
    UploadResult,
    UploadStage,
    ValidationOutcome,
)
from uploadgate.upload.orchestrator import UploadOrchestrator
from uploadgate.upload.paths import resolve_storage_key
from uploadgate.upload.validator import validate_headers

__all__ = [
    "Accepted",
    "Rejected",
    "RejectionReason",
    "RequestMalformedError",
    "StorageFailureError",
    "UnauthorizedError",
    "UnsafeStorageKeyError",
    "UploadError",
    "UploadOrchestrator",
    "UploadRequest",
    "UploadResult",
    "UploadStage",
    "ValidationOutcome",
    "resolve_storage_key",
    "validate_headers",
]
