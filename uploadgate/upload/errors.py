"""Upload pipeline failures.

Every terminal failure is an UploadError carrying the stage it happened in,
a stable machine-readable reason, the HTTP status, and the ``error`` /
``message`` pair rendered into the JSON body.

  RequestMalformedError — caller error in headers or filename (400 / 415)
  UnauthorizedError     — missing or unusable key (401; reason never disclosed)
  StorageFailureError   — object write or URL signing failed (500, no retry)
  UnsafeStorageKeyError — raised by resolve_storage_key(); mapped by the orchestrator
"""

from __future__ import annotations

from typing import Optional

from uploadgate.upload.models import UploadStage


class UploadError(Exception):
    """Base class for terminal upload outcomes."""

    status_code: int = 500

    def __init__(
        self,
        stage: UploadStage,
        reason: str,
        error: str,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message or error)
        self.stage = stage
        self.reason = reason
        self.error = error
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.message:
            body["message"] = self.message
        return body


class RequestMalformedError(UploadError):
    status_code = 400


class UnauthorizedError(UploadError):
    status_code = 401


class StorageFailureError(UploadError):
    status_code = 500


class UnsafeStorageKeyError(ValueError):
    """A storage key component would escape the tenant namespace.

    component is "filename" (from the request) or "application_id" / "path"
    (from the registry record).
    """

    def __init__(self, component: str, value: str, detail: str) -> None:
        super().__init__(f"Unsafe {component} {value!r}: {detail}")
        self.component = component
        self.value = value
        self.detail = detail
