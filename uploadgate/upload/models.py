"""Upload pipeline data contracts.

  - UploadRequest      — what the HTTP layer hands the orchestrator
  - ValidationOutcome  — Accepted(filename) | Rejected(reason)
  - UploadStage        — RECEIVED → VALIDATED → AUTHORIZED → STORED → PUBLISHED
  - UploadResult       — what a successful upload returns
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


@dataclass(frozen=True)
class UploadRequest:
    """One upload call. Exists only for the duration of the request."""

    api_key: Optional[str]
    content_type: Optional[str]
    content_disposition: Optional[str]
    body: bytes = field(default=b"", repr=False)
    request_id: Optional[str] = None


class RejectionReason(str, Enum):
    MISSING_CONTENT_TYPE = "missing-content-type"
    UNSUPPORTED_MEDIA_TYPE = "unsupported-media-type"
    MISSING_CONTENT_DISPOSITION = "missing-content-disposition"
    INVALID_CONTENT_DISPOSITION = "invalid-content-disposition"


@dataclass(frozen=True)
class Accepted:
    filename: str


@dataclass(frozen=True)
class Rejected:
    reason: RejectionReason


ValidationOutcome = Union[Accepted, Rejected]


class UploadStage(str, Enum):
    """Linear pipeline states. A failure records the stage it happened in."""

    RECEIVED = "received"
    VALIDATED = "validated"
    AUTHORIZED = "authorized"
    STORED = "stored"
    PUBLISHED = "published"


@dataclass(frozen=True)
class UploadResult:
    filename: str
    size: int
    content_type: str
    storage_key: str
    download_url: str

    def to_dict(self) -> dict:
        """Shape of the ``file`` object in the HTTP success body."""
        return {
            "name": self.filename,
            "size": self.size,
            "type": self.content_type,
            "path": self.storage_key,
            "downloadUrl": self.download_url,
        }
