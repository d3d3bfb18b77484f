"""Shared constants for uploadgate.

All size limits, durations and fixed strings used across modules are defined
here. No magic numbers in other modules: import from here.
"""

from datetime import timedelta

# ─── Request Size Limits ─────────────────────────────────────────────────────

# Maximum accepted upload body. HTTP 413 is returned by BodySizeLimitMiddleware
# before the upload handler runs.
MAX_UPLOAD_BODY_BYTES: int = 10 * 1024 * 1024  # 10 MB = 10,485,760 bytes

# ─── Storage ─────────────────────────────────────────────────────────────────

# Every object lives under this prefix, then the tenant's application id.
STORAGE_KEY_ROOT: str = "applications"

# Lifetime of the signed download URL returned on success.
DOWNLOAD_URL_TTL: timedelta = timedelta(days=7)

# S3 v4 presigned URLs cannot outlive 7 days; configured TTLs are capped here.
MAX_DOWNLOAD_URL_TTL: timedelta = timedelta(days=7)

# Value of the ``source`` metadata entry attached to every stored object.
UPLOAD_SOURCE_TAG: str = "secure-upload"

# Only content types starting with this literal prefix are accepted.
IMAGE_CONTENT_TYPE_PREFIX: str = "image/"

# ─── API Keys ────────────────────────────────────────────────────────────────

# Issued keys look like ``upk-<26-char ULID>``.
API_KEY_PREFIX: str = "upk-"

# ─── HTTP ────────────────────────────────────────────────────────────────────

REQUEST_ID_HEADER: str = "X-Upload-Request-ID"

# Per-client cap on POST uploads (slowapi limit string).
DEFAULT_UPLOAD_RATE_LIMIT: str = "120/minute"

# ─── Collaborator timeouts ───────────────────────────────────────────────────

# All Supabase operations are wrapped in asyncio.wait_for(timeout=...).
SUPABASE_TIMEOUT_S: float = 5.0
