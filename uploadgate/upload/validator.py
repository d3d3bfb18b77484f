"""Header validation for upload requests.

Pure and deterministic: no I/O, no mutation. Runs before the key registry is
consulted so malformed requests never cost a lookup.

Content-Disposition grammar (exact):

    attachment;<one or more spaces>filename="<name>"

<name> is every character between the quotes. It must be non-empty and may
not itself contain a double quote; there is no escape handling.
"""

from __future__ import annotations

import re
from typing import Optional

from uploadgate.constants import IMAGE_CONTENT_TYPE_PREFIX
from uploadgate.upload.models import Accepted, Rejected, RejectionReason, ValidationOutcome

_CONTENT_DISPOSITION_RE = re.compile(r'attachment; +filename="(?P<filename>[^"]+)"')


def validate_headers(
    content_type: Optional[str],
    content_disposition: Optional[str],
) -> ValidationOutcome:
    """Validate the two required headers and extract the filename."""
    if not content_type:
        return Rejected(RejectionReason.MISSING_CONTENT_TYPE)
    if not content_type.startswith(IMAGE_CONTENT_TYPE_PREFIX):
        return Rejected(RejectionReason.UNSUPPORTED_MEDIA_TYPE)

    if not content_disposition:
        return Rejected(RejectionReason.MISSING_CONTENT_DISPOSITION)

    match = _CONTENT_DISPOSITION_RE.fullmatch(content_disposition)
    if match is None:
        return Rejected(RejectionReason.INVALID_CONTENT_DISPOSITION)

    return Accepted(match.group("filename"))

