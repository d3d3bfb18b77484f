"""ULID generation for uploadgate.

ULIDs are used as:
  - X-Upload-Request-ID header value and log correlation id
  - event_id of upload audit events
  - primary key and random component of issued API keys (``upk-<ULID>``)

Uses the ``python-ulid`` library; do NOT hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Example::

        request_id = generate_ulid()
        # "01KJ0JRVHYA7KX32VPN5ZSCTMV"
        assert len(request_id) == 26
    """
    return str(ULID())
