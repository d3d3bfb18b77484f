"""UTC clock helpers shared by the registry, the audit log and the key store."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

# Fractional seconds followed by an optional UTC offset, at the end of the string.
_FRACTION = re.compile(r"\.(\d+)(?=([+-]\d{2}:?\d{2})?$)")


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _six_digit_fraction(match: re.Match[str]) -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 string into an aware UTC datetime.

    Naive values are assumed to be UTC. ``None`` and ``""`` return None.
    A trailing ``Z`` is accepted, and fractional seconds of any length are
    padded or cut to microseconds; PostgREST drops trailing zeros, so
    ``.12345`` is a value it really sends.
    """
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    value = _FRACTION.sub(_six_digit_fraction, value, count=1)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
