"""Shared rate limiter for the upload endpoints.

Uses slowapi (Starlette-compatible rate limiting), keyed by client address.
The limit string comes from ``upload.rate_limit`` in config; the lifespan
pushes it in with set_upload_rate_limit() before the app is marked ready.

The Limiter instance is shared between:
  - uploadgate/api/routes.py (route decorators)
  - uploadgate/main.py       (app.state.limiter + SlowAPIMiddleware registration)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from uploadgate.constants import DEFAULT_UPLOAD_RATE_LIMIT

limiter = Limiter(key_func=get_remote_address)

_upload_rate_limit: str = DEFAULT_UPLOAD_RATE_LIMIT


def set_upload_rate_limit(value: str) -> None:
    global _upload_rate_limit
    _upload_rate_limit = value


def upload_rate_limit() -> str:
    """Evaluated by slowapi on every request."""
    return _upload_rate_limit
