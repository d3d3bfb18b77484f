"""Upload body cap, applied before routing.

An oversized upload gets 413 without the orchestrator running, so neither
the registry nor the object store is touched for it. A declared
Content-Length is judged without reading the body; a body without one is
read up to the cap and then handed on through ``request._body``.
"""

from __future__ import annotations

from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from uploadgate.constants import MAX_UPLOAD_BODY_BYTES
from uploadgate.utils.logger import get_logger

logger = get_logger(__name__)


def _too_large(limit: int) -> JSONResponse:
    return JSONResponse(
        status_code=413,
        content={
            "error": "Payload too large",
            "message": f"Request body exceeds the {limit} byte upload limit",
        },
    )


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject request bodies larger than ``upload.max_body_bytes``.

    Until the lifespan has put a config on ``app.state``, ``max_bytes`` is
    the cap. A body of exactly the cap is accepted.
    """

    def __init__(self, app: ASGIApp, max_bytes: int = MAX_UPLOAD_BODY_BYTES) -> None:
        super().__init__(app)
        self._max_bytes = max_bytes

    def _limit(self, request: Request) -> int:
        config = getattr(request.app.state, "config", None)
        return (config.upload.max_body_bytes if config else None) or self._max_bytes

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        limit = self._limit(request)
        declared = request.headers.get("content-length")
        rejection = (
            self._check_declared(request, declared, limit)
            if declared is not None
            else await self._buffer_stream(request, limit)
        )
        if rejection is not None:
            return rejection
        return await call_next(request)

    def _check_declared(
        self, request: Request, declared: str, limit: int
    ) -> Optional[Response]:
        try:
            size = int(declared)
        except ValueError:
            logger.warning("content_length_invalid", value=declared, path=request.url.path)
            return JSONResponse(status_code=400, content={"error": "Invalid Content-Length header"})
        if size > limit:
            logger.warning("upload_too_large", declared=size, limit=limit, path=request.url.path)
            return _too_large(limit)
        return None

    async def _buffer_stream(self, request: Request, limit: int) -> Optional[Response]:
        received = bytearray()
        async for chunk in request.stream():
            received.extend(chunk)
            if len(received) > limit:
                logger.warning(
                    "upload_too_large", streamed=len(received), limit=limit, path=request.url.path
                )
                return _too_large(limit)
        request._body = bytes(received)  # type: ignore[attr-defined]
        return None
