"""FastAPI dependencies shared by the upload routers."""

from __future__ import annotations

from fastapi import HTTPException, Request

from uploadgate.upload.orchestrator import UploadOrchestrator


async def require_ready(request: Request) -> None:
    """Raise HTTP 503 until the lifespan has set app.state.ready.

    Every POST route consumes this dependency. GET liveness does not.
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail="uploadgate is starting up",
        )


def get_orchestrator(request: Request) -> UploadOrchestrator:
    return request.app.state.orchestrator
