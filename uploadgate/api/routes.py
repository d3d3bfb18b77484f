"""Upload routes.

    GET  /  and  GET  /secureUpload  → 200, empty body (liveness)
    POST /  and  POST /secureUpload  → UploadOrchestrator.handle()

The POST handler reads the whole body (already capped by
BodySizeLimitMiddleware), builds an UploadRequest and renders the outcome.
It makes no decisions of its own.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from uploadgate.api.dependencies import get_orchestrator, require_ready
from uploadgate.api.limiter import limiter, upload_rate_limit
from uploadgate.api.responses import build_error_response, build_success_response
from uploadgate.upload.errors import UploadError
from uploadgate.upload.models import UploadRequest
from uploadgate.upload.orchestrator import UploadOrchestrator
from uploadgate.utils.logger import clear_request_id, get_logger, set_request_id
from uploadgate.utils.ulid import generate_ulid

logger = get_logger(__name__)

router = APIRouter(tags=["upload"])


@router.get("/")
@router.get("/secureUpload")
async def liveness() -> Response:
    return Response(status_code=200)


@router.post("/", dependencies=[Depends(require_ready)])
@router.post("/secureUpload", dependencies=[Depends(require_ready)])
@limiter.limit(upload_rate_limit)
async def secure_upload(
    request: Request,
    key: Optional[str] = Query(None),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    request_id = generate_ulid()
    set_request_id(request_id)
    try:
        upload = UploadRequest(
            api_key=key,
            content_type=request.headers.get("content-type"),
            content_disposition=request.headers.get("content-disposition"),
            body=await request.body(),
            request_id=request_id,
        )
        logger.debug(
            "upload_received",
            path=request.url.path,
            size=len(upload.body),
            content_type=upload.content_type,
        )
        try:
            result = await orchestrator.handle(upload)
        except UploadError as exc:
            logger.info(
                "upload_failed",
                stage=exc.stage.value,
                reason=exc.reason,
                status_code=exc.status_code,
            )
            return build_error_response(exc, request_id)
        return build_success_response(result, request_id)
    finally:
        clear_request_id()
