"""Upload HTTP response builders.

  build_success_response():
      HTTP 200 — ``{"success": true, "file": {...}, "message": ...}``.

  build_error_response():
      HTTP 400 / 401 / 415 / 500 — ``{"error": ..., "message"?: ...}``.
      The body never says why a key was refused (unknown, disabled and
      expired keys all render as "Invalid API key").

Both carry ``X-Upload-Request-ID`` so callers can correlate with server logs.
"""

from __future__ import annotations

from typing import Optional

from fastapi.responses import JSONResponse

from uploadgate.constants import REQUEST_ID_HEADER
from uploadgate.upload.errors import UploadError
from uploadgate.upload.models import UploadResult

SUCCESS_MESSAGE = "File uploaded successfully"


def _with_request_id(response: JSONResponse, request_id: Optional[str]) -> JSONResponse:
    if request_id:
        response.headers[REQUEST_ID_HEADER] = request_id
    return response


def build_success_response(
    result: UploadResult,
    request_id: Optional[str] = None,
) -> JSONResponse:
    response = JSONResponse(
        status_code=200,
        content={
            "success": True,
            "file": result.to_dict(),
            "message": SUCCESS_MESSAGE,
        },
    )
    return _with_request_id(response, request_id)


def build_error_response(
    exc: UploadError,
    request_id: Optional[str] = None,
) -> JSONResponse:
    response = JSONResponse(status_code=exc.status_code, content=exc.to_dict())
    return _with_request_id(response, request_id)
