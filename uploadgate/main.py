"""uploadgate ASGI application.

``create_app()`` builds an app whose lifespan wires the collaborators onto
``app.state`` in dependency order:

    config -> registry -> object_store -> audit_backend -> orchestrator

and only then flips ``app.state.ready``. Teardown runs the other way round.
``app`` at module level is what ``uvicorn uploadgate.main:app`` serves; use
``uploadgate`` (uploadgate/run.py) to get the hardened server settings.
"""

from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from uploadgate import __version__
from uploadgate.api.limiter import limiter, set_upload_rate_limit
from uploadgate.api.objects import router as objects_router
from uploadgate.api.routes import router as upload_router
from uploadgate.audit.factory import create_audit_backend
from uploadgate.audit.sqlite_backend import LocalSQLiteBackend, run_retention_pruner
from uploadgate.auth.factory import create_key_store
from uploadgate.auth.registry import KeyRegistry
from uploadgate.config import load_config
from uploadgate.middleware import BodySizeLimitMiddleware
from uploadgate.storage.factory import create_object_store
from uploadgate.upload.orchestrator import UploadOrchestrator
from uploadgate.utils.logger import configure_logging, get_logger


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


DEBUG = _env_flag("DEBUG", "false")

configure_logging(
    log_level=os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO"),
    json_output=_env_flag("JSON_LOGS", "true"),
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the upload pipeline, serve, then tear it down.

    A failure while building (SystemExit from config, RuntimeError from a
    schema check, a missing bucket) escapes before ``ready`` is set.
    """
    config = load_config()
    app.state.config = config
    set_upload_rate_limit(config.upload.rate_limit)
    logger.info(
        "uploadgate_starting",
        version=__version__,
        storage_backend=config.storage.backend,
        bucket=config.storage.bucket,
        registry_backend=config.registry.backend,
        audit_enabled=config.audit.enabled,
    )

    key_store = await create_key_store(config)
    app.state.registry = KeyRegistry(key_store)

    object_store = await create_object_store(config)
    app.state.object_store = object_store

    audit_backend = await create_audit_backend(config)
    app.state.audit_backend = audit_backend

    pruner: Optional[asyncio.Task[None]] = None
    if isinstance(audit_backend, LocalSQLiteBackend):
        pruner = asyncio.create_task(
            run_retention_pruner(audit_backend, config.audit.retention_days)
        )

    orchestrator = UploadOrchestrator(
        app.state.registry,
        object_store,
        audit_backend,
        download_url_ttl=config.storage.download_url_ttl,
        upload_source=config.upload.source_tag,
    )
    app.state.orchestrator = orchestrator

    app.state.ready = True
    logger.info("uploadgate_ready", host=config.server.host, port=config.server.port)

    try:
        yield
    finally:
        app.state.ready = False

        if pruner is not None:
            pruner.cancel()
            with suppress(asyncio.CancelledError):
                await pruner

        await orchestrator.drain()
        await audit_backend.close()
        for name, resource in (("object_store", object_store), ("key_store", key_store)):
            try:
                await resource.close()
            except Exception as exc:
                logger.warning("shutdown_close_failed", resource=name, error=str(exc))

        logger.info("uploadgate_stopped")


async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
    logger.warning(
        "http_error",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_error",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app() -> FastAPI:
    """A fresh application instance; tests build one per case."""
    debug = _env_flag("DEBUG", "false")
    application = FastAPI(
        title="uploadgate",
        description="API-key gated image upload gateway",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if debug else None,
        redoc_url="/redoc" if debug else None,
        openapi_url="/openapi.json" if debug else None,
    )
    application.state.ready = False
    application.state.limiter = limiter

    # Starlette wraps in reverse: SlowAPIMiddleware sees the request first.
    application.add_middleware(BodySizeLimitMiddleware)
    application.add_middleware(SlowAPIMiddleware)

    application.include_router(upload_router)
    application.include_router(objects_router)

    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    application.add_exception_handler(HTTPException, _http_error)  # type: ignore[arg-type]
    application.add_exception_handler(Exception, _unhandled_error)
    return application


app = create_app()
