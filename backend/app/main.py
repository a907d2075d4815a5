"""
Tubely API - FastAPI Application Entry Point.

This module initializes the FastAPI application for the Tubely media backend:
CORS middleware, request logging, the upload size guard, error handlers, the
/assets static mount for thumbnails, and the v1 routers. The lifespan handler
configures logging, connects MongoDB, prepares the assets directory and builds
the shared storage service.

Tubely accepts video uploads for existing video records and:
- validates the declared content type before touching disk
- stages the upload locally and classifies its aspect ratio with ffprobe
- remuxes it with ffmpeg so playback can start before download completes
- stores it in S3 under an aspect-ratio prefix and records the reference
- serves short-lived presigned URLs whenever a record is read
"""

import logging
import time

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import uvicorn

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.datastructures import Headers
from starlette.requests import ClientDisconnect
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.api.v1 import api_router
from app.config import get_settings
from app.core.database import close_db, get_db_client, init_db
from app.core.exceptions import TubelyError, UploadTooLarge
from app.services.storage_service import StorageService
from app.utils.assets import ASSETS_URL_PREFIX, ensure_assets_dir
from app.utils.logger import setup_logging


logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
UPLOAD_PATH_PREFIX = f"{API_PREFIX}/upload/"


# =============================================================================
# Configuration Loading
# =============================================================================

settings = get_settings()


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Startup and shutdown.

    Startup:
    1. Configure logging (JSON outside development)
    2. Create the local assets directory
    3. Build the shared storage service
    4. Connect MongoDB and create indexes. A failure is logged and the app
       keeps starting so /health can report it.

    Shutdown closes the MongoDB client.
    """
    setup_logging(log_level=settings.log_level, json_logs=settings.use_json_logs)
    ensure_assets_dir(settings)
    app.state.storage_service = StorageService(settings)

    try:
        await init_db(settings)
    except RuntimeError:
        logger.exception("Failed to initialize database connection")

    logger.info(f"{settings.app_name} API started on {settings.host}:{settings.port}")
    yield

    await close_db()
    logger.info(f"{settings.app_name} API shutdown complete")


# =============================================================================
# FastAPI Application Initialization
# =============================================================================

app = FastAPI(
    title="Tubely API",
    version="1.0.0",
    description="Video ingestion: validate, inspect, remux for fast start, store and sign",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class UploadSizeLimitMiddleware:
    """
    Bound the body of upload requests to the video size limit.

    A declared Content-Length over the limit is rejected before any of the
    body is read. Otherwise the body bytes are counted as the application
    receives them; once the count passes the limit the rejection is sent,
    the application sees a client disconnect, and its own response is
    dropped. Chunked uploads are therefore never spooled past the limit.

    Args:
        app: Wrapped ASGI application
        path_prefix: Only POST requests under this path are limited
        get_limit: Returns the current limit in bytes
    """

    def __init__(self, app: ASGIApp, path_prefix: str, get_limit: Callable[[], int]) -> None:
        self.app = app
        self.path_prefix = path_prefix
        self.get_limit = get_limit

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if (
            scope["type"] != "http"
            or scope["method"] != "POST"
            or not scope["path"].startswith(self.path_prefix)
        ):
            await self.app(scope, receive, send)
            return

        limit = self.get_limit()
        declared = Headers(scope=scope).get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > limit:
            await self._reject(scope, receive, send, content_length=int(declared))
            return

        received = 0
        rejected = False
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received, rejected
            if rejected:
                return {"type": "http.disconnect"}
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    rejected = True
                    if not response_started:
                        await self._reject(scope, receive, send, received_bytes=received)
                    return {"type": "http.disconnect"}
            return message

        async def guarded_send(message: Message) -> None:
            nonlocal response_started
            if rejected:
                return
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except ClientDisconnect:
            if not rejected:
                raise

    @staticmethod
    async def _reject(scope: Scope, receive: Receive, send: Send, **details: int) -> None:
        error = UploadTooLarge(details=details)
        logger.warning("Rejected oversized upload", extra={"path": scope["path"], **details})
        response = JSONResponse(status_code=error.status_code, content=error.to_response())
        await response(scope, receive, send)


app.add_middleware(
    UploadSizeLimitMiddleware,
    path_prefix=UPLOAD_PATH_PREFIX,
    get_limit=lambda: settings.max_video_upload_bytes,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status and duration of every request."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code}",
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
        },
    )
    return response


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(TubelyError)
async def tubely_error_handler(request: Request, exc: TubelyError) -> JSONResponse:
    """Render a TubelyError as the JSON error body. Details stay in the logs."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{exc.error_code}: {exc.message}",
        extra={
            "path": request.url.path,
            "status_code": exc.status_code,
            "stage": exc.stage,
            "details": exc.details,
        },
        exc_info=exc if exc.status_code >= 500 else None,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and parameters are client errors (400)."""
    logger.warning(
        "Request validation failed",
        extra={"path": request.url.path, "errors": exc.errors()},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "invalid_input",
            "message": "Invalid request",
            "status_code": status.HTTP_400_BAD_REQUEST,
            "stage": None,
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort 500 without stack detail in the response."""
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "Internal server error",
            "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
            "stage": None,
        },
    )


# =============================================================================
# Root and Health Endpoints
# =============================================================================


@app.get("/", tags=["root"])
async def root() -> dict:
    """API name, version and documentation path."""
    return {
        "name": "Tubely API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health", tags=["health"])
async def health_check() -> dict:
    """
    Liveness and dependency status.

    Returns ``healthy`` when MongoDB answers a ping and ``degraded``
    otherwise. The endpoint itself always responds 200.
    """
    try:
        database_ok = await get_db_client().ping()
    except RuntimeError:
        database_ok = False
    return {
        "status": "healthy" if database_ok else "degraded",
        "database": "connected" if database_ok else "unavailable",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": settings.app_name,
    }


# =============================================================================
# Routers and Static Assets
# =============================================================================

app.include_router(api_router, prefix=API_PREFIX)

# Thumbnails written by the thumbnail service are served from here
app.mount(
    ASSETS_URL_PREFIX,
    StaticFiles(directory=settings.assets_root, check_dir=False),
    name="assets",
)


# =============================================================================
# Main Execution Block
# =============================================================================

if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level,
    )
