"""
API middleware stack.

- Request ID injection (X-Request-ID header)
- Structured request/response logging
- Global exception handler in the {success, message, error} envelope
- CORS configuration
"""
from __future__ import annotations

import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

QUIET_PATHS = ("/health", "/metrics")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Injects a unique X-Request-ID header into every request/response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of every non-health request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start = time.monotonic()
        request_id = getattr(request.state, "request_id", "unknown")
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "http_request_error",
                method=request.method,
                path=path,
                duration_ms=round((time.monotonic() - start) * 1000, 2),
                request_id=request_id,
                error=str(exc),
                exc_info=True,
            )
            raise

        logger.info(
            "http_request",
            method=request.method,
            path=path,
            status=response.status_code,
            duration_ms=round((time.monotonic() - start) * 1000, 2),
            request_id=request_id,
        )
        return response


def setup_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            request_id=request_id,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "An unexpected error occurred",
                "error": str(exc),
                "request_id": request_id,
            },
        )


def setup_cors(app: FastAPI) -> None:
    settings = get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Cache-Control"],
    )


def setup_middleware(app: FastAPI) -> None:
    """Apply all middleware to the FastAPI app in the correct order."""
    # 1. CORS (must be outermost for preflight)
    setup_cors(app)
    # 2. Request ID
    app.add_middleware(RequestIDMiddleware)
    # 3. Request logging
    app.add_middleware(RequestLoggingMiddleware)
    # 4. Exception handlers
    setup_exception_handlers(app)
