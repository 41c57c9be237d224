"""
FastAPI application factory for the crickfeed API service.

Creates the app with:
- Cricket REST routes
- Middleware stack
- Health check endpoint
- Lifespan management (feed runtime startup/shutdown, background refresh)
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI

from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import SERVICE_INFO, start_metrics_server

from api.dependencies import get_runtime, init_dependencies
from api.middleware import setup_middleware
from api.routes.cricket import router as cricket_router
from ingest.runtime import build_runtime

logger = get_logger(__name__)

SERVICE_VERSION = "1.0.0"


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for tests that inject their own runtime."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Builds the feed runtime, starts the upstream client and the cache
    updater, and tears both down on shutdown.
    """
    settings = get_settings()
    setup_logging("api")
    start_metrics_server(settings.metrics_port)
    SERVICE_INFO.info({"version": SERVICE_VERSION, "environment": settings.environment.value})

    runtime = build_runtime(settings)
    init_dependencies(runtime)
    await runtime.start()

    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
    )

    yield

    await runtime.close()
    init_dependencies(None)
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing."""
    app = FastAPI(
        title="Crickfeed API",
        description="Cached cricket match, series and match-detail feed",
        version=SERVICE_VERSION,
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Middleware
    setup_middleware(app)

    # REST routes
    app.include_router(cricket_router)

    # Health check
    @app.get("/health", tags=["system"])
    async def health() -> dict[str, Any]:
        try:
            runtime = get_runtime()
        except RuntimeError:
            return {"status": "starting", "service": "api"}
        return {
            "status": "ok",
            "service": "api",
            "apiKeys": runtime.key_pool.size,
            "updaterRunning": runtime.scheduler.is_running,
        }

    return app


# For running with uvicorn directly
app = create_app()
