"""
FastAPI application factory.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from alertrelay.alerts.providers import build_providers
from alertrelay.alerts.routing import RoomRouter
from alertrelay.api.routes import dispatch, health
from alertrelay.config.settings import Settings, load_settings
from alertrelay.observability.metrics import MetricsCollector

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("alertrelay starting up", rooms=app.state.router.rooms)
    app.state.router.start()

    yield

    logger.info("alertrelay shutting down")
    await app.state.router.stop()


def create_app(
    settings: Settings | None = None,
    router: RoomRouter | None = None,
    metrics: MetricsCollector | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Loaded settings (read from config file/env if None)
        router: Prebuilt room router (built from settings if None)
        metrics: Metrics collector (a fresh registry if None)

    Returns:
        Configured FastAPI application
    """
    metrics = metrics or MetricsCollector()
    if router is None:
        settings = settings or load_settings()
        router = RoomRouter(build_providers(settings.providers, metrics=metrics))

    app = FastAPI(
        title="alertrelay",
        description="Relays Alertmanager notifications to threaded chat rooms.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.router = router
    app.state.metrics = metrics

    # Request logging and correlation ID middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time
            response.headers["X-Request-ID"] = request_id

            logger.debug(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )
            return response
        finally:
            structlog.contextvars.clear_contextvars()

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error("Error decoding request body", path=request.url.path, errors=exc.errors())
        if request.url.path == "/dispatch":
            app.state.metrics.record_request_error("dispatch")
        return JSONResponse(
            status_code=400,
            content={"status": "error", "message": "Error decoding payload.", "data": None},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": "Internal Server Error.", "data": None},
        )

    app.include_router(health.router, tags=["health"])
    app.include_router(dispatch.router, tags=["dispatch"])

    return app
