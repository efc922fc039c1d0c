"""FastAPI application wiring for the dashboard cache service."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.apps.dashboard_api.routers import dashboard, system
from backend.apps.dashboard_api.routers.site import build_site_router
from backend.apps.dashboard_api.state import setup_dashboard_state
from backend.core.error_handler import (
    GracefulShutdown,
    safe_background_task,
    setup_global_exception_handler,
)
from backend.core.logging import configure_logging
from backend.core.settings import get_settings
from backend.domain.dashboard.errors import Unauthorized

configure_logging()
request_logger = logging.getLogger("dashboard.requests")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the cache context, warm it in the background and start the scheduler."""
    setup_global_exception_handler()
    settings = get_settings()
    logger.info("Starting dashboard cache service for %s...", settings.identity)

    shutdown_manager = GracefulShutdown(timeout=15.0)
    context = await setup_dashboard_state(app, settings)

    warmup_task = safe_background_task(
        "dashboard_cache_warmup", context.coordinator.warm_up()
    )
    shutdown_manager.add_task(warmup_task)

    if context.scheduler is not None:
        try:
            context.scheduler.start()
        except Exception as exc:
            logger.error("Failed to start refresh scheduler: %s", exc, exc_info=True)

    try:
        yield
    finally:
        logger.info("Shutting down dashboard cache service...")
        await shutdown_manager.shutdown()
        await context.shutdown()
        logger.info("Application shut down complete")


async def _unauthorized_handler(request: Request, exc: Unauthorized) -> JSONResponse:
    return JSONResponse({"message": str(exc) or "Unauthorized refresh request."}, status_code=401)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="GitHub Dashboard Cache",
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url=None,
    )
    app.add_exception_handler(Unauthorized, _unauthorized_handler)

    app.include_router(system.router)
    app.include_router(dashboard.router)
    if settings.static_dir.is_dir():
        app.include_router(build_site_router(settings.static_dir))
        logger.info("Serving static site from %s", settings.static_dir)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration = (time.perf_counter() - start) * 1000
            request_logger.exception(
                "HTTP %s %s failed",
                request.method,
                request.url.path,
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": round(duration, 1),
                },
            )
            raise
        duration = (time.perf_counter() - start) * 1000
        request_logger.info(
            "HTTP %s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            duration,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration, 1),
                "cache_status": response.headers.get("X-Cache-Status"),
            },
        )
        return response

    return app


app = create_app()

__all__ = ["app", "create_app", "lifespan"]
