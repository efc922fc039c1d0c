"""Health and Prometheus endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", include_in_schema=False)
async def health_check(request: Request) -> JSONResponse:
    context = getattr(request.app.state, "dashboard", None)
    if context is None:
        return JSONResponse(
            {"status": "starting", "checks": {"dashboard": "missing"}},
            status_code=503,
        )

    checks = await context.coordinator.describe()
    scheduler = context.scheduler
    checks["scheduler"] = "running" if scheduler is not None and scheduler.running else "stopped"
    # A service that can still answer from cache or snapshot is healthy; no data at all is not.
    status_code = 200 if checks["snapshot_source"] is not None else 503
    return JSONResponse(
        {"status": "ok" if status_code == 200 else "degraded", "checks": checks},
        status_code=status_code,
    )


@router.get("/metrics", include_in_schema=False)
async def metrics(request: Request) -> Response:
    context = getattr(request.app.state, "dashboard", None)
    if context is None or not context.settings.metrics_enabled:
        raise HTTPException(status_code=404)
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
