"""Dashboard read and manual refresh endpoints."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from backend.apps.dashboard_api.dependencies import get_dashboard
from backend.apps.dashboard_api.security import require_refresh_token
from backend.apps.dashboard_api.state import DashboardContext
from backend.core.metrics import observe_cache_response
from backend.domain.dashboard.errors import UpstreamError
from backend.domain.dashboard.models import CacheResult, CacheStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/github-dashboard", tags=["dashboard"])

CACHE_STATUS_HEADER = "X-Cache-Status"
UNAVAILABLE_MESSAGE = (
    "Unable to refresh GitHub data cache. Configure GH_API_TOKEN to increase API limits."
)
REFRESH_FAILED_MESSAGE = "GitHub cache refresh failed."


def _upstream_details(error: Optional[BaseException]) -> dict[str, Any]:
    if not isinstance(error, UpstreamError):
        return {}
    details: dict[str, Any] = {}
    if error.status is not None:
        details["upstream_status"] = error.status
    if error.rate_limit_reset is not None:
        details["rate_limit_reset"] = error.rate_limit_reset
    return details


def _respond(result: CacheResult, *, unavailable_message: str) -> JSONResponse:
    observe_cache_response(result.status.value)
    if result.snapshot is None:
        body = {"message": unavailable_message, **_upstream_details(result.error)}
        return JSONResponse(
            body,
            status_code=503,
            headers={CACHE_STATUS_HEADER: CacheStatus.UNAVAILABLE.value},
        )
    return JSONResponse(
        result.snapshot.to_document(),
        headers={CACHE_STATUS_HEADER: result.status.value},
    )


@router.get("")
async def read_dashboard(context: DashboardContext = Depends(get_dashboard)) -> JSONResponse:
    result = await context.coordinator.get()
    return _respond(result, unavailable_message=UNAVAILABLE_MESSAGE)


@router.post("/refresh", dependencies=[Depends(require_refresh_token)])
async def refresh_dashboard(context: DashboardContext = Depends(get_dashboard)) -> JSONResponse:
    result = await context.coordinator.force_refresh()
    if not result.available:
        logger.error("Manual cache refresh failed: %s", result.error)
    return _respond(result, unavailable_message=REFRESH_FAILED_MESSAGE)
