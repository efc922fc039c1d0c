"""Shared-secret guard for the manual refresh endpoint."""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import Depends, Header, Request

from backend.apps.dashboard_api.dependencies import get_dashboard
from backend.apps.dashboard_api.state import DashboardContext
from backend.domain.dashboard.errors import Unauthorized

logger = logging.getLogger(__name__)

REFRESH_TOKEN_HEADER = "X-Refresh-Token"


def verify_refresh_token(provided: Optional[str], expected: str) -> None:
    """Raise Unauthorized unless ``provided`` matches the configured secret.

    An empty configured secret disables the check.
    """

    if not expected:
        return
    if provided is None or not secrets.compare_digest(
        provided.encode("utf-8"), expected.encode("utf-8")
    ):
        raise Unauthorized("Unauthorized refresh request.")


async def require_refresh_token(
    request: Request,
    context: DashboardContext = Depends(get_dashboard),
    x_refresh_token: Optional[str] = Header(default=None, alias=REFRESH_TOKEN_HEADER),
) -> None:
    try:
        verify_refresh_token(x_refresh_token, context.settings.refresh_token)
    except Unauthorized:
        client_host = request.client.host if request.client else ""
        logger.warning(
            "Rejected manual cache refresh",
            extra={"client_host": client_host, "token_provided": x_refresh_token is not None},
        )
        raise


__all__ = ["REFRESH_TOKEN_HEADER", "require_refresh_token", "verify_refresh_token"]
