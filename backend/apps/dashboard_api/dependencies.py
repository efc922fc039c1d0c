"""FastAPI dependencies for dashboard routes."""

from __future__ import annotations

from fastapi import HTTPException, Request

from backend.apps.dashboard_api.state import DashboardContext


def get_dashboard(request: Request) -> DashboardContext:
    context = getattr(request.app.state, "dashboard", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Dashboard cache is starting up.")
    return context


__all__ = ["get_dashboard"]
