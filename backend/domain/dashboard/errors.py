"""Error taxonomy for the dashboard cache."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class DashboardError(Exception):
    """Base class for dashboard cache errors."""


class UpstreamError(DashboardError):
    """Upstream call failed, timed out or returned an unusable body."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        rate_limit_remaining: Optional[int] = None,
        rate_limit_reset: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.rate_limit_remaining = rate_limit_remaining
        self.rate_limit_reset = rate_limit_reset

    @property
    def rate_limited(self) -> bool:
        return self.status in {403, 429} and self.rate_limit_remaining == 0


class StoreError(DashboardError):
    """Durable store unreachable or returned an error."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"Store error during {operation}: {message}")
        self.operation = operation


class FallbackUnavailable(DashboardError):
    """Local snapshot file is missing, malformed or empty."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Local snapshot {path} unavailable: {reason}")
        self.path = path
        self.reason = reason


class Unauthorized(DashboardError):
    """Manual refresh credential mismatch."""


__all__ = [
    "DashboardError",
    "UpstreamError",
    "StoreError",
    "FallbackUnavailable",
    "Unauthorized",
]
