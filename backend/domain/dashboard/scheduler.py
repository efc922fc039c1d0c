"""Periodic background refresh independent of request traffic."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import SchedulerAlreadyRunningError, SchedulerNotRunningError

from backend.domain.dashboard.coordinator import RefreshCoordinator
from backend.domain.dashboard.models import CacheStatus

logger = logging.getLogger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    return AsyncIOScheduler(timezone="UTC")


class RefreshScheduler:
    """Fires ``force_refresh()`` every ``interval_seconds``.

    Failures are logged and swallowed. Overlap with request-driven or manual
    refreshes is prevented by the coordinator's single-flight claim, and
    ``max_instances=1`` keeps ticks from piling up behind a slow upstream.
    """

    def __init__(
        self,
        coordinator: RefreshCoordinator,
        *,
        interval_seconds: int,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        self._coordinator = coordinator
        self._interval_seconds = max(1, int(interval_seconds))
        self._scheduler = scheduler or create_scheduler()
        self._job_id = f"dashboard-refresh:{coordinator.identity}"

    @property
    def job_id(self) -> str:
        return self._job_id

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    async def tick(self) -> CacheStatus:
        try:
            result = await self._coordinator.force_refresh()
        except Exception:
            logger.exception("Scheduled cache refresh crashed")
            return CacheStatus.UNAVAILABLE
        if not result.available:
            logger.error("Scheduled cache refresh failed: %s", result.error)
        return result.status

    def start(self) -> None:
        misfire = max(self._interval_seconds // 2, 1)
        first_run = datetime.now(timezone.utc) + timedelta(seconds=self._interval_seconds)
        self._scheduler.add_job(
            self.tick,
            "interval",
            seconds=self._interval_seconds,
            id=self._job_id,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=misfire,
            next_run_time=first_run,
        )
        if not self._scheduler.running:
            try:
                self._scheduler.start()
            except SchedulerAlreadyRunningError:
                pass
        logger.info(
            "Dashboard refresh scheduled every %ss (job %s)",
            self._interval_seconds,
            self._job_id,
        )

    def shutdown(self) -> None:
        try:
            self._scheduler.shutdown(wait=False)
        except SchedulerNotRunningError:
            pass


__all__ = ["RefreshScheduler", "create_scheduler"]
