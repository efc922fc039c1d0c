"""Refresh coordinator: freshness policy, single-flight refresh and degradation.

Degradation order for reads:
    fresh cache (HIT)
    -> refresh (MISS / REFRESH)
    -> expired cache (STALE)
    -> local snapshot (FALLBACK)
    -> UNAVAILABLE

Only one refresh runs at a time. A caller arriving while a refresh is
outstanding awaits that same task, whether it came through ``get()``,
``force_refresh()`` or the scheduler. The task is shielded so a caller that
goes away (client disconnect) never aborts the upstream fetch.

The local snapshot only seeds an empty store: callers degrading together
share one load, and the write is skipped when a snapshot was stored while
the file was being read.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from backend.core.metrics import observe_refresh
from backend.domain.dashboard.errors import DashboardError, FallbackUnavailable
from backend.domain.dashboard.models import (
    SOURCE_LOCAL_SNAPSHOT,
    CacheResult,
    CacheStatus,
    Snapshot,
    utcnow,
)
from backend.domain.dashboard.store import SnapshotStore

logger = logging.getLogger(__name__)


class SnapshotSource(Protocol):
    async def build(self) -> Snapshot: ...


class FallbackSource(Protocol):
    async def load(self) -> Snapshot: ...


class RefreshCoordinator:
    def __init__(
        self,
        *,
        identity: str,
        ttl_minutes: int,
        store: SnapshotStore,
        builder: SnapshotSource,
        fallback: FallbackSource,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.identity = identity
        self.ttl_minutes = ttl_minutes
        self._store = store
        self._builder = builder
        self._fallback = fallback
        self._clock = clock
        self._inflight: Optional[asyncio.Task[Snapshot]] = None
        self._fallback_inflight: Optional[asyncio.Task[CacheResult]] = None
        self._write_lock = asyncio.Lock()

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def refresh_in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def get(self) -> CacheResult:
        cached = await self._read()
        if cached is not None and cached.is_fresh(self._clock(), self.ttl_minutes):
            return CacheResult(CacheStatus.HIT, cached)

        try:
            fresh = await self._refresh()
        except Exception as exc:
            return await self._degrade(cached, exc)
        status = CacheStatus.REFRESH if cached is not None else CacheStatus.MISS
        return CacheResult(status, fresh)

    async def force_refresh(self) -> CacheResult:
        """Refresh regardless of freshness; never serves stale data."""

        try:
            snapshot = await self._refresh()
        except Exception as exc:
            return CacheResult(CacheStatus.UNAVAILABLE, error=exc)
        return CacheResult(CacheStatus.REFRESH, snapshot)

    async def warm_up(self) -> CacheResult:
        """Startup fill: refresh, else seed an empty store from the local snapshot."""

        result = await self.force_refresh()
        if result.available:
            return result
        logger.error("Startup cache warmup failed: %s", result.error)
        cached = await self._read()
        if cached is not None:
            return CacheResult(CacheStatus.STALE, cached, error=result.error)
        fallback = await self._load_fallback(result.error)
        if fallback.status is CacheStatus.FALLBACK:
            logger.warning("Loaded fallback dashboard cache from local snapshot.")
        return fallback

    async def describe(self) -> dict[str, Any]:
        cached = await self._read()
        age = cached.age_seconds(self._clock()) if cached is not None else None
        return {
            "identity": self.identity,
            "store": self._store.backend_name,
            "refresh_in_flight": self.refresh_in_flight,
            "snapshot_source": cached.meta.source if cached is not None else None,
            "snapshot_age_seconds": round(age, 1) if age is not None else None,
            "ttl_minutes": self.ttl_minutes,
        }

    async def _read(self) -> Optional[Snapshot]:
        result = await self._store.read(self.identity)
        # Store failures already logged by the backend; treat them as a miss.
        return result.unwrap_or(None)

    async def _write(self, snapshot: Snapshot) -> None:
        async with self._write_lock:
            await self._write_unlocked(snapshot)

    async def _write_unlocked(self, snapshot: Snapshot) -> None:
        result = await self._store.write(self.identity, snapshot)
        if result.is_failure():
            logger.warning(
                "Snapshot for %s not persisted to %s store; serving it uncached",
                self.identity,
                self._store.backend_name,
            )

    async def _degrade(self, cached: Optional[Snapshot], exc: BaseException) -> CacheResult:
        if cached is not None:
            logger.warning("Dashboard refresh failed, serving stale snapshot: %s", exc)
            return CacheResult(CacheStatus.STALE, cached, error=exc)
        return await self._load_fallback(exc)

    async def _load_fallback(self, cause: Optional[BaseException]) -> CacheResult:
        # Callers degrading from the same failed refresh share one file load and one write.
        task = self._fallback_inflight
        if task is None or task.done():
            task = asyncio.create_task(
                self._run_fallback(cause), name=f"dashboard-fallback:{self.identity}"
            )
            task.add_done_callback(self._on_fallback_done)
            self._fallback_inflight = task
        return await asyncio.shield(task)

    async def _run_fallback(self, cause: Optional[BaseException]) -> CacheResult:
        try:
            snapshot = await self._fallback.load()
        except FallbackUnavailable as fallback_exc:
            logger.error(
                "Dashboard cache refresh failed with no fallback: %s (%s)",
                cause,
                fallback_exc,
            )
            return CacheResult(CacheStatus.UNAVAILABLE, error=cause or fallback_exc)

        async with self._write_lock:
            # The file is only a seed for an empty store; a snapshot stored
            # while it was loading is newer and must not be replaced.
            current = await self._read()
            if current is None:
                await self._write_unlocked(snapshot)
        if current is not None:
            logger.info(
                "Snapshot for %s stored while loading local fallback; serving it instead",
                self.identity,
            )
            return CacheResult(self._status_of(current), current, error=cause)
        return CacheResult(CacheStatus.FALLBACK, snapshot, error=cause)

    def _status_of(self, snapshot: Snapshot) -> CacheStatus:
        if snapshot.meta.source == SOURCE_LOCAL_SNAPSHOT:
            return CacheStatus.FALLBACK
        if snapshot.is_fresh(self._clock(), self.ttl_minutes):
            return CacheStatus.REFRESH
        return CacheStatus.STALE

    def _on_fallback_done(self, task: asyncio.Task) -> None:
        if self._fallback_inflight is task:
            self._fallback_inflight = None
        if not task.cancelled():
            task.exception()

    async def _refresh(self) -> Snapshot:
        # No await between the check and the claim: joining or claiming is atomic on the loop.
        task = self._inflight
        if task is None or task.done():
            task = asyncio.create_task(
                self._run_refresh(), name=f"dashboard-refresh:{self.identity}"
            )
            task.add_done_callback(self._on_refresh_done)
            self._inflight = task
        return await asyncio.shield(task)

    async def _run_refresh(self) -> Snapshot:
        started = time.perf_counter()
        try:
            snapshot = await self._builder.build()
            await self._write(snapshot)
        except Exception as exc:
            duration = time.perf_counter() - started
            observe_refresh(outcome="failure", duration_seconds=duration)
            if isinstance(exc, DashboardError):
                logger.warning(
                    "Dashboard refresh for %s failed: %s",
                    self.identity,
                    exc,
                    extra={"identity": self.identity},
                )
            else:
                logger.exception("Dashboard refresh for %s crashed", self.identity)
            raise
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None

        duration = time.perf_counter() - started
        observe_refresh(outcome="success", duration_seconds=duration)
        logger.info(
            "Dashboard refresh for %s completed in %.2fs",
            self.identity,
            duration,
            extra={"identity": self.identity, "duration_ms": round(duration * 1000, 1)},
        )
        return snapshot

    def _on_refresh_done(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None
        # Consume the outcome so an unawaited failure is not reported as "never retrieved".
        if not task.cancelled():
            task.exception()


__all__ = ["RefreshCoordinator", "SnapshotSource", "FallbackSource"]
