"""Process-scoped dashboard cache context.

Built once in the application lifespan and stored on ``app.state.dashboard``.
The store backend is chosen here, once, from configuration; nothing
downstream branches on which backend is active.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI

from backend.core.redis_factory import create_redis_client, ping_with_retry
from backend.core.settings import Settings
from backend.domain.dashboard.builder import SnapshotBuilder
from backend.domain.dashboard.coordinator import RefreshCoordinator
from backend.domain.dashboard.fallback import LocalFallbackLoader
from backend.domain.dashboard.github_client import GitHubClient
from backend.domain.dashboard.scheduler import RefreshScheduler
from backend.domain.dashboard.store import MemorySnapshotStore, RedisSnapshotStore, SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class DashboardContext:
    """Holds runtime cache objects for request handlers and cleanup."""

    settings: Settings
    store: SnapshotStore
    coordinator: RefreshCoordinator
    client: Optional[GitHubClient] = None
    scheduler: Optional[RefreshScheduler] = None

    async def shutdown(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown()
        if self.client is not None:
            try:
                await self.client.close()
            except Exception:
                logger.exception("Failed to close GitHub client")
        await self.store.close()


async def select_store(settings: Settings) -> SnapshotStore:
    redis_url = settings.redis_url
    if not redis_url:
        logger.info("Dashboard cache using in-memory store (no REDIS_URL)")
        return MemorySnapshotStore()

    try:
        client = create_redis_client(redis_url, component="dashboard-cache")
    except ValueError as exc:
        logger.error("Failed to parse REDIS_URL, continuing with in-memory cache: %s", exc)
        return MemorySnapshotStore()

    if await ping_with_retry(client):
        logger.info("Connected to Redis cache.")
        return RedisSnapshotStore(client)

    logger.error("Redis connection failed, continuing with in-memory cache.")
    try:
        await client.aclose()
    except Exception:
        logger.debug("Closing unreachable Redis client failed", exc_info=True)
    return MemorySnapshotStore()


def build_dashboard_context(settings: Settings, *, store: SnapshotStore) -> DashboardContext:
    client = GitHubClient(
        base_url=settings.github_api_base,
        identity=settings.identity,
        token=settings.github_token,
        timeout=settings.upstream_timeout_seconds,
    )
    builder = SnapshotBuilder(
        client,
        identity=settings.identity,
        ttl_minutes=settings.cache_ttl_minutes,
        history_days=settings.commit_history_days,
    )
    fallback = LocalFallbackLoader(
        settings.fallback_snapshot_path,
        identity=settings.identity,
        ttl_minutes=settings.cache_ttl_minutes,
        history_days=settings.commit_history_days,
    )
    coordinator = RefreshCoordinator(
        identity=settings.identity,
        ttl_minutes=settings.cache_ttl_minutes,
        store=store,
        builder=builder,
        fallback=fallback,
    )
    scheduler = RefreshScheduler(
        coordinator,
        interval_seconds=settings.refresh_interval_seconds,
    )
    return DashboardContext(
        settings=settings,
        store=store,
        coordinator=coordinator,
        client=client,
        scheduler=scheduler,
    )


async def setup_dashboard_state(app: FastAPI, settings: Settings) -> DashboardContext:
    store = await select_store(settings)
    context = build_dashboard_context(settings, store=store)
    app.state.dashboard = context
    if not settings.github_token:
        logger.warning(
            "GH_API_TOKEN not set; unauthenticated GitHub requests are heavily rate limited"
        )
    return context


__all__ = [
    "DashboardContext",
    "build_dashboard_context",
    "select_store",
    "setup_dashboard_state",
]
