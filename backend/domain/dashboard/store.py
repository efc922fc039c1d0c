"""Snapshot persistence backends.

Two interchangeable implementations behind one protocol:
- ``MemorySnapshotStore``: process-local, used when no durable store is configured
- ``RedisSnapshotStore``: shared durable store, one key per identity

Both hold the serialized JSON document, so a read always returns a new
``Snapshot`` parsed from a complete write. Operations return a Result and
never raise for backend failures.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from backend.core.result import Result, failure, success
from backend.domain.dashboard.errors import StoreError
from backend.domain.dashboard.models import Snapshot

logger = logging.getLogger(__name__)


def cache_key(identity: str) -> str:
    return f"github-dashboard-cache:{identity}:v1"


def _decode(raw: Optional[str | bytes], *, identity: str, backend: str) -> Optional[Snapshot]:
    if raw is None:
        return None
    try:
        return Snapshot.from_json(raw)
    except (ValidationError, ValueError) as exc:
        # Unreadable documents behave like an empty cache; the next refresh overwrites them.
        logger.warning("Discarding undecodable %s snapshot for %s: %s", backend, identity, exc)
        return None


class SnapshotStore(Protocol):
    backend_name: str

    async def read(self, identity: str) -> Result[Optional[Snapshot], StoreError]: ...

    async def write(self, identity: str, snapshot: Snapshot) -> Result[bool, StoreError]: ...

    async def close(self) -> None: ...


class MemorySnapshotStore:
    backend_name = "memory"

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}

    async def read(self, identity: str) -> Result[Optional[Snapshot], StoreError]:
        return success(_decode(self._documents.get(identity), identity=identity, backend="memory"))

    async def write(self, identity: str, snapshot: Snapshot) -> Result[bool, StoreError]:
        self._documents[identity] = snapshot.to_json()
        return success(True)

    async def close(self) -> None:
        return None


class RedisSnapshotStore:
    backend_name = "redis"

    def __init__(self, client: Redis) -> None:
        self._client = client

    async def read(self, identity: str) -> Result[Optional[Snapshot], StoreError]:
        key = cache_key(identity)
        try:
            raw = await self._client.get(key)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            logger.warning("Cache get failed for key %s: %s", key, exc)
            return failure(StoreError("read", str(exc)))
        return success(_decode(raw, identity=identity, backend="redis"))

    async def write(self, identity: str, snapshot: Snapshot) -> Result[bool, StoreError]:
        key = cache_key(identity)
        try:
            # Single SET replaces the whole document atomically for readers.
            await self._client.set(key, snapshot.to_json())
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            logger.warning("Cache set failed for key %s: %s", key, exc)
            return failure(StoreError("write", str(exc)))
        return success(True)

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except (RedisError, OSError) as exc:
            logger.debug("Redis close failed: %s", exc)


__all__ = [
    "MemorySnapshotStore",
    "RedisSnapshotStore",
    "SnapshotStore",
    "cache_key",
]
