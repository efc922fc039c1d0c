"""Shared helpers for Redis client creation and logging."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

CONNECT_RETRY_ATTEMPTS = 5
CONNECT_RETRY_BASE_DELAY = 0.5
CONNECT_RETRY_MAX_DELAY = 8.0


@dataclass(frozen=True)
class RedisTarget:
    host: str
    port: int
    db: int
    password: Optional[str]

    @property
    def masked_url(self) -> str:
        return f"redis://{self.host}:{self.port}/{self.db}"


def parse_redis_target(redis_url: str) -> RedisTarget:
    parsed = urlparse(redis_url)
    try:
        db = int(parsed.path.strip("/") or "0") if parsed.path else 0
    except ValueError:
        db = 0
    return RedisTarget(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        db=db,
        password=parsed.password,
    )


def create_redis_client(
    redis_url: str,
    *,
    component: str,
    socket_timeout: float = 5.0,
) -> Redis:
    target = parse_redis_target(redis_url)
    logger.info("Redis %s target: %s", component, target.masked_url)
    return Redis.from_url(
        redis_url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
    )


async def ping_with_retry(
    client: Redis,
    *,
    attempts: int = CONNECT_RETRY_ATTEMPTS,
    base_delay: float = CONNECT_RETRY_BASE_DELAY,
) -> bool:
    """Ping with exponential backoff; True once Redis answers."""

    delay = base_delay
    for attempt in range(1, attempts + 1):
        try:
            if await client.ping():
                return True
        except Exception as exc:
            logger.warning(
                "Redis connection attempt %s/%s failed: %s",
                attempt,
                attempts,
                exc,
            )
        if attempt == attempts:
            break
        await asyncio.sleep(delay)
        delay = min(delay * 2, CONNECT_RETRY_MAX_DELAY)
    return False


__all__ = ["RedisTarget", "parse_redis_target", "create_redis_client", "ping_with_retry"]
