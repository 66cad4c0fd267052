# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
Redis Connection Factory — Async connection pool for the redis snapshot backend.
"""

from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis
from redis.backoff import ExponentialBackoff
from redis.exceptions import BusyLoadingError, ConnectionError, TimeoutError
from redis.retry import Retry

_pool: Optional[aioredis.Redis] = None

_RETRY = Retry(ExponentialBackoff(cap=2, base=0.1), retries=3)
_RETRY_ERRORS = [ConnectionError, TimeoutError, BusyLoadingError, OSError]


async def get_redis_pool(url: str) -> aioredis.Redis:
    """
    Return a singleton async Redis connection pool.

    Uses retry-on-error so stale pool connections are transparently reconnected.
    """
    global _pool
    if _pool is None:
        _pool = aioredis.from_url(
            url,
            decode_responses=True,
            max_connections=10,
            health_check_interval=15,
            retry_on_timeout=True,
            retry_on_error=_RETRY_ERRORS,
            retry=_RETRY,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
    return _pool


async def close_redis_pool() -> None:
    """Gracefully close the Redis connection pool."""
    global _pool
    if _pool is not None:
        await _pool.aclose()
        _pool = None


def inject_redis_for_test(redis_instance: Optional[aioredis.Redis]) -> None:
    """Inject a fake/mock Redis instance (for testing only)."""
    global _pool
    _pool = redis_instance
