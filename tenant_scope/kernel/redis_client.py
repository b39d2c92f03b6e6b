# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Redis Connection Factory — Shared async client for the resolution cache.

Only used when CACHE_BACKEND=redis. Every process resolving tenants
shares one client; cache reads are point GETs so the pool stays small.
"""

from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis
from redis.backoff import ExponentialBackoff
from redis.retry import Retry
from redis.exceptions import ConnectionError, TimeoutError

from tenant_scope.core.config import settings

_client: Optional[aioredis.Redis] = None

# Cache lookups sit on the request path: retry briefly, then fail the request.
_RETRY = Retry(ExponentialBackoff(cap=0.5, base=0.05), retries=2)


async def get_redis_client(url: Optional[str] = None) -> aioredis.Redis:
    """
    Return the process-wide async Redis client.

    ``url`` overrides REDIS_URL on first creation only.
    """
    global _client
    if _client is None:
        _client = aioredis.from_url(
            url or settings.REDIS_URL,
            decode_responses=True,
            max_connections=10,
            health_check_interval=30,
            retry_on_error=[ConnectionError, TimeoutError],
            retry=_RETRY,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
    return _client


async def close_redis_client() -> None:
    """Close the shared client (application shutdown)."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def inject_redis_for_test(redis_instance: aioredis.Redis) -> None:
    """Inject a fake/mock Redis instance (for testing only)."""
    global _client
    _client = redis_instance
