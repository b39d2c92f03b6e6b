# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Resolution Cache — qualifier → resolved tenant (or a remembered miss).

Two backends share one interface:
  - InMemoryResolutionCache: per-process dict, lock protected, TTL aware.
  - RedisResolutionCache:    shared across processes, JSON payloads.

get() returns None on a miss, otherwise a CachedResolution whose tenant
may itself be None (a cached "not found"). Nothing invalidates entries
when the tenant row changes; call invalidate() after editing a tenant.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Protocol, Tuple
from uuid import UUID

import redis.asyncio as aioredis

from tenant_scope.core.errors import ConfigurationError
from tenant_scope.core.tenant import Tenant
from tenant_scope.kernel.namespace import get_tenant_key, get_tenant_pattern
from tenant_scope.kernel.redis_client import get_redis_client

logger = logging.getLogger("tenantscope.cache")


@dataclass(frozen=True)
class CachedResolution:
    tenant: Optional[Tenant]

    @property
    def found(self) -> bool:
        return self.tenant is not None


class ResolutionCache(Protocol):
    async def get(self, qualifier: str) -> Optional[CachedResolution]:
        ...

    async def put(
        self, qualifier: str, tenant: Optional[Tenant], ttl: Optional[int] = None
    ) -> None:
        ...

    async def invalidate(self, qualifier: str) -> None:
        ...

    async def clear(self) -> None:
        ...


class InMemoryResolutionCache:
    """Process-local cache. ttl=None or 0 keeps an entry for the process lifetime."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[str, Tuple[CachedResolution, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    async def get(self, qualifier: str) -> Optional[CachedResolution]:
        with self._lock:
            entry = self._entries.get(qualifier)
            if entry is None:
                return None
            resolution, expires_at = entry
            if expires_at and self._clock() >= expires_at:
                del self._entries[qualifier]
                return None
            return resolution

    async def put(
        self, qualifier: str, tenant: Optional[Tenant], ttl: Optional[int] = None
    ) -> None:
        expires_at = (self._clock() + ttl) if ttl else 0.0
        with self._lock:
            self._entries[qualifier] = (CachedResolution(tenant), expires_at)

    async def invalidate(self, qualifier: str) -> None:
        with self._lock:
            self._entries.pop(qualifier, None)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisResolutionCache:
    """
    Redis-backed cache shared by every worker process.

    Key:   tenantscope:tenant:{qualifier}
    Value: {"found": true, "tenant": {...}} or {"found": false}; UUID ids
           are stored as text with "id_type": "uuid"
    """

    def __init__(
        self,
        redis: Optional[aioredis.Redis] = None,
        client_factory: Optional[Callable[[], Awaitable[aioredis.Redis]]] = None,
    ) -> None:
        self._redis = redis
        self._client_factory = client_factory or get_redis_client

    async def _client(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = await self._client_factory()
        return self._redis

    async def get(self, qualifier: str) -> Optional[CachedResolution]:
        r = await self._client()
        raw = await r.get(get_tenant_key(qualifier))
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
            if not payload.get("found"):
                return CachedResolution(None)
            data = payload["tenant"]
            if payload.get("id_type") == "uuid":
                data["id"] = UUID(data["id"])
            return CachedResolution(Tenant.model_validate(data))
        except (ValueError, KeyError, TypeError) as e:
            # A corrupt entry is treated as a miss and dropped.
            logger.warning(
                "Dropping unreadable cache entry: %s",
                e,
                extra={"qualifier": qualifier},
            )
            await r.delete(get_tenant_key(qualifier))
            return None

    async def put(
        self, qualifier: str, tenant: Optional[Tenant], ttl: Optional[int] = None
    ) -> None:
        if tenant is None:
            payload = {"found": False}
        else:
            payload = {"found": True, "tenant": tenant.model_dump(mode="json")}
            # JSON has no UUID type; remember it so ownership checks still match.
            if isinstance(tenant.id, UUID):
                payload["id_type"] = "uuid"
        data = json.dumps(payload, ensure_ascii=False)
        r = await self._client()
        if ttl:
            await r.setex(get_tenant_key(qualifier), ttl, data)
        else:
            await r.set(get_tenant_key(qualifier), data)

    async def invalidate(self, qualifier: str) -> None:
        r = await self._client()
        await r.delete(get_tenant_key(qualifier))

    async def clear(self) -> None:
        """Delete every resolution entry (other keys in the db are untouched)."""
        r = await self._client()
        keys = [key async for key in r.scan_iter(match=get_tenant_pattern())]
        if keys:
            await r.delete(*keys)


def build_cache(settings) -> ResolutionCache:
    """Pick the cache backend named by CACHE_BACKEND."""
    backend = (settings.CACHE_BACKEND or "memory").lower()
    if backend == "memory":
        return InMemoryResolutionCache()
    if backend == "redis":
        return RedisResolutionCache()
    raise ConfigurationError(f"Unknown CACHE_BACKEND {settings.CACHE_BACKEND!r}")
