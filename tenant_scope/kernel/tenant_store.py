# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Tenant Store — qualifier → Tenant, cache first.

Lookup order:
  1. ResolutionCache (positive entries and remembered misses)
  2. Backing tenant table, matched on the configured qualifier field plus
     any extra conditions (e.g. active = True)

Concurrent requests for the same cold qualifier share one backing lookup.
The backing lookup is a global-context query and must not be scoped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol

from tenant_scope.core.errors import ContextMisuseError
from tenant_scope.core.metrics import scope_metrics
from tenant_scope.core.tenant import Tenant
from tenant_scope.kernel.cache import InMemoryResolutionCache, ResolutionCache
from tenant_scope.kernel.resolver import PRIMARY_QUALIFIER

logger = logging.getLogger("tenantscope.store")


class TenantLookup(Protocol):
    """Zero-or-one row lookup against the host's tenant table."""

    async def find_one(
        self, field: str, value: str, conditions: Mapping[str, Any]
    ) -> Optional[Mapping[str, Any]]:
        ...


class InMemoryTenantLookup:
    """List-backed tenant lookup for testing and local development."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None):
        self.rows: List[Dict[str, Any]] = list(rows or [])
        self.calls = 0

    def add(self, **row: Any) -> Dict[str, Any]:
        self.rows.append(row)
        return row

    async def find_one(
        self, field: str, value: str, conditions: Mapping[str, Any]
    ) -> Optional[Mapping[str, Any]]:
        self.calls += 1
        wanted = {field: value, **conditions}
        for row in self.rows:
            if all(k in row and row[k] == v for k, v in wanted.items()):
                return row
        return None


class TenantStore:
    """
    Resolves qualifiers to tenants.

    Args:
        lookup:       backing tenant table access.
        cache:        resolution cache (in-memory when omitted).
        field:        tenant column compared with the qualifier.
        conditions:   extra equality conditions for every lookup.
        ttl:          seconds a resolved tenant stays cached (None/0 = forever).
        negative_ttl: seconds a miss stays cached (None/0 = misses not cached).
    """

    def __init__(
        self,
        lookup: TenantLookup,
        cache: Optional[ResolutionCache] = None,
        *,
        field: str = "domain",
        conditions: Optional[Mapping[str, Any]] = None,
        ttl: Optional[int] = None,
        negative_ttl: Optional[int] = 30,
    ) -> None:
        self._lookup = lookup
        self._cache = cache if cache is not None else InMemoryResolutionCache()
        self._field = field
        self._conditions = dict(conditions or {})
        self._ttl = ttl or None
        self._negative_ttl = negative_ttl or None
        self._inflight: Dict[str, asyncio.Future] = {}

    @classmethod
    def from_settings(
        cls, settings, lookup: TenantLookup, cache: Optional[ResolutionCache] = None
    ) -> "TenantStore":
        return cls(
            lookup,
            cache,
            field=settings.TENANT_QUALIFIER_FIELD,
            conditions=settings.TENANT_CONDITIONS,
            ttl=settings.CACHE_TTL,
            negative_ttl=settings.NEGATIVE_CACHE_TTL,
        )

    @property
    def cache(self) -> ResolutionCache:
        return self._cache

    async def find_tenant(self, qualifier: str) -> Optional[Tenant]:
        """Return the tenant for ``qualifier``, or None when no active tenant matches."""
        if qualifier == PRIMARY_QUALIFIER:
            raise ContextMisuseError(
                "The primary domain qualifier does not name a tenant"
            )

        cached = await self._cache.get(qualifier)
        if cached is not None:
            scope_metrics.inc("cache_hit")
            return cached.tenant
        scope_metrics.inc("cache_miss")

        pending = self._inflight.get(qualifier)
        if pending is not None:
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise
                # The leading caller was cancelled, not this one: look up again.
                return await self.find_tenant(qualifier)

        future = asyncio.get_running_loop().create_future()
        self._inflight[qualifier] = future
        scope_metrics.set_gauge("inflight_lookups", len(self._inflight))
        try:
            tenant = await self._load(qualifier)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Waiters re-raise; mark retrieved so an unawaited future stays quiet.
            future.exception()
            raise
        else:
            future.set_result(tenant)
            return tenant
        finally:
            if self._inflight.get(qualifier) is future:
                del self._inflight[qualifier]
            scope_metrics.set_gauge("inflight_lookups", len(self._inflight))

    async def _load(self, qualifier: str) -> Optional[Tenant]:
        scope_metrics.inc("tenant_lookup")
        with scope_metrics.timer("tenant_lookup_ms"):
            row = await self._lookup.find_one(self._field, qualifier, self._conditions)

        if row is None:
            scope_metrics.inc("tenant_not_found")
            logger.info("No active tenant for qualifier", extra={"qualifier": qualifier})
            if self._negative_ttl:
                await self._cache.put(qualifier, None, self._negative_ttl)
            return None

        tenant = Tenant.from_row(row)
        await self._cache.put(qualifier, tenant, self._ttl)
        logger.info(
            "Resolved tenant",
            extra={"qualifier": qualifier, "tenant_id": tenant.id},
        )
        return tenant

    async def invalidate(self, qualifier: str) -> None:
        """Forget the cached resolution for ``qualifier`` (e.g. after editing the tenant)."""
        await self._cache.invalidate(qualifier)
        logger.info("Invalidated cached tenant", extra={"qualifier": qualifier})
