# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.
"""Unit tests for TenantStore: cache-first lookup, misses and single-flight."""

import asyncio

import pytest

from tenant_scope.core.errors import ContextMisuseError
from tenant_scope.core.metrics import scope_metrics
from tenant_scope.kernel.cache import InMemoryResolutionCache, RedisResolutionCache
from tenant_scope.kernel.tenant_store import InMemoryTenantLookup, TenantStore


class SlowLookup(InMemoryTenantLookup):
    """Lookup that blocks until released, to exercise concurrent callers."""

    def __init__(self, rows):
        super().__init__(rows)
        self.release = asyncio.Event()

    async def find_one(self, field, value, conditions):
        self.calls += 1
        await self.release.wait()
        wanted = {field: value, **conditions}
        for row in self.rows:
            if all(row.get(k) == v for k, v in wanted.items()):
                return row
        return None


class BrokenLookup:
    def __init__(self):
        self.calls = 0

    async def find_one(self, field, value, conditions):
        self.calls += 1
        raise RuntimeError("database unavailable")


def make_store(lookup, **kwargs):
    kwargs.setdefault("conditions", {"active": True})
    return TenantStore(lookup, InMemoryResolutionCache(), **kwargs)


class TestFindTenant:
    async def test_resolves_active_tenant(self, tenant_lookup):
        store = make_store(tenant_lookup)
        tenant = await store.find_tenant("acme")
        assert tenant.id == 1
        assert tenant.get("name") == "Acme"

    async def test_second_call_served_from_cache(self, tenant_lookup):
        store = make_store(tenant_lookup)
        first = await store.find_tenant("acme")
        second = await store.find_tenant("acme")
        assert first == second
        assert tenant_lookup.calls == 1
        assert scope_metrics.get_counter("cache_miss") == 1
        assert scope_metrics.get_counter("cache_hit") == 1
        assert scope_metrics.get_counter("tenant_lookup") == 1

    async def test_inactive_tenant_not_resolved(self, tenant_lookup):
        store = make_store(tenant_lookup)
        assert await store.find_tenant("dormant") is None
        assert scope_metrics.get_counter("tenant_not_found") == 1

    async def test_conditions_are_optional(self, tenant_lookup):
        store = make_store(tenant_lookup, conditions={})
        tenant = await store.find_tenant("dormant")
        assert tenant.id == 3

    async def test_custom_qualifier_field(self):
        lookup = InMemoryTenantLookup([{"id": "t-9", "slug": "nine"}])
        store = make_store(lookup, field="slug", conditions={})
        assert (await store.find_tenant("nine")).id == "t-9"

    async def test_primary_qualifier_rejected(self, tenant_lookup):
        store = make_store(tenant_lookup)
        with pytest.raises(ContextMisuseError):
            await store.find_tenant("")
        assert tenant_lookup.calls == 0


class TestNegativeCaching:
    async def test_miss_is_remembered(self, tenant_lookup):
        store = make_store(tenant_lookup, negative_ttl=30)
        assert await store.find_tenant("ghost") is None
        assert await store.find_tenant("ghost") is None
        assert tenant_lookup.calls == 1

    async def test_miss_not_cached_when_disabled(self, tenant_lookup):
        store = make_store(tenant_lookup, negative_ttl=0)
        await store.find_tenant("ghost")
        await store.find_tenant("ghost")
        assert tenant_lookup.calls == 2

    async def test_new_tenant_visible_after_invalidate(self, tenant_lookup):
        store = make_store(tenant_lookup, negative_ttl=30)
        assert await store.find_tenant("initech") is None
        tenant_lookup.add(id=4, name="Initech", domain="initech", active=True)
        assert await store.find_tenant("initech") is None
        await store.invalidate("initech")
        assert (await store.find_tenant("initech")).id == 4


class TestSingleFlight:
    async def test_concurrent_cold_lookups_share_one_query(self, tenant_lookup):
        lookup = SlowLookup(tenant_lookup.rows)
        store = make_store(lookup)

        tasks = [asyncio.create_task(store.find_tenant("acme")) for _ in range(5)]
        await asyncio.sleep(0)
        lookup.release.set()
        results = await asyncio.gather(*tasks)

        assert lookup.calls == 1
        assert {t.id for t in results} == {1}
        assert scope_metrics.get_gauge("inflight_lookups") == 0

    async def test_different_qualifiers_do_not_share(self, tenant_lookup):
        lookup = SlowLookup(tenant_lookup.rows)
        store = make_store(lookup)

        tasks = [
            asyncio.create_task(store.find_tenant("acme")),
            asyncio.create_task(store.find_tenant("globex")),
        ]
        await asyncio.sleep(0)
        lookup.release.set()
        acme, globex = await asyncio.gather(*tasks)

        assert lookup.calls == 2
        assert (acme.id, globex.id) == (1, 2)

    async def test_cancelled_leader_does_not_cancel_waiters(self, tenant_lookup):
        lookup = SlowLookup(tenant_lookup.rows)
        store = make_store(lookup)

        leader = asyncio.create_task(store.find_tenant("acme"))
        await asyncio.sleep(0)
        waiter = asyncio.create_task(store.find_tenant("acme"))
        await asyncio.sleep(0)

        leader.cancel()
        await asyncio.sleep(0)
        lookup.release.set()

        tenant = await waiter
        assert tenant.id == 1
        with pytest.raises(asyncio.CancelledError):
            await leader
        assert lookup.calls == 2
        assert scope_metrics.get_gauge("inflight_lookups") == 0

    async def test_cancelled_waiter_leaves_leader_running(self, tenant_lookup):
        lookup = SlowLookup(tenant_lookup.rows)
        store = make_store(lookup)

        leader = asyncio.create_task(store.find_tenant("acme"))
        await asyncio.sleep(0)
        waiter = asyncio.create_task(store.find_tenant("acme"))
        await asyncio.sleep(0)

        waiter.cancel()
        await asyncio.sleep(0)
        lookup.release.set()

        assert (await leader).id == 1
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert lookup.calls == 1


class TestLookupFailure:
    async def test_error_propagates_and_is_not_cached(self):
        lookup = BrokenLookup()
        store = make_store(lookup)
        with pytest.raises(RuntimeError):
            await store.find_tenant("acme")
        with pytest.raises(RuntimeError):
            await store.find_tenant("acme")
        assert lookup.calls == 2


class TestFromSettings:
    async def test_uses_configured_field_and_conditions(self, test_settings, tenant_lookup):
        store = TenantStore.from_settings(test_settings, tenant_lookup)
        assert (await store.find_tenant("globex")).id == 2
        assert await store.find_tenant("dormant") is None

    async def test_redis_backed_store(self, test_settings, tenant_lookup, mock_redis):
        store = TenantStore.from_settings(
            test_settings, tenant_lookup, RedisResolutionCache(mock_redis)
        )
        await store.find_tenant("acme")
        other_worker = TenantStore.from_settings(
            test_settings, tenant_lookup, RedisResolutionCache(mock_redis)
        )
        tenant = await other_worker.find_tenant("acme")
        assert tenant.id == 1
        assert tenant_lookup.calls == 1
