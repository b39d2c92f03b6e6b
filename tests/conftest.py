# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Shared test fixtures for all TenantScope tests.
"""

import pytest
import fakeredis.aioredis

from tenant_scope.core.config import TenantScopeSettings
from tenant_scope.core.metrics import scope_metrics
from tenant_scope.core.tenant import Tenant, TenantContext
from tenant_scope.kernel.redis_client import inject_redis_for_test
from tenant_scope.kernel.tenant_store import InMemoryTenantLookup


@pytest.fixture(autouse=True)
def reset_metrics():
    scope_metrics.reset()
    yield
    scope_metrics.reset()


@pytest.fixture
def mock_redis():
    """Provide a FakeRedis async instance and inject it as the shared client."""
    r = fakeredis.aioredis.FakeRedis(decode_responses=True)
    inject_redis_for_test(r)
    yield r
    inject_redis_for_test(None)


@pytest.fixture
def test_settings() -> TenantScopeSettings:
    return TenantScopeSettings(
        _env_file=None,
        PRIMARY_DOMAIN="app.example.com",
        TENANT_DOMAIN_SUFFIX=".example.com",
        REDIRECT_INACTIVE="/inactive",
    )


@pytest.fixture
def tenant_lookup() -> InMemoryTenantLookup:
    """Three accounts: two active, one deactivated."""
    return InMemoryTenantLookup([
        {"id": 1, "name": "Acme", "domain": "acme", "active": True},
        {"id": 2, "name": "Globex", "domain": "globex", "active": True},
        {"id": 3, "name": "Dormant", "domain": "dormant", "active": False},
    ])


@pytest.fixture
def acme() -> TenantContext:
    return TenantContext.for_tenant(Tenant(id=1, name="Acme", domain="acme"))


@pytest.fixture
def globex() -> TenantContext:
    return TenantContext.for_tenant(Tenant(id=2, name="Globex", domain="globex"))


@pytest.fixture
def primary() -> TenantContext:
    return TenantContext.primary()
