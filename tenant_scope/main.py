# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
TenantScope Application Entry Point.

Reference host app: FastAPI with tenant resolution middleware, scope
error handlers, ORM scope hooks and a few introspection routes.

    uvicorn --factory tenant_scope.main:create_app
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI

from tenant_scope.api.deps import get_tenant_context, require_tenant
from tenant_scope.api.errors import register_error_handlers
from tenant_scope.api.middleware import TenantMiddleware, TraceMiddleware
from tenant_scope.core.config import TenantScopeSettings, settings as default_settings
from tenant_scope.core.logging import setup_logging
from tenant_scope.core.metrics import scope_metrics
from tenant_scope.core.tenant import Tenant, TenantContext
from tenant_scope.kernel.cache import ResolutionCache, build_cache
from tenant_scope.kernel.redis_client import close_redis_client
from tenant_scope.kernel.resolver import ContextResolver
from tenant_scope.kernel.tenant_store import TenantLookup, TenantStore
from tenant_scope.storage.database import close_db
from tenant_scope.storage.hooks import ScopeRegistry, install_scope_hooks, scope_registry
from tenant_scope.storage.lookup import SqlTenantLookup

logger = logging.getLogger("tenantscope.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup/shutdown of shared resources."""
    setup_logging(app.state.settings.LOG_LEVEL)
    logger.info("[TenantScope] Ready")
    yield
    await close_redis_client()
    await close_db()
    logger.info("[TenantScope] Shutdown complete")


def create_app(
    settings: Optional[TenantScopeSettings] = None,
    *,
    lookup: Optional[TenantLookup] = None,
    cache: Optional[ResolutionCache] = None,
    registry: ScopeRegistry = scope_registry,
) -> FastAPI:
    """
    Wire resolver, store, middleware and hooks from settings.

    Raises ConfigurationError immediately when detection is misconfigured.
    """
    settings = settings or default_settings

    resolver = ContextResolver.from_settings(settings)
    store = TenantStore.from_settings(
        settings,
        lookup if lookup is not None else SqlTenantLookup.from_settings(settings),
        cache if cache is not None else build_cache(settings),
    )
    install_scope_hooks(registry)

    app = FastAPI(
        title="TenantScope",
        description="Multi-tenant resolution and data scoping",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.tenant_store = store
    app.state.resolver = resolver

    # ── Middleware (last added runs first) ───────────────────────
    app.add_middleware(
        TenantMiddleware,
        resolver=resolver,
        store=store,
        primary_domain=settings.PRIMARY_DOMAIN,
        redirect_inactive=settings.REDIRECT_INACTIVE,
        redirect_status=settings.REDIRECT_STATUS,
    )
    app.add_middleware(TraceMiddleware)

    # ── Error Handlers ──────────────────────────────────────────
    register_error_handlers(app)

    # ── Routes ──────────────────────────────────────────────────
    @app.get("/health")
    async def health_check():
        return {"status": "ok", "version": "0.1.0"}

    @app.get("/api/metrics")
    async def get_metrics():
        return scope_metrics.snapshot()

    @app.get("/api/context")
    async def get_context(ctx: TenantContext = Depends(get_tenant_context)):
        if ctx.is_primary:
            return {"context": ctx.kind.value, "tenant": None}
        return {"context": ctx.kind.value, "tenant": ctx.tenant.model_dump(mode="json")}

    @app.get("/api/tenant")
    async def get_tenant(tenant: Tenant = Depends(require_tenant)):
        return tenant.model_dump(mode="json")

    return app
