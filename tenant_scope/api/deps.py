# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
API Dependencies — FastAPI dependency injection.
"""

from __future__ import annotations

from fastapi import Request

from tenant_scope.core.errors import ContextMisuseError
from tenant_scope.core.tenant import Tenant, TenantContext


async def get_tenant_context(request: Request) -> TenantContext:
    """
    The context TenantMiddleware resolved for this request.

    Raises ContextMisuseError when the route is not behind TenantMiddleware.
    """
    ctx = getattr(request.state, "tenant_context", None)
    if ctx is None:
        raise ContextMisuseError("Request was not processed by TenantMiddleware")
    return ctx


async def require_tenant(request: Request) -> Tenant:
    """
    The current tenant, for tenant-only routes.

    Raises ContextMisuseError on the primary domain.
    """
    ctx = await get_tenant_context(request)
    return ctx.tenant
