# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
API Middleware — Tenant resolution and trace ID propagation.

TenantMiddleware builds the TenantContext for every request:
  - primary host          → global context
  - known, active tenant  → tenant context
  - unknown / inactive    → redirect, the inner app is never called
The context is stored on request.state.tenant_context and bound for the
rest of the request (ORM hooks read it from there).
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from tenant_scope.core.metrics import scope_metrics
from tenant_scope.core.scope import bind_context
from tenant_scope.core.tenant import TenantUnresolved
from tenant_scope.kernel.context_builder import build_context, inactive_redirect_url
from tenant_scope.kernel.resolver import ContextResolver, RequestDescriptor
from tenant_scope.kernel.tenant_store import TenantStore

logger = logging.getLogger("tenantscope.middleware")


class TenantMiddleware(BaseHTTPMiddleware):
    """
    Resolves the tenant for each request.

    The resolver and store are built once at startup; a missing detection
    strategy fails there with ConfigurationError, never per request.
    """

    def __init__(
        self,
        app,
        resolver: ContextResolver,
        store: TenantStore,
        primary_domain: str,
        redirect_inactive: str = "/",
        redirect_status: int = 302,
    ) -> None:
        super().__init__(app)
        self.resolver = resolver
        self.store = store
        self.primary_domain = primary_domain
        self.redirect_inactive = redirect_inactive
        self.redirect_status = redirect_status

    async def dispatch(self, request: Request, call_next):
        descriptor = RequestDescriptor.from_request(request)
        trace_id = getattr(request.state, "trace_id", None)
        result = await build_context(descriptor, self.resolver, self.store)

        if isinstance(result, TenantUnresolved):
            location = inactive_redirect_url(
                self.redirect_inactive, self.primary_domain, descriptor.scheme
            )
            scope_metrics.inc("redirect_inactive")
            logger.warning(
                "[tenant] unresolved host=%s reason=%s → %s",
                descriptor.host, result.reason, location,
                extra={"qualifier": result.qualifier, "trace_id": trace_id},
            )
            return RedirectResponse(location, status_code=self.redirect_status)

        request.state.tenant_context = result
        logger.debug(
            "[tenant] %s host=%s",
            result.kind.value, descriptor.host,
            extra={
                "tenant_id": None if result.is_primary else result.tenant_id,
                "trace_id": trace_id,
            },
        )
        with bind_context(result):
            return await call_next(request)


class TraceMiddleware(BaseHTTPMiddleware):
    """
    Generates or propagates X-Trace-Id header for every request.
    Also logs request duration with the resolved tenant.
    """

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get("X-Trace-Id", str(uuid.uuid4()))
        request.state.trace_id = trace_id

        start = time.time()
        response: Response = await call_next(request)
        elapsed = (time.time() - start) * 1000

        response.headers["X-Trace-Id"] = trace_id
        ctx = getattr(request.state, "tenant_context", None)
        tenant_id: Optional[object] = None
        if ctx is not None and ctx.is_tenant:
            tenant_id = ctx.tenant_id
        logger.info(
            "[api] %s %s → %d (%.0fms) trace=%s",
            request.method, request.url.path,
            response.status_code, elapsed, trace_id,
            extra={"trace_id": trace_id, "tenant_id": tenant_id},
        )
        return response
