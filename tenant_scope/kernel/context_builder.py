# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Context Builder — one TenantContext per inbound request.

    primary host        → TenantContext.primary()
    known, active host  → TenantContext.for_tenant(tenant)
    anything else       → TenantUnresolved (answered with a redirect)
"""

from __future__ import annotations

from typing import Union
from urllib.parse import urlsplit

from tenant_scope.core.tenant import ContextKind, TenantContext, TenantUnresolved
from tenant_scope.kernel.resolver import ContextResolver, RequestDescriptor
from tenant_scope.kernel.tenant_store import TenantStore


async def build_context(
    request: RequestDescriptor,
    resolver: ContextResolver,
    store: TenantStore,
) -> Union[TenantContext, TenantUnresolved]:
    """Resolve the request's context. Unknown tenants are a value, not an error."""
    if not request.host:
        return TenantUnresolved(qualifier="", reason="missing_host")

    qualifier = resolver.resolve_qualifier(request.host)
    if resolver.classify(qualifier) is ContextKind.GLOBAL:
        return TenantContext.primary()

    tenant = await store.find_tenant(qualifier)
    if tenant is None:
        return TenantUnresolved(qualifier=qualifier)
    return TenantContext.for_tenant(tenant)


def inactive_redirect_url(destination: str, primary_domain: str, scheme: str) -> str:
    """
    Where to send requests for unknown or inactive tenants.

    An absolute http(s) URL is used as-is; anything else is treated as a
    path on the primary domain, using the inbound request's scheme.

        inactive_redirect_url("/signup", "app.example.com", "https")
            -> "https://app.example.com/signup"
    """
    destination = (destination or "").strip()
    parts = urlsplit(destination)
    if parts.scheme in ("http", "https") and parts.netloc:
        return destination
    if not destination.startswith("/"):
        destination = "/" + destination
    return f"{scheme or 'http'}://{primary_domain}{destination}"
