# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Namespace Helper — Redis key layout for the resolution cache.

All keys are namespaced: tenantscope:{resource_type}:{resource_id}
"""

from __future__ import annotations

KEY_PREFIX = "tenantscope"


def get_key(resource_type: str, resource_id: str) -> str:
    """
    Build a namespaced Redis key.

    Examples:
        get_key("tenant", "acme") -> "tenantscope:tenant:acme"
    """
    return f"{KEY_PREFIX}:{resource_type}:{resource_id}"


def get_tenant_key(qualifier: str) -> str:
    """
    Build the resolution cache key for a qualifier.

    Example:
        get_tenant_key("acme") -> "tenantscope:tenant:acme"
    """
    return get_key("tenant", qualifier)


def get_tenant_pattern() -> str:
    """Match pattern covering every resolution cache key."""
    return get_key("tenant", "*")
