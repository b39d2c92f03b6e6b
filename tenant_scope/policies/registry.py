# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""Policy factory — ScopeDescriptor → ScopePolicy instance."""

from __future__ import annotations

from typing import Callable, Dict

from tenant_scope.policies.base import ScopeDescriptor, ScopeKind, ScopePolicy
from tenant_scope.policies.exclusive import ExclusiveScope
from tenant_scope.policies.global_scope import GlobalScope
from tenant_scope.policies.mixed import MixedScope
from tenant_scope.policies.shared import SharedScope

# Each variant receives only the descriptor fields it uses.
_POLICIES: Dict[ScopeKind, Callable[[ScopeDescriptor], ScopePolicy]] = {
    ScopeKind.GLOBAL: lambda d: GlobalScope(),
    ScopeKind.EXCLUSIVE: lambda d: ExclusiveScope(d.foreign_key_field),
    ScopeKind.SHARED: lambda d: SharedScope(d.foreign_key_field),
    ScopeKind.MIXED: lambda d: MixedScope(d.foreign_key_field, d.global_value),
}


def build_policy(descriptor: ScopeDescriptor) -> ScopePolicy:
    return _POLICIES[ScopeKind(descriptor.kind)](descriptor)
