# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Exclusive Scope ("no scope") — reads are not filtered.

In a tenant context a new row whose ownership field exists but is empty
gets stamped with the current tenant. An explicit owner is kept as-is.
"""

from __future__ import annotations

from tenant_scope.core.tenant import TenantContext
from tenant_scope.policies.base import (
    DEFAULT_FOREIGN_KEY_FIELD,
    ReadQuery,
    ScopeKind,
    UNSET,
    get_owner,
    has_owner_field,
    set_owner,
)


class ExclusiveScope:
    kind = ScopeKind.EXCLUSIVE

    def __init__(self, foreign_key_field: str = DEFAULT_FOREIGN_KEY_FIELD) -> None:
        self.foreign_key_field = foreign_key_field

    def before_read(self, ctx: TenantContext, query: ReadQuery) -> None:
        return None

    def before_write(self, ctx, entity, is_new, table, persisted_owner=UNSET) -> None:
        if not ctx.is_tenant or not is_new:
            return
        field = self.foreign_key_field
        if has_owner_field(entity, field) and get_owner(entity, field) is None:
            set_owner(entity, field, ctx.tenant_id)

    def before_delete(self, ctx, entity, table, persisted_owner=UNSET) -> None:
        return None
