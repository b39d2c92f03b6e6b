# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Shared Scope — one table, every tenant sees and owns only its own rows.

Tenant context:
  read    → WHERE <field> = tenant.id
  insert  → <field> overwritten with tenant.id
  update  → rejected unless the row belongs to tenant.id
  delete  → rejected unless the row belongs to tenant.id
The global context is not restricted.
"""

from __future__ import annotations

from tenant_scope.core.tenant import TenantContext, same_owner
from tenant_scope.policies.base import (
    DEFAULT_FOREIGN_KEY_FIELD,
    ReadQuery,
    ScopeKind,
    UNSET,
    owners_to_check,
    set_owner,
    violation,
)


class SharedScope:
    kind = ScopeKind.SHARED

    def __init__(self, foreign_key_field: str = DEFAULT_FOREIGN_KEY_FIELD) -> None:
        self.foreign_key_field = foreign_key_field

    def before_read(self, ctx: TenantContext, query: ReadQuery) -> None:
        if ctx.is_tenant:
            query.restrict_to(self.foreign_key_field, [ctx.tenant_id])

    def before_write(self, ctx, entity, is_new, table, persisted_owner=UNSET) -> None:
        if not ctx.is_tenant:
            return
        if is_new:
            # Blind overwrite: callers cannot choose the owner of a new row.
            set_owner(entity, self.foreign_key_field, ctx.tenant_id)
            return
        self._check_owner(ctx, entity, table, persisted_owner)

    def before_delete(self, ctx, entity, table, persisted_owner=UNSET) -> None:
        if ctx.is_tenant:
            self._check_owner(ctx, entity, table, persisted_owner)

    def _check_owner(self, ctx, entity, table, persisted_owner) -> None:
        field = self.foreign_key_field
        for owner in owners_to_check(entity, field, persisted_owner):
            if not same_owner(owner, ctx.tenant_id):
                raise violation(
                    f"Tenant {ctx.tenant_id!r} does not own this {table} record",
                    ctx, table, field, entity, owner=owner,
                )
