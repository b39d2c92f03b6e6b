# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Mixed Scope — tenant rows plus a global baseline every tenant can read.

Rows owned by ``global_value`` are visible to all tenants but may only be
changed by the tenant whose id *is* the global value (or from the global
context).

Tenant context:
  read    → WHERE <field> IN (global_value, tenant.id)
  insert  → <field> overwritten with tenant.id
  update  → rejected for global rows (unless tenant.id == global_value),
            then rejected unless the row belongs to tenant.id
  delete  → same two checks as update
"""

from __future__ import annotations

from typing import Any

from tenant_scope.core.tenant import TenantContext, same_owner
from tenant_scope.policies.base import (
    DEFAULT_FOREIGN_KEY_FIELD,
    DEFAULT_GLOBAL_VALUE,
    ReadQuery,
    ScopeKind,
    UNSET,
    owners_to_check,
    set_owner,
    violation,
)


class MixedScope:
    kind = ScopeKind.MIXED

    def __init__(
        self,
        foreign_key_field: str = DEFAULT_FOREIGN_KEY_FIELD,
        global_value: Any = DEFAULT_GLOBAL_VALUE,
    ) -> None:
        self.foreign_key_field = foreign_key_field
        self.global_value = global_value

    def before_read(self, ctx: TenantContext, query: ReadQuery) -> None:
        if ctx.is_tenant:
            query.restrict_to(self.foreign_key_field, [self.global_value, ctx.tenant_id])

    def before_write(self, ctx, entity, is_new, table, persisted_owner=UNSET) -> None:
        if not ctx.is_tenant:
            return
        if is_new:
            # Blind overwrite: callers cannot choose the owner of a new row.
            set_owner(entity, self.foreign_key_field, ctx.tenant_id)
            return
        self._check_owner(ctx, entity, table, persisted_owner, "update")

    def before_delete(self, ctx, entity, table, persisted_owner=UNSET) -> None:
        if ctx.is_tenant:
            self._check_owner(ctx, entity, table, persisted_owner, "delete")

    def _check_owner(self, ctx, entity, table, persisted_owner, action: str) -> None:
        field = self.foreign_key_field
        owns_global = same_owner(ctx.tenant_id, self.global_value)
        for owner in owners_to_check(entity, field, persisted_owner):
            if same_owner(owner, self.global_value) and not owns_global:
                raise violation(
                    f"Tenant cannot {action} global records",
                    ctx, table, field, entity, owner=owner,
                )
            if not same_owner(owner, ctx.tenant_id):
                raise violation(
                    f"Tenant {ctx.tenant_id!r} does not own this {table} record",
                    ctx, table, field, entity, owner=owner,
                )
