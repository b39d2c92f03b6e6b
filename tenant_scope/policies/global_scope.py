# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""Global Scope — operator-only tables, unreachable from any tenant."""

from __future__ import annotations

from tenant_scope.core.tenant import TenantContext
from tenant_scope.policies.base import ReadQuery, ScopeKind, UNSET, violation


class GlobalScope:
    kind = ScopeKind.GLOBAL

    def before_read(self, ctx: TenantContext, query: ReadQuery) -> None:
        if ctx.is_tenant:
            raise violation("Tenant cannot query global records", ctx, query.table)

    def before_write(self, ctx, entity, is_new, table, persisted_owner=UNSET) -> None:
        if ctx.is_tenant:
            raise violation("Tenant cannot save global records", ctx, table, entity=entity)

    def before_delete(self, ctx, entity, table, persisted_owner=UNSET) -> None:
        if ctx.is_tenant:
            raise violation("Tenant cannot delete global records", ctx, table, entity=entity)
