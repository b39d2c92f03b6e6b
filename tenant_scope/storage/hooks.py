# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
ORM Scope Hooks — enforce table scope policies through SQLAlchemy events.

  do_orm_execute  SELECT           → before_read, criteria applied with
                                     with_loader_criteria (aliases included)
                  INSERT/UPDATE/DELETE statements on a policed table in
                  tenant context → DataScopeViolation (use entities)
  before_flush    session.new      → before_write(is_new=True)
                  session.dirty    → before_write(is_new=False)
                  session.deleted  → before_delete

The context comes from ``session.info["tenant_context"]`` when set, else
from the request binding (tenant_scope.core.scope). Statements executed
with ``execution_options(skip_tenant_check=True)`` are never scoped.

Usage:
    scope_registry.register(Note, "shared")
    install_scope_hooks(scope_registry)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, with_loader_criteria

from tenant_scope.core.errors import ConfigurationError, ContextMisuseError
from tenant_scope.core.scope import get_bound_context
from tenant_scope.core.tenant import TenantContext
from tenant_scope.policies.base import (
    ReadQuery,
    ScopeDescriptor,
    ScopeKind,
    ScopePolicy,
    UNSET,
    violation,
)
from tenant_scope.policies.registry import build_policy

logger = logging.getLogger("tenantscope.hooks")

SKIP_TENANT_CHECK = "skip_tenant_check"
SESSION_CONTEXT_KEY = "tenant_context"


def _table_name(model: type) -> str:
    table = getattr(model, "__table__", None)
    return getattr(table, "name", None) or model.__name__


def context_for_session(session: Session) -> TenantContext:
    """The context scoped statements of ``session`` run under."""
    ctx = session.info.get(SESSION_CONTEXT_KEY) or get_bound_context()
    if ctx is None:
        raise ContextMisuseError(
            "Scoped table accessed without a tenant context; bind one with "
            "bind_context() or session.info['tenant_context']"
        )
    return ctx


class ScopeRegistry:
    """
    Mapped class → ScopePolicy.

    Models can also declare ``__tenant_scope__ = ScopeDescriptor(...)``;
    it is picked up the first time the model is seen.
    """

    def __init__(self, settings=None) -> None:
        self._settings = settings
        self._policies: Dict[type, ScopePolicy] = {}
        # Stable listener objects so install/uninstall can find them again.
        self._execute_listener = self._on_execute
        self._flush_listener = self._on_before_flush

    def descriptor(self, kind: Union[str, ScopeKind], **overrides: Any) -> ScopeDescriptor:
        if self._settings is not None:
            return ScopeDescriptor.from_settings(kind, self._settings, **overrides)
        return ScopeDescriptor(ScopeKind(kind), **overrides)

    def register(
        self,
        model: type,
        scope: Union[str, ScopeKind, ScopeDescriptor],
        **overrides: Any,
    ) -> ScopePolicy:
        descriptor = scope if isinstance(scope, ScopeDescriptor) else self.descriptor(scope, **overrides)
        policy = build_policy(descriptor)
        field = getattr(policy, "foreign_key_field", None)
        # Exclusive tables may omit the column; the others filter on it.
        if field and policy.kind is not ScopeKind.EXCLUSIVE and not hasattr(model, field):
            raise ConfigurationError(
                f"{_table_name(model)} has no ownership field {field!r}"
            )
        self._policies[model] = policy
        logger.info(
            "Registered %s scope on %s", descriptor.kind.value, _table_name(model),
            extra={"table": _table_name(model)},
        )
        return policy

    def scoped(self, scope: Union[str, ScopeKind], **overrides: Any):
        """Class decorator form of register()."""
        def decorator(model: type) -> type:
            self.register(model, scope, **overrides)
            return model
        return decorator

    def policy_for(self, model: type) -> Optional[ScopePolicy]:
        for cls in getattr(model, "__mro__", (model,)):
            policy = self._policies.get(cls)
            if policy is not None:
                return policy
        descriptor = getattr(model, "__tenant_scope__", None)
        if isinstance(descriptor, ScopeDescriptor):
            return self.register(model, descriptor)
        return None

    def clear(self) -> None:
        self._policies.clear()

    # ── Event handlers ──────────────────────────────────────────

    def _on_execute(self, orm_execute_state) -> None:
        if orm_execute_state.execution_options.get(SKIP_TENANT_CHECK, False):
            return
        if not (
            orm_execute_state.is_select
            or orm_execute_state.is_insert
            or orm_execute_state.is_update
            or orm_execute_state.is_delete
        ):
            return

        scoped = []
        for mapper in orm_execute_state.all_mappers:
            policy = self.policy_for(mapper.class_)
            if policy is not None:
                scoped.append((mapper.class_, policy))
        if not scoped:
            return

        ctx = context_for_session(orm_execute_state.session)

        if not orm_execute_state.is_select:
            if ctx.is_tenant:
                for model, policy in scoped:
                    if policy.kind is not ScopeKind.EXCLUSIVE:
                        raise violation(
                            "Bulk INSERT/UPDATE/DELETE is not allowed on scoped tables "
                            "from a tenant context",
                            ctx,
                            _table_name(model),
                        )
            return

        options = []
        for model, policy in scoped:
            query = ReadQuery(table=_table_name(model))
            policy.before_read(ctx, query)
            for criterion in query.criteria:
                column = getattr(model, criterion.field)
                if len(criterion.values) == 1:
                    clause = column == criterion.values[0]
                else:
                    clause = column.in_(criterion.values)
                options.append(with_loader_criteria(model, clause, include_aliases=True))
        if options:
            orm_execute_state.statement = orm_execute_state.statement.options(*options)

    def _on_before_flush(self, session: Session, flush_context, instances) -> None:
        ctx: Optional[TenantContext] = None

        def _ctx() -> TenantContext:
            nonlocal ctx
            if ctx is None:
                ctx = context_for_session(session)
            return ctx

        for obj in list(session.new):
            policy = self.policy_for(type(obj))
            if policy is not None:
                policy.before_write(_ctx(), obj, True, _table_name(type(obj)))

        for obj in list(session.dirty):
            policy = self.policy_for(type(obj))
            if policy is None or not session.is_modified(obj):
                continue
            policy.before_write(
                _ctx(), obj, False, _table_name(type(obj)),
                persisted_owner=_persisted_owner(obj, policy),
            )

        for obj in list(session.deleted):
            policy = self.policy_for(type(obj))
            if policy is not None:
                policy.before_delete(
                    _ctx(), obj, _table_name(type(obj)),
                    persisted_owner=_persisted_owner(obj, policy),
                )


def _persisted_owner(obj: Any, policy: ScopePolicy) -> Any:
    """Ownership value as loaded from the database, or UNSET if unknown."""
    field = getattr(policy, "foreign_key_field", None)
    if not field:
        return UNSET
    state = inspect(obj)
    if field not in state.attrs:
        return UNSET
    history = state.attrs[field].history
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    return UNSET


# ── Installation ────────────────────────────────────────────

def install_scope_hooks(registry: ScopeRegistry, session_class: Any = Session) -> None:
    """Attach the registry's listeners to ``session_class`` (idempotent)."""
    if not event.contains(session_class, "do_orm_execute", registry._execute_listener):
        event.listen(session_class, "do_orm_execute", registry._execute_listener)
    if not event.contains(session_class, "before_flush", registry._flush_listener):
        event.listen(session_class, "before_flush", registry._flush_listener)


def uninstall_scope_hooks(registry: ScopeRegistry, session_class: Any = Session) -> None:
    if event.contains(session_class, "do_orm_execute", registry._execute_listener):
        event.remove(session_class, "do_orm_execute", registry._execute_listener)
    if event.contains(session_class, "before_flush", registry._flush_listener):
        event.remove(session_class, "before_flush", registry._flush_listener)


# Global singleton
scope_registry = ScopeRegistry()
