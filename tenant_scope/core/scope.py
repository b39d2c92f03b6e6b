# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Request-scoped binding of the current TenantContext.

The middleware binds the context for the lifetime of one request; code
deeper in the stack (ORM hooks, helpers) reads it back with
current_context(). Each asyncio task sees its own value.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from tenant_scope.core.errors import ContextMisuseError
from tenant_scope.core.tenant import TenantContext

_current: ContextVar[Optional[TenantContext]] = ContextVar(
    "tenant_scope_context", default=None
)


@contextmanager
def bind_context(ctx: TenantContext) -> Iterator[TenantContext]:
    """Bind ``ctx`` as the current context until the block exits."""
    token = _current.set(ctx)
    try:
        yield ctx
    finally:
        _current.reset(token)


def get_bound_context() -> Optional[TenantContext]:
    """Return the bound context, or None outside of any binding."""
    return _current.get()


def current_context() -> TenantContext:
    """Return the bound context, raising if none is bound."""
    ctx = _current.get()
    if ctx is None:
        raise ContextMisuseError(
            "No tenant context bound. Wrap the call in bind_context() "
            "or run it behind TenantMiddleware."
        )
    return ctx
