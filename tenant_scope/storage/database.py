# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Database Connection Management — Async SQLAlchemy 2.0 engine and tenant-pinned sessions.

A session opened with tenant_session(ctx), or handed out by the get_db
dependency, carries its TenantContext in ``session.info``. The scope hooks
(tenant_scope.storage.hooks) read it from there before falling back to the
context bound for the current request.
"""

from __future__ import annotations

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from starlette.requests import Request

from tenant_scope.core.config import settings
from tenant_scope.core.tenant import TenantContext
from tenant_scope.storage.hooks import SESSION_CONTEXT_KEY


class Base(DeclarativeBase):
    """Declarative base for the tenant table and host models that opt into scoping."""
    pass


# ── Engine & Session Factory ────────────────────────────────

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _make_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine(url: Optional[str] = None) -> AsyncEngine:
    """Engine singleton. ``url`` overrides DATABASE_URL on first creation only."""
    global _engine
    if _engine is None:
        _engine = create_async_engine(url or settings.DATABASE_URL, pool_pre_ping=True)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = _make_factory(get_engine())
    return _session_factory


def tenant_session(
    ctx: Optional[TenantContext] = None,
    factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncSession:
    """
    Open a session pinned to ``ctx``.

    Without ``ctx`` every statement runs under whatever context is bound
    at the time it executes (see tenant_scope.core.scope).
    """
    factory = factory or get_session_factory()
    info = {SESSION_CONTEXT_KEY: ctx} if ctx is not None else {}
    return factory(info=info)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: a session pinned to the request's context, committed on success."""
    ctx = getattr(request.state, "tenant_context", None)
    async with tenant_session(ctx) as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Lifecycle ───────────────────────────────────────────────

async def close_db() -> None:
    """Dispose engine on shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


# ── Test Support ────────────────────────────────────────────

def override_engine_for_test(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Inject a test engine (e.g. aiosqlite) and return its session factory."""
    global _engine, _session_factory
    _engine = engine
    _session_factory = _make_factory(engine)
    return _session_factory
