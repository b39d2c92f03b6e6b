# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
SQL Tenant Lookup — backing store for TenantStore cache misses.

The query is flagged with ``skip_tenant_check`` so the scope hooks leave it
alone: resolving the tenant is by definition a global-context read.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from sqlalchemy import Table, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenant_scope.core.errors import ConfigurationError
from tenant_scope.storage.database import Base, get_session_factory
from tenant_scope.storage.hooks import SKIP_TENANT_CHECK

# Import models so the default tenant table is registered on Base.metadata
import tenant_scope.storage.models  # noqa


class SqlTenantLookup:
    """
    Zero-or-one row lookup against the tenant table.

    Args:
        table: a Table or a mapped class (its ``__table__`` is used).
        session_factory: async sessionmaker; resolved lazily when omitted.
    """

    def __init__(
        self,
        table: Union[Table, Any],
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ) -> None:
        self._table: Table = getattr(table, "__table__", table)
        self._session_factory = session_factory

    @classmethod
    def from_settings(
        cls, settings, session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    ) -> "SqlTenantLookup":
        table = Base.metadata.tables.get(settings.TENANT_TABLE)
        if table is None:
            raise ConfigurationError(
                f"Tenant table {settings.TENANT_TABLE!r} is not mapped"
            )
        return cls(table, session_factory)

    def _column(self, name: str):
        if name not in self._table.c:
            raise ConfigurationError(
                f"Tenant table {self._table.name!r} has no column {name!r}"
            )
        return self._table.c[name]

    async def find_one(
        self, field: str, value: str, conditions: Mapping[str, Any]
    ) -> Optional[Mapping[str, Any]]:
        stmt = select(self._table).where(self._column(field) == value)
        for name, expected in conditions.items():
            stmt = stmt.where(self._column(name) == expected)
        stmt = stmt.limit(1).execution_options(**{SKIP_TENANT_CHECK: True})

        factory = self._session_factory or get_session_factory()
        async with factory() as session:
            result = await session.execute(stmt)
            row = result.mappings().first()
        return dict(row) if row is not None else None
