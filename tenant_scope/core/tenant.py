# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Tenant Context — Multi-tenancy support.

A request runs either in the primary (global) context or on behalf of one
tenant. TenantContext carries that decision through the call chain; it is
built once per request and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Mapping, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Strict, StrictInt, StrictStr

from tenant_scope.core.errors import ContextMisuseError

# int, str or UUID primary keys; never coerced between them.
TenantId = Union[StrictInt, StrictStr, Annotated[UUID, Strict()]]


def same_owner(left: Any, right: Any) -> bool:
    """
    Ownership equality used by every scope check.

    Values match only when their types are identical and the values are
    equal: 0 never matches "0", and True never matches 1.
    """
    return type(left) is type(right) and left == right


class Tenant(BaseModel):
    """
    Read-only snapshot of a row from the host application's tenant table.

    Only ``id`` is required (int, str or UUID); any other column is kept as
    an extra attribute.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    id: TenantId

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Tenant":
        if "id" not in row:
            raise ValueError("tenant row has no 'id' column")
        return cls.model_validate(dict(row))

    def get(self, key: str, default: Any = None) -> Any:
        if key == "id":
            return self.id
        return (self.model_extra or {}).get(key, default)

    def __repr__(self) -> str:
        return f"Tenant(id={self.id!r})"


class ContextKind(str, Enum):
    GLOBAL = "global"
    TENANT = "tenant"


@dataclass(frozen=True)
class TenantContext:
    """Immutable request-scoped context: global, or one tenant."""

    kind: ContextKind
    _tenant: Optional[Tenant] = None

    def __post_init__(self):
        if self.kind is ContextKind.TENANT and self._tenant is None:
            raise ValueError("tenant context requires a tenant")
        if self.kind is ContextKind.GLOBAL and self._tenant is not None:
            raise ValueError("global context cannot carry a tenant")

    @classmethod
    def primary(cls) -> "TenantContext":
        return cls(ContextKind.GLOBAL)

    @classmethod
    def for_tenant(cls, tenant: Tenant) -> "TenantContext":
        return cls(ContextKind.TENANT, tenant)

    @property
    def is_primary(self) -> bool:
        return self.kind is ContextKind.GLOBAL

    @property
    def is_tenant(self) -> bool:
        return self.kind is ContextKind.TENANT

    @property
    def tenant(self) -> Tenant:
        """The current tenant. Raises ContextMisuseError in the global context."""
        if self._tenant is None:
            raise ContextMisuseError(
                "tenant() cannot be called from the primary domain context"
            )
        return self._tenant

    @property
    def tenant_id(self) -> Any:
        return self.tenant.id

    def __repr__(self) -> str:
        if self._tenant is None:
            return "TenantContext(global)"
        return f"TenantContext(tenant={self._tenant.id!r})"


@dataclass(frozen=True)
class TenantUnresolved:
    """The request named a tenant that does not exist or is inactive."""

    qualifier: str
    reason: str = "not_found"
