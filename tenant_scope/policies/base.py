# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Scope Policy — the per-table contract between the data layer and tenancy.

The data layer calls three hooks:
  before_read(ctx, query)            may append ownership criteria to query
  before_write(ctx, entity, is_new)  may stamp the ownership field, or reject
  before_delete(ctx, entity)         may reject

A rejected operation raises DataScopeViolation; nothing is auto-corrected.
Ownership values are compared with same_owner() (strict type + value).

Entities are ORM instances (attribute access) or mutable mappings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, MutableMapping, Optional, Protocol, Tuple

from tenant_scope.core.errors import DataScopeViolation
from tenant_scope.core.metrics import VIOLATION_PREFIX, scope_metrics
from tenant_scope.core.tenant import TenantContext, same_owner

logger = logging.getLogger("tenantscope.policy")

DEFAULT_FOREIGN_KEY_FIELD = "account_id"
DEFAULT_GLOBAL_VALUE = 0


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Marks "persisted owner not supplied" (None is a legitimate owner value).
UNSET: Any = _Unset()


class ScopeKind(str, Enum):
    GLOBAL = "global"
    EXCLUSIVE = "exclusive"
    SHARED = "shared"
    MIXED = "mixed"


@dataclass(frozen=True)
class ScopeDescriptor:
    """Static scope configuration attached to one table."""

    kind: ScopeKind
    foreign_key_field: str = DEFAULT_FOREIGN_KEY_FIELD
    global_value: Any = DEFAULT_GLOBAL_VALUE

    @classmethod
    def from_settings(cls, kind, settings, **overrides: Any) -> "ScopeDescriptor":
        """Table overrides merged over the SCOPE_* defaults."""
        values = {
            "foreign_key_field": settings.SCOPE_FOREIGN_KEY_FIELD,
            "global_value": settings.SCOPE_GLOBAL_VALUE,
        }
        values.update(overrides)
        return cls(ScopeKind(kind), **values)


@dataclass(frozen=True)
class OwnershipCriterion:
    """``field IN values`` (a single value renders as equality)."""

    field: str
    values: Tuple[Any, ...]

    def matches(self, row: Any) -> bool:
        owner = get_owner(row, self.field)
        return any(same_owner(owner, value) for value in self.values)


@dataclass
class ReadQuery:
    """Mutable read descriptor handed to before_read."""

    table: str
    criteria: List[OwnershipCriterion] = field(default_factory=list)

    def restrict_to(self, field_name: str, values: Iterable[Any]) -> None:
        unique: List[Any] = []
        for value in values:
            if not any(same_owner(value, seen) for seen in unique):
                unique.append(value)
        self.criteria.append(OwnershipCriterion(field_name, tuple(unique)))

    @property
    def is_restricted(self) -> bool:
        return bool(self.criteria)

    def matches(self, row: Any) -> bool:
        return all(criterion.matches(row) for criterion in self.criteria)

    def apply(self, rows: Iterable[Any]) -> list:
        """Filter already-loaded rows (for non-SQL data sources)."""
        return [row for row in rows if self.matches(row)]


class ScopePolicy(Protocol):
    kind: ScopeKind

    def before_read(self, ctx: TenantContext, query: ReadQuery) -> None:
        ...

    def before_write(
        self,
        ctx: TenantContext,
        entity: Any,
        is_new: bool,
        table: str,
        persisted_owner: Any = UNSET,
    ) -> None:
        ...

    def before_delete(
        self,
        ctx: TenantContext,
        entity: Any,
        table: str,
        persisted_owner: Any = UNSET,
    ) -> None:
        ...


# ── Entity helpers ──────────────────────────────────────────

_ABSENT = object()


def _raw(entity: Any, field_name: str) -> Any:
    if isinstance(entity, MutableMapping):
        return entity.get(field_name, _ABSENT)
    return getattr(entity, field_name, _ABSENT)


def has_owner_field(entity: Any, field_name: str) -> bool:
    return _raw(entity, field_name) is not _ABSENT


def get_owner(entity: Any, field_name: str) -> Any:
    value = _raw(entity, field_name)
    return None if value is _ABSENT else value


def set_owner(entity: Any, field_name: str, value: Any) -> None:
    if isinstance(entity, MutableMapping):
        entity[field_name] = value
    else:
        setattr(entity, field_name, value)


def record_id(entity: Any) -> Any:
    return get_owner(entity, "id")


def violation(
    message: str,
    ctx: TenantContext,
    table: str,
    field_name: Optional[str] = None,
    entity: Any = None,
    owner: Any = UNSET,
) -> DataScopeViolation:
    """Build (and log) a DataScopeViolation for the current tenant."""
    kwargs = {}
    if owner is not UNSET:
        kwargs["owner"] = owner
    exc = DataScopeViolation(
        message,
        tenant_id=ctx.tenant_id,
        table=table,
        field=field_name,
        record_id=record_id(entity) if entity is not None else None,
        **kwargs,
    )
    scope_metrics.inc(f"{VIOLATION_PREFIX}{table}")
    logger.warning(
        "Scope violation: %s",
        exc,
        extra={"tenant_id": ctx.tenant_id, "table": table},
    )
    return exc


def owners_to_check(entity: Any, field_name: str, persisted_owner: Any) -> List[Any]:
    """Current owner, plus the stored owner when the data layer supplied it."""
    owners = [get_owner(entity, field_name)]
    if persisted_owner is not UNSET:
        owners.insert(0, persisted_owner)
    return owners
