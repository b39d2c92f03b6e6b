# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Error kinds raised by tenant resolution and scope enforcement.

An unresolved tenant is not an error: context building returns a
TenantUnresolved value and the middleware answers it with a redirect.
"""

from __future__ import annotations

from typing import Any, Optional


class TenantScopeError(Exception):
    """Base class for all TenantScope errors."""


class ConfigurationError(TenantScopeError):
    """Missing or invalid detection strategy / required configuration. Fatal."""


class ContextMisuseError(TenantScopeError):
    """A tenant-only accessor was used outside of a tenant context."""


_MISSING = object()


class DataScopeViolation(TenantScopeError):
    """
    A read, write or delete would cross a tenant boundary.

    Carries enough detail for audit logs: the acting tenant, the table,
    the ownership field and (for writes/deletes) the record's owner.
    """

    def __init__(
        self,
        message: str,
        *,
        tenant_id: Any = None,
        table: Optional[str] = None,
        field: Optional[str] = None,
        owner: Any = _MISSING,
        record_id: Any = None,
    ):
        self.tenant_id = tenant_id
        self.table = table
        self.field = field
        self.owner = None if owner is _MISSING else owner
        self.has_owner = owner is not _MISSING
        self.record_id = record_id
        self.message = message

        parts = [message]
        if tenant_id is not None:
            parts.append(f"tenant={tenant_id!r}")
        if table:
            parts.append(f"table={table}")
        if field:
            parts.append(f"field={field}")
        if self.has_owner:
            parts.append(f"owner={self.owner!r}")
        if record_id is not None:
            parts.append(f"record={record_id!r}")
        super().__init__(" ".join(parts))

    def to_dict(self) -> dict:
        data = {
            "tenant_id": self.tenant_id,
            "table": self.table,
            "field": self.field,
            "record_id": self.record_id,
        }
        if self.has_owner:
            data["owner"] = self.owner
        return data
