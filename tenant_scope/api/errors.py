# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
API Error Handling — Unified error structure for scope failures.

DataScopeViolation → 403, ContextMisuseError → 500. ConfigurationError is
deliberately left unhandled: it is a deployment fault, not a request outcome.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tenant_scope.core.errors import ContextMisuseError, DataScopeViolation


def _error_body(
    request: Request,
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    return {
        "code": code,
        "message": message,
        "trace_id": getattr(request.state, "trace_id", None) or str(uuid.uuid4()),
        "details": details or {},
    }


async def scope_violation_handler(request: Request, exc: DataScopeViolation) -> JSONResponse:
    """Rejected cross-tenant read/write/delete."""
    return JSONResponse(
        status_code=403,
        content=_error_body(request, "DATA_SCOPE_VIOLATION", exc.message, exc.to_dict()),
    )


async def context_misuse_handler(request: Request, exc: ContextMisuseError) -> JSONResponse:
    """Tenant-only code reached from the primary domain (a programming error)."""
    return JSONResponse(
        status_code=500,
        content=_error_body(request, "CONTEXT_MISUSE", str(exc)),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DataScopeViolation, scope_violation_handler)
    app.add_exception_handler(ContextMisuseError, context_misuse_handler)
