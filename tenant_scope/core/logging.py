# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Structured Logging — JSON lines carrying trace, tenant and table context.

Call sites pass context through ``extra=``; TenantContextFilter fills in
tenant_id from the bound request context when a call site did not.
"""

from __future__ import annotations

import json
import logging
import sys

from tenant_scope.core.scope import get_bound_context

_CONTEXT_FIELDS = ("trace_id", "tenant_id", "qualifier", "table")


class TenantContextFilter(logging.Filter):
    """Attach the bound tenant's id to records that lack one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "tenant_id", None) is None:
            ctx = get_bound_context()
            if ctx is not None and ctx.is_tenant:
                record.tenant_id = ctx.tenant_id
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per record; empty context fields are left out."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS:
            val = getattr(record, key, None)
            # tenant ids may legitimately be 0
            if val is not None and val != "":
                log_entry[key] = val

        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Tenant extras are arbitrary column values.
        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Install a JSON stdout handler on the root logger."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    handler.addFilter(TenantContextFilter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)
