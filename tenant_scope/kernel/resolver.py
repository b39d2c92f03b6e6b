# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Context Resolver — Request → tenant qualifier → context kind.

A detection strategy turns the request host into a qualifier. The empty
qualifier is reserved for the primary domain (global context); anything
else names a tenant to be looked up in the TenantStore.

Strategies are registered by name so new ones (path prefix, header, ...)
can be added without touching callers:

    register_strategy("header", HeaderStrategy.from_settings)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol

from tenant_scope.core.errors import ConfigurationError
from tenant_scope.core.tenant import ContextKind

logger = logging.getLogger("tenantscope.resolver")

PRIMARY_QUALIFIER = ""


@dataclass
class RequestDescriptor:
    """The parts of an inbound request the resolver needs."""

    host: str
    scheme: str = "http"
    state: Any = field(default=None, repr=False)

    @classmethod
    def from_request(cls, request) -> "RequestDescriptor":
        """Build from a Starlette/FastAPI Request."""
        return cls(
            host=request.url.hostname or "",
            scheme=request.url.scheme or "http",
            state=request.state,
        )


class DetectionStrategy(Protocol):
    name: str

    def qualifier(self, host: str) -> str:
        ...


def _normalize_host(host: str) -> str:
    host = (host or "").strip().lower()
    if host.startswith("["):
        return host
    return host.split(":", 1)[0]


class DomainStrategy:
    """
    Domain based detection.

    ``app.example.com`` (the primary domain) → ""
    ``acme.example.com`` with suffix ``.example.com`` → "acme"
    A host without the suffix (custom domain) is its own qualifier.
    """

    name = "domain"

    def __init__(self, primary_domain: str, tenant_domain_suffix: str = "") -> None:
        if not primary_domain:
            raise ConfigurationError("Domain strategy requires PRIMARY_DOMAIN")
        self.primary_domain = _normalize_host(primary_domain)
        self.tenant_domain_suffix = (tenant_domain_suffix or "").strip().lower()

    @classmethod
    def from_settings(cls, settings) -> "DomainStrategy":
        return cls(settings.PRIMARY_DOMAIN, settings.TENANT_DOMAIN_SUFFIX)

    def qualifier(self, host: str) -> str:
        host = _normalize_host(host)
        if host == self.primary_domain:
            return PRIMARY_QUALIFIER
        if self.tenant_domain_suffix:
            # Never collapse a tenant host into the primary qualifier.
            return host.removesuffix(self.tenant_domain_suffix) or host
        return host


# ── Strategy registry ───────────────────────────────────────

_STRATEGIES: Dict[str, Callable[[Any], DetectionStrategy]] = {
    DomainStrategy.name: DomainStrategy.from_settings,
}


def register_strategy(name: str, factory: Callable[[Any], DetectionStrategy]) -> None:
    """Register a strategy factory taking the settings object."""
    _STRATEGIES[name] = factory
    logger.info("Registered detection strategy: %s", name)


def available_strategies() -> list[str]:
    return sorted(_STRATEGIES)


class ContextResolver:
    """Derives the qualifier for a request and classifies it."""

    def __init__(self, strategy: Optional[DetectionStrategy]) -> None:
        if strategy is None:
            raise ConfigurationError("Missing tenant detection strategy")
        self.strategy = strategy

    @classmethod
    def from_settings(cls, settings) -> "ContextResolver":
        name = (settings.DETECTION_STRATEGY or "").strip()
        if not name:
            raise ConfigurationError("Missing tenant detection strategy")
        factory = _STRATEGIES.get(name)
        if factory is None:
            raise ConfigurationError(
                f"Unknown tenant detection strategy {name!r} "
                f"(available: {', '.join(available_strategies())})"
            )
        return cls(factory(settings))

    def resolve_qualifier(self, host: str) -> str:
        return self.strategy.qualifier(host)

    @staticmethod
    def classify(qualifier: str) -> ContextKind:
        return ContextKind.GLOBAL if qualifier == PRIMARY_QUALIFIER else ContextKind.TENANT
