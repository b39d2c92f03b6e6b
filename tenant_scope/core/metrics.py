# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
Metrics — In-memory counters for tenant resolution and scope enforcement.

Counters in use:
  cache_hit / cache_miss        resolution cache outcome per lookup
  tenant_lookup                 backing-store queries issued
  tenant_not_found              lookups that matched no active tenant
  redirect_inactive             requests answered with the inactive redirect
  scope_violation:<table>       rejected reads/writes/deletes

Gauges: inflight_lookups (cold qualifiers currently being loaded).
Histograms: tenant_lookup_ms.
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Dict, Iterator

VIOLATION_PREFIX = "scope_violation:"


class Metrics:
    """Simple in-memory metrics collector."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = defaultdict(int)
        self._gauges: Dict[str, float] = {}
        self._histograms: Dict[str, list] = defaultdict(list)
        self._start_time = time.time()

    # ── Counters ────────────────────────────────────────────────

    def inc(self, name: str, amount: int = 1) -> None:
        """Increment a counter."""
        with self._lock:
            self._counters[name] += amount

    def get_counter(self, name: str) -> int:
        return self._counters.get(name, 0)

    # ── Gauges ──────────────────────────────────────────────────

    def set_gauge(self, name: str, value: float) -> None:
        self._gauges[name] = value

    def get_gauge(self, name: str) -> float:
        return self._gauges.get(name, 0.0)

    # ── Histograms (for latency) ────────────────────────────────

    def observe(self, name: str, value: float) -> None:
        """Record an observation (e.g. lookup time in ms)."""
        with self._lock:
            self._histograms[name].append(value)
            # Keep only last 1000 observations
            if len(self._histograms[name]) > 1000:
                self._histograms[name] = self._histograms[name][-1000:]

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        """Observe the wall time of the block in milliseconds."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, (time.perf_counter() - start) * 1000)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()

    # ── Export ──────────────────────────────────────────────────

    def violations_by_table(self) -> Dict[str, int]:
        """Rejected operations per table, from the scope_violation:<table> counters."""
        with self._lock:
            return {
                name[len(VIOLATION_PREFIX):]: count
                for name, count in self._counters.items()
                if name.startswith(VIOLATION_PREFIX)
            }

    def snapshot(self) -> Dict[str, Any]:
        """Export all metrics as a dict."""
        result = {
            "uptime_seconds": round(time.time() - self._start_time, 1),
            "counters": dict(self._counters),
            "gauges": dict(self._gauges),
            "violations_by_table": self.violations_by_table(),
        }
        # Add histogram summaries
        for name, values in self._histograms.items():
            if values:
                result[f"histogram_{name}"] = {
                    "count": len(values),
                    "avg": round(sum(values) / len(values), 2),
                    "max": round(max(values), 2),
                    "min": round(min(values), 2),
                }
        return result


# Global singleton
scope_metrics = Metrics()
