"""
field_uuid.tier0_core.metrics
─────────────────────────────────
Counters with standard naming and labels for identifier activity.
Exports via a Prometheus /metrics endpoint when enabled.

Minimal stack: prometheus-client
Configure via: FIELD_UUID_METRICS_ENABLED=true|false
               FIELD_UUID_METRICS_PORT (default: 8001)
"""
from __future__ import annotations

import os
from typing import Callable

from prometheus_client import Counter, start_http_server

# Standard labels applied to every metric
_DEFAULT_LABELS = ["service"]
_SERVICE = os.getenv("FIELD_UUID_SERVICE_NAME", "field-uuid")
_DEFAULT_LABEL_VALUES = {"service": _SERVICE}


def counter(name: str, description: str, labels: list[str] | None = None) -> Callable[..., Counter]:
    """
    Create a counter with standard labels. Call once per metric at import time.

    Usage:
        fixes_total = counter("field_uuid_fixes_total", "Corrective writes", ["category"])
        fixes_total(category="empty").inc()
    """
    all_labels = _DEFAULT_LABELS + (labels or [])
    c = Counter(name, description, all_labels)

    def _counter(**extra_labels: str) -> Counter:
        return c.labels(**_DEFAULT_LABEL_VALUES, **extra_labels)

    return _counter


# ── Identifier metrics ────────────────────────────────────────────────────────

uuids_generated = counter(
    "field_uuid_generated_total",
    "Identifier values generated",
    ["record_type", "field"],
)
collisions = counter(
    "field_uuid_collisions_total",
    "Generated identifier values that were already owned",
    ["record_type", "field"],
)
fixes = counter(
    "field_uuid_fixes_total",
    "Corrective writes issued by reconciliation",
    ["category"],
)
rejected_writes = counter(
    "field_uuid_rejected_writes_total",
    "Writes rejected by the write-time guard",
    ["record_type", "reason"],
)


def start_metrics_server(port: int) -> None:
    """Expose /metrics on the given port. Call once at startup."""
    start_http_server(port)


__all__ = [
    "counter",
    "uuids_generated",
    "collisions",
    "fixes",
    "rejected_writes",
    "start_metrics_server",
]
