"""Prometheus metric inventory.

Every metric the service exports is declared here; the modules that own the
behaviour import the metric and increment it at the point of action.

The dual-database counters are the operator's view of store divergence.
A mirror failure never reaches the caller, so
``dual_write_mirror_failures_total`` is the only signal that the secondary
store has fallen behind the primary.  Alert on its rate, not its value.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Dual-database orchestration
# ---------------------------------------------------------------------------

BACKEND_OPERATIONS = Counter(
    "backend_operations_total",
    "Logical operations executed against a backend store",
    ["backend", "operation", "outcome"],  # outcome: ok|error
)

MIRROR_FAILURES = Counter(
    "dual_write_mirror_failures_total",
    "Dual-write mirror calls that failed on the secondary store (swallowed)",
    ["operation", "backend"],
)

FALLBACK_READS = Counter(
    "fallback_reads_total",
    "Reads that failed on the primary and were retried on the secondary",
    ["operation", "outcome"],  # outcome: served|failed
)

# ---------------------------------------------------------------------------
# Cache and migration
# ---------------------------------------------------------------------------

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # "hit" or "miss"
)

MIGRATION_RECORDS = Counter(
    "migration_records_total",
    "Records processed by the store-to-store migration runner",
    ["entity", "outcome"],  # outcome: migrated|skipped|error
)
