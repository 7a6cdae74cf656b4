"""Application metrics using the Prometheus client library.

All metrics live here so there is one inventory of what the service
measures; other modules import a metric and increment it at the point of
action.  Prometheus scrapes them from GET /metrics.
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
    # File-backed writes dominate the upper buckets; upstream proxying can
    # approach the 30s backend timeout.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0, 30.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# OAuth / authentication
# ---------------------------------------------------------------------------

OAUTH_EVENTS = Counter(
    "oauth_events_total",
    "Authorization server operations by step and outcome",
    ["event", "outcome"],  # event: register|authorize|token; outcome: ok or error code
)

AUTH_DECISIONS = Counter(
    "auth_decisions_total",
    "Protected-route authentication decisions",
    ["method", "result"],  # method: oauth|api_key|none; result: allowed or error code
)

# ---------------------------------------------------------------------------
# Memory store
# ---------------------------------------------------------------------------

MEMORY_OPERATIONS = Counter(
    "memory_operations_total",
    "Memory store operations by outcome",
    ["operation", "outcome"],  # operation: store|search|list|delete; outcome: ok|error
)

MEMORIES_STORED = Gauge(
    "memories_stored",
    "Number of memory records currently held by the local backend",
)
