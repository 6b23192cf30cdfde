# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Prometheus metric objects for the whole service.
Defined once here; services and middleware import what they update.
"""

from prometheus_client import Counter, Gauge, Histogram

# ── HTTP Metrics (used by middleware) ──
REQUEST_COUNT = Counter(
    "teamflow_requests_total",
    "Total HTTP requests to the orchestrator",
    ["method", "endpoint", "status"],
)
REQUEST_LATENCY = Histogram(
    "teamflow_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
)
HTTP_ERRORS = Counter(
    "teamflow_http_errors_total",
    "HTTP responses with status >= 400",
    ["method", "endpoint", "status"],
)

# ── Orchestration Metrics (updated by service layer only) ──
OPERATIONS_TOTAL = Counter(
    "teamflow_operations_total",
    "Orchestrated business operations by outcome",
    ["operation", "outcome"],
)
COMPENSATIONS_TOTAL = Counter(
    "teamflow_compensations_total",
    "Compensation runs after a failed multi-step operation",
    ["operation", "result"],
)
DEFERRED_REPAIRS_TOTAL = Counter(
    "teamflow_deferred_repairs_total",
    "Forward steps left for out-of-band repair",
    ["operation"],
)
REPAIRS_APPLIED_TOTAL = Counter(
    "teamflow_repairs_applied_total",
    "Role repairs applied by the reconciler",
    ["action"],
)
INVARIANT_VIOLATIONS = Gauge(
    "teamflow_invariant_violations",
    "Consistency violations found by the last audit",
    ["rule"],
)
AUTHZ_DECISIONS = Counter(
    "teamflow_authorization_decisions_total",
    "Task authorization decisions",
    ["action", "decision"],
)

# ── Store client metrics ──
STORE_CALL_LATENCY = Histogram(
    "teamflow_store_call_duration_seconds",
    "Latency of calls to the backing stores",
    ["store", "method"],
)
STORE_CALL_FAILURES = Counter(
    "teamflow_store_call_failures_total",
    "Store calls that failed at transport level, timed out or returned 5xx",
    ["store", "method", "kind"],
)
