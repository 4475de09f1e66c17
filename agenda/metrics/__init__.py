# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Prometheus metrics for the agenda service."""
from prometheus_client import Counter, Gauge, Histogram

PERSONAS_CREATED = Counter(
    "personas_created_total", "Total personas created"
)
PERSONAS_UPDATED = Counter(
    "personas_updated_total", "Total personas updated"
)
PERSONAS_DELETED = Counter(
    "personas_deleted_total", "Total personas deleted"
)
PERSONAS_TOTAL = Gauge(
    "personas_total", "Current number of personas in the directory"
)
WRITE_REJECTIONS = Counter(
    "persona_write_rejections_total",
    "Create/update/delete requests rejected by integrity checks",
    ["reason"],
)
FRIEND_LINKS_REMOVED = Counter(
    "persona_friend_links_removed_total",
    "Friend references removed by delete cascades",
)
CASCADE_FAILURES = Counter(
    "persona_cascade_failures_total",
    "Delete cascades that failed after the persona was removed",
)
REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "HTTP request latency", ["method", "endpoint"]
)
HTTP_ERRORS = Counter(
    "http_errors_total", "Total HTTP errors", ["method", "endpoint", "status"]
)
