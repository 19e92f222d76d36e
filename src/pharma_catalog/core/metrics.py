from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "path", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "Duration of HTTP requests in seconds",
    ["method"],
)

PRODUCT_WRITE_CONFLICTS = Counter(
    "product_write_conflicts_total",
    "Total number of product writes rejected by a unique index",
    ["key"],
)
