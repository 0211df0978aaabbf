from prometheus_client import Counter, Histogram, make_asgi_app

# Low-cardinality labels: route templates (e.g. /api/v1/objects/{key:path}), never raw keys
REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "route", "status"],
)

LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency in seconds",
    ["method", "route"],
)

STORAGE_OPERATIONS = Counter(
    "storage_operations_total",
    "Total storage adapter operations",
    ["operation", "status"],
)

STORAGE_LATENCY = Histogram(
    "storage_operation_duration_seconds",
    "Storage adapter operation latency in seconds",
    ["operation"],
)

# /metrics ASGI app
metrics_app = make_asgi_app()
