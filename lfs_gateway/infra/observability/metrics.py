from prometheus_client import Counter, Histogram, make_asgi_app

# Low-cardinality labels: route templates only, never bucket or oid values
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

BATCH_OBJECTS = Counter(
    "lfs_batch_objects_total",
    "Batch objects processed",
    ["operation", "strategy", "outcome"],
)

MULTIPART_PARTS = Counter(
    "lfs_multipart_parts_total",
    "Parts planned for initiated multipart uploads",
)

metrics_app = make_asgi_app()
