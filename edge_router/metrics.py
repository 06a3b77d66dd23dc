from prometheus_client import Counter, Histogram, Info

from edge_router.vars import SERVICE_NAME

# Add app_name to the metrics
app_info = Info("edge_router_app", "Application Info")
app_info.info({"app_name": SERVICE_NAME})

ROUTED_REQUESTS = Counter(
    "edge_router_requests_total",
    "Inbound requests by classification and response status",
    ["kind", "status"],
)
UPSTREAM_FAILURES = Counter(
    "edge_router_upstream_failures_total",
    "Outbound calls that never produced a response",
    ["kind"],
)
SPA_FALLBACKS = Counter(
    "edge_router_spa_fallbacks_total",
    "Page requests answered with the origin root document after a 404",
    ["prefix"],
)
UPSTREAM_LATENCY = Histogram(
    "edge_router_upstream_seconds",
    "Time until the upstream response headers arrived",
    ["kind"],
)
