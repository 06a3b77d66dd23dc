import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "edge-router")

# Route table: inline JSON wins over the file
ROUTE_TABLE = os.environ.get("ROUTE_TABLE", "")
ROUTE_TABLE_FILE = os.environ.get("ROUTE_TABLE_FILE", "")

PUBLIC_URL = os.environ.get("PUBLIC_URL", "").rstrip("/")
UPSTREAM_TIMEOUT = float(os.environ.get("UPSTREAM_TIMEOUT", "300"))  # 5 minutes default
PAGE_FORWARD_BODY = os.environ.get("PAGE_FORWARD_BODY", "false").lower() == "true"
ADD_FORWARDED_HEADERS = (
    os.environ.get("ADD_FORWARDED_HEADERS", "true").lower() == "true"
)

METRICS_PATH = os.environ.get("METRICS_PATH", "/metrics")

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
