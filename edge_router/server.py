from contextlib import asynccontextmanager
from typing import Optional, Sequence
import logging

import httpx
from fastapi import FastAPI
from fastapi.responses import Response
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from edge_router.proxy.forwarder import Forwarder
from edge_router.router import EdgeRouter
from edge_router.routes import router
from edge_router.routing.route_table import RouteTable, load_route_table
from edge_router.vars import (
    METRICS_PATH,
    OTLP_ENDPOINT,
    OTLP_HEADERS,
    SERVICE_NAME,
    UPSTREAM_TIMEOUT,
)

logger = logging.getLogger("uvicorn.error")

# ASGI events the instrumentation turns into one span each
PER_EVENT_SPAN_TYPES = {"http.response.body", "http.request", "http.disconnect"}


def is_per_event_span(span: ReadableSpan) -> bool:
    attributes = span.attributes or {}
    return attributes.get("asgi.event.type") in PER_EVENT_SPAN_TYPES


class FilteringSpanExporter(SpanExporter):
    """
    Drops per-event ASGI spans before export.

    Each raw chunk relayed from an origin and each message read by the
    disconnect watcher would otherwise be exported as its own span, burying
    the ``edge_request``, ``proxy_request`` and ``spa_fallback`` spans.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        kept = [span for span in spans if not is_per_event_span(span)]
        if not kept:
            return SpanExportResult.SUCCESS
        return self.exporter.export(kept)

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def configure_tracing() -> None:
    trace.set_tracer_provider(
        TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    )
    if OTLP_ENDPOINT:
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=((OTLP_HEADERS).split(",") if OTLP_HEADERS else None),
        )
        trace.get_tracer_provider().add_span_processor(
            BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
        )


def create_app(
    table: Optional[RouteTable] = None,
    client: Optional[httpx.AsyncClient] = None,
    instrument: bool = True,
) -> FastAPI:
    """
    Build the edge router application.

    The route table and the outbound client are resolved at startup unless
    injected; an injected client is left open on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        route_table = table or load_route_table()
        owns_client = client is None
        upstream_client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(UPSTREAM_TIMEOUT), follow_redirects=False
        )
        app.state.edge_router = EdgeRouter(route_table, Forwarder(upstream_client))
        logger.info(f"[Server] {SERVICE_NAME} routing {len(route_table.routes)} page sites")
        try:
            yield
        finally:
            if owns_client:
                await upstream_client.aclose()

    app = FastAPI(lifespan=lifespan, openapi_url=None, docs_url=None, redoc_url=None)

    if METRICS_PATH:
        # Registered before the catch-all route so it takes precedence
        @app.get(METRICS_PATH, include_in_schema=False)
        async def metrics():
            return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    if instrument:
        FastAPIInstrumentor.instrument_app(app, excluded_urls=METRICS_PATH or "")

    app.include_router(router)
    return app


configure_tracing()

app = create_app()
