import logging

from fastapi import HTTPException
from opentelemetry import trace
from starlette.responses import Response

from edge_router.metrics import ROUTED_REQUESTS, UPSTREAM_FAILURES
from edge_router.proxy.forwarder import Forwarder, UpstreamUnreachable
from edge_router.proxy.models import ForwardContext, IncomingRequest
from edge_router.responses import not_found, root_redirect
from edge_router.routing.classifier import RouteKind, classify
from edge_router.routing.route_table import RouteTable
from edge_router.utils.exception_logging import log_exception_with_details
from edge_router.utils.traced_requests import traced_request
from edge_router.vars import UPSTREAM_TIMEOUT

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)


class EdgeRouter:
    """
    Classifies each inbound request and hands it to exactly one handler:
    the API forwarder, the page forwarder, the root redirect or the 404 page.

    Every request is resolved independently; the route table and the
    forwarder are shared read-only.
    """

    def __init__(
        self,
        table: RouteTable,
        forwarder: Forwarder,
        upstream_timeout: float = UPSTREAM_TIMEOUT,
    ):
        self.table = table
        self.forwarder = forwarder
        self.upstream_timeout = upstream_timeout

    async def handle(self, incoming: IncomingRequest) -> Response:
        classification = classify(incoming.path, self.table)
        prefix = classification.entry.prefix if classification.entry else None

        with traced_request(
            tracer,
            operation="edge_request",
            route_kind=classification.kind.value,
            route_prefix=prefix,
            start_message=f"[Router] {incoming.method} {incoming.path} -> {classification.kind.value}",
            extra_attrs={"http.method": incoming.method},
        ) as span:
            if classification.kind == RouteKind.ROOT:
                response = root_redirect(incoming.origin, self.table.default_route)
                ROUTED_REQUESTS.labels(kind="root", status="302").inc()
                return response

            if classification.kind == RouteKind.UNKNOWN:
                ROUTED_REQUESTS.labels(kind="unknown", status="404").inc()
                return not_found(self.table.default_route)

            context = ForwardContext.with_timeout(self.upstream_timeout)
            try:
                if classification.kind == RouteKind.API:
                    response = await self.forwarder.forward_api(
                        incoming, self.table, context
                    )
                else:
                    response = await self.forwarder.forward_page(
                        incoming, classification.entry, context
                    )
            except UpstreamUnreachable as e:
                log_exception_with_details(
                    logger, f"[Router] {incoming.method} {incoming.path}", e
                )
                span.set_attribute("proxy.error", e.reason)
                UPSTREAM_FAILURES.labels(kind=classification.kind.value).inc()
                ROUTED_REQUESTS.labels(kind=classification.kind.value, status="502").inc()
                raise HTTPException(
                    status_code=502,
                    detail=f"Bad gateway - cannot reach upstream: {e.reason}",
                )

            span.set_attribute("http.status_code", response.status_code)
            ROUTED_REQUESTS.labels(
                kind=classification.kind.value, status=str(response.status_code)
            ).inc()
            return response
