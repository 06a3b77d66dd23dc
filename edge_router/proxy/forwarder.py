import logging
import re
import time
from typing import AsyncIterator, List, Optional, Tuple

import httpx
from starlette.background import BackgroundTask
from starlette.responses import StreamingResponse
from opentelemetry import trace

from edge_router.metrics import SPA_FALLBACKS, UPSTREAM_LATENCY
from edge_router.proxy.models import ForwardContext, IncomingRequest, carries_body
from edge_router.routing.route_table import RouteEntry, RouteTable
from edge_router.utils import mask_headers
from edge_router.vars import ADD_FORWARDED_HEADERS, PAGE_FORWARD_BODY

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Set by httpx from the target URL and the outbound body
REQUEST_ONLY_SKIPPED = {"host", "content-length"}

# A trailing file extension marks a static asset; anything else is a SPA route
STATIC_ASSET_PATTERN = re.compile(r"\.[A-Za-z0-9]+$")


class UpstreamUnreachable(Exception):
    """The origin could not be reached: connect, DNS, I/O, timeout or deadline."""

    def __init__(self, target_url: str, reason: str):
        super().__init__(f"{target_url}: {reason}")
        self.target_url = target_url
        self.reason = reason


def is_static_asset(path: str) -> bool:
    return STATIC_ASSET_PATTERN.search(path) is not None


def strip_prefix(path: str, prefix: str) -> str:
    """Remove *prefix* once from the start of *path*; the result is never empty."""
    if path.startswith(prefix):
        path = path[len(prefix):]
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    return path


def build_target_url(origin: str, scheme: str, path: str, query: str) -> str:
    """
    Join an origin with a path and query string.

    Bare hosts inherit the inbound scheme; origins that carry their own
    scheme keep it.
    """
    base = origin if "://" in origin else f"{scheme}://{origin}"
    url = base.rstrip("/") + path
    if query:
        url = f"{url}?{query}"
    return url


def prepare_headers(
    incoming: IncomingRequest, add_forwarded: bool = ADD_FORWARDED_HEADERS
) -> List[Tuple[str, str]]:
    """
    Prepare headers for forwarding to an origin.
    Removes hop-by-hop headers and, optionally, adds X-Forwarded-* headers.
    """
    headers = [
        (name, value)
        for name, value in incoming.headers
        if name not in HOP_BY_HOP_HEADERS and name not in REQUEST_ONLY_SKIPPED
    ]

    if not add_forwarded:
        return headers

    client_ip = incoming.client_ip or "unknown"
    existing_xff = incoming.header("x-forwarded-for")
    headers = [
        (name, value)
        for name, value in headers
        if name not in ("x-forwarded-for", "x-forwarded-host", "x-forwarded-proto")
    ]
    headers.append(("x-forwarded-for", f"{existing_xff}, {client_ip}".strip(", ")))
    headers.append(("x-forwarded-host", incoming.host))
    headers.append(("x-forwarded-proto", incoming.scheme))
    return headers


async def stream_body(upstream: httpx.Response) -> AsyncIterator[bytes]:
    """Stream the undecoded upstream body, then release the connection."""
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    finally:
        await upstream.aclose()


def rebuild_response(upstream: httpx.Response) -> StreamingResponse:
    """
    Build a fresh response from an upstream one.

    Status and end-to-end headers are copied (repeated headers such as
    set-cookie included) and the raw body is streamed, so content-encoding
    and content-length stay valid.
    """
    response = StreamingResponse(
        stream_body(upstream),
        status_code=upstream.status_code,
        background=BackgroundTask(upstream.aclose),
    )
    response.raw_headers = [
        (name.encode("latin-1"), value.encode("latin-1"))
        for name, value in upstream.headers.multi_items()
        if name not in HOP_BY_HOP_HEADERS
    ]
    return response


class Forwarder:
    """
    Issues outbound requests against the configured origins.

    Holds no per-request state; one instance serves all concurrent requests
    through the shared httpx client.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        add_forwarded_headers: bool = ADD_FORWARDED_HEADERS,
        page_forward_body: bool = PAGE_FORWARD_BODY,
    ):
        self.client = client
        self.add_forwarded_headers = add_forwarded_headers
        self.page_forward_body = page_forward_body

    async def _send(
        self,
        method: str,
        url: str,
        headers: List[Tuple[str, str]],
        body: Optional[bytes],
        context: ForwardContext,
        kind: str,
    ) -> httpx.Response:
        remaining = context.remaining()
        if remaining is not None and remaining <= 0:
            raise UpstreamUnreachable(url, "deadline exceeded")

        kwargs = {"headers": headers, "content": body or None}
        if remaining is not None:
            kwargs["timeout"] = httpx.Timeout(remaining)

        logger.debug(f"Proxying {method} -> {url} headers={mask_headers(headers)}")
        request = self.client.build_request(method, url, **kwargs)
        started = time.perf_counter()
        try:
            response = await self.client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise UpstreamUnreachable(url, "timeout") from e
        except httpx.TransportError as e:
            raise UpstreamUnreachable(url, f"{type(e).__name__}: {e}") from e
        UPSTREAM_LATENCY.labels(kind=kind).observe(time.perf_counter() - started)
        return response

    async def forward_api(
        self, incoming: IncomingRequest, table: RouteTable, context: ForwardContext
    ) -> StreamingResponse:
        """Forward an API request with the API prefix stripped; the response passes through."""
        path = strip_prefix(incoming.path, table.api_prefix)
        target_url = build_target_url(
            table.api_origin, incoming.scheme, path, incoming.query
        )
        body = incoming.body if carries_body(incoming.method) else None

        with tracer.start_as_current_span("proxy_request") as span:
            span.set_attribute("proxy.target_url", target_url)
            span.set_attribute("proxy.method", incoming.method)
            try:
                upstream = await self._send(
                    incoming.method,
                    target_url,
                    prepare_headers(incoming, self.add_forwarded_headers),
                    body,
                    context,
                    kind="api",
                )
            except UpstreamUnreachable as e:
                span.set_attribute("proxy.error", e.reason)
                raise
            span.set_attribute("proxy.status_code", upstream.status_code)

        return rebuild_response(upstream)

    async def forward_page(
        self, incoming: IncomingRequest, entry: RouteEntry, context: ForwardContext
    ) -> StreamingResponse:
        """
        Forward a page-site request with the route prefix stripped.

        A 404 for a route path (no file extension) is answered with the
        origin's root document instead, so client-side routing can take over.
        The fallback happens at most once and is always a GET.
        """
        target_path = strip_prefix(incoming.path, entry.prefix)
        static_asset = is_static_asset(target_path)
        target_url = build_target_url(
            entry.target_origin, incoming.scheme, target_path, incoming.query
        )
        headers = prepare_headers(incoming, self.add_forwarded_headers)
        body = (
            incoming.body
            if self.page_forward_body and carries_body(incoming.method)
            else None
        )

        with tracer.start_as_current_span("proxy_request") as span:
            span.set_attribute("proxy.target_url", target_url)
            span.set_attribute("proxy.method", incoming.method)
            span.set_attribute("proxy.static_asset", static_asset)
            try:
                upstream = await self._send(
                    incoming.method, target_url, headers, body, context, kind="page"
                )
            except UpstreamUnreachable as e:
                span.set_attribute("proxy.error", e.reason)
                raise
            span.set_attribute("proxy.status_code", upstream.status_code)

        if upstream.status_code != 404 or static_asset:
            return rebuild_response(upstream)

        await upstream.aclose()
        SPA_FALLBACKS.labels(prefix=entry.prefix).inc()
        fallback_url = build_target_url(
            entry.target_origin, incoming.scheme, "/", incoming.query
        )
        logger.info(
            f"[SPA] {target_url} returned 404, serving {fallback_url} for {incoming.path}"
        )

        with tracer.start_as_current_span("spa_fallback") as span:
            span.set_attribute("proxy.target_url", fallback_url)
            span.set_attribute("proxy.method", "GET")
            try:
                upstream = await self._send(
                    "GET", fallback_url, headers, None, context, kind="page"
                )
            except UpstreamUnreachable as e:
                span.set_attribute("proxy.error", e.reason)
                raise
            span.set_attribute("proxy.status_code", upstream.status_code)

        return rebuild_response(upstream)
