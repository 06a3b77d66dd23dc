import asyncio
import logging
from typing import Awaitable

from fastapi import APIRouter, Request
from fastapi.responses import Response

from edge_router.proxy.models import IncomingRequest

router = APIRouter()
logger = logging.getLogger("uvicorn.error")

# Non-standard status recorded when the client goes away mid-request
CLIENT_CLOSED_REQUEST = 499


async def wait_for_disconnect(request: Request) -> None:
    """Return once the ASGI server reports that the client disconnected.

    Must only be started after the request body has been fully read, so the
    only message left on the channel is ``http.disconnect``.
    """
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def cancel_on_disconnect(request: Request, work: Awaitable[Response]) -> Response:
    """
    Run *work* until it finishes or the client disconnects.

    On disconnect the work is cancelled, which aborts whichever outbound
    call (primary or SPA fallback) is in flight.
    """
    task = asyncio.ensure_future(work)
    watcher = asyncio.ensure_future(wait_for_disconnect(request))
    try:
        done, _ = await asyncio.wait(
            {task, watcher}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        watcher.cancel()
        if not task.done():
            task.cancel()

    if task in done:
        return task.result()

    logger.info(f"[Router] Client disconnected, aborted {request.method} {request.url.path}")
    await asyncio.gather(task, return_exceptions=True)
    return Response(status_code=CLIENT_CLOSED_REQUEST)


@router.api_route(
    "/{path:path}",
    methods=["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"],
    include_in_schema=False,
)
async def edge(request: Request, path: str):
    """Catch-all route that classifies and routes every request."""
    incoming = await IncomingRequest.from_request(request)
    edge_router = request.app.state.edge_router
    return await cancel_on_disconnect(request, edge_router.handle(incoming))
