import httpx


class MockOrigins:
    """
    Stand-in for the backend origins behind an httpx MockTransport.

    Responses are registered per (host, path); anything unregistered is a
    404. Every outbound request is recorded in order.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._responses: dict = {}
        self._failures: set = set()

    def respond(self, host, path, status=200, content=b"", headers=None):
        self._responses[(host, path)] = (status, content, headers or {})

    def fail(self, host, path=None):
        """Make every call to *host* (or only to *path* on it) fail to connect."""
        self._failures.add((host, path))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host, path = request.url.host, request.url.path
        if (host, None) in self._failures or (host, path) in self._failures:
            raise httpx.ConnectError("Connection refused", request=request)
        status, content, headers = self._responses.get(
            (host, path), (404, b"not found", {})
        )
        # Streamed like a real transport, so the body is not pre-read
        return httpx.Response(
            status, headers=headers, stream=httpx.ByteStream(content)
        )

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def make_incoming(
    method="GET",
    path="/",
    query="",
    headers=None,
    body=b"",
    scheme="https",
    host="edge.example.dev",
    client_ip="203.0.113.7",
):
    from edge_router.proxy.models import IncomingRequest

    return IncomingRequest(
        method=method,
        path=path,
        query=query,
        headers=tuple((k.lower(), v) for k, v in (headers or {}).items()),
        body=body,
        scheme=scheme,
        host=host,
        client_ip=client_ip,
    )


async def read_body(response) -> bytes:
    return b"".join([chunk async for chunk in response.body_iterator])
