import asyncio
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import quote

from starlette.requests import Request

# Methods defined to carry no request body
BODYLESS_METHODS = {"GET", "HEAD"}


def carries_body(method: str) -> bool:
    return method.upper() not in BODYLESS_METHODS


@dataclass(frozen=True)
class IncomingRequest:
    """Snapshot of an inbound request, taken once the body has been read."""

    method: str
    path: str
    query: str
    headers: Tuple[Tuple[str, str], ...]
    body: bytes
    scheme: str
    host: str
    client_ip: Optional[str] = None

    @property
    def origin(self) -> str:
        return f"{self.scheme}://{self.host}"

    def header(self, name: str, default: str = "") -> str:
        name = name.lower()
        for key, value in self.headers:
            if key == name:
                return value
        return default

    @staticmethod
    def encoded_path(request: Request) -> str:
        """
        The request path as sent on the wire, percent-escapes intact.

        The ASGI ``path`` is decoded, which would let an escaped ``?``, ``#``
        or ``/`` change the meaning of the forwarded URL. ``request.url`` is
        rebuilt from it, so neither its path nor its query can be trusted.
        """
        raw_path = request.scope.get("raw_path")
        if raw_path:
            return raw_path.decode("latin-1").split("?", 1)[0]
        return quote(request.scope["path"], safe="/:@!$&'()*+,;=-._~")

    @classmethod
    async def from_request(cls, request: Request) -> "IncomingRequest":
        body = await request.body()
        return cls(
            method=request.method.upper(),
            path=cls.encoded_path(request),
            query=request.scope.get("query_string", b"").decode("latin-1"),
            headers=tuple((k.lower(), v) for k, v in request.headers.items()),
            body=body,
            scheme=request.url.scheme,
            host=request.headers.get("host") or request.url.netloc,
            client_ip=request.client.host if request.client else None,
        )


@dataclass(frozen=True)
class ForwardContext:
    """Deadline shared by every outbound call made for one inbound request."""

    deadline: Optional[float] = None

    @classmethod
    def with_timeout(cls, timeout: Optional[float]) -> "ForwardContext":
        if not timeout or timeout <= 0:
            return cls()
        return cls(deadline=asyncio.get_running_loop().time() + timeout)

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.deadline - asyncio.get_running_loop().time()
