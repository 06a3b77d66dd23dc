from dataclasses import dataclass
from enum import Enum
from typing import Optional

from edge_router.routing.route_table import RouteEntry, RouteTable


class RouteKind(str, Enum):
    API = "api"
    PAGE = "page"
    ROOT = "root"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Classification:
    kind: RouteKind
    entry: Optional[RouteEntry] = None


def classify(path: str, table: RouteTable) -> Classification:
    """Map a request path to exactly one handling category.

    Order matters: the API prefix is checked before the page routes, and the
    root only after both, so a path is never ambiguous.
    """
    if path.startswith(table.api_prefix):
        return Classification(RouteKind.API)

    for entry in table.routes:
        if path == entry.prefix or path.startswith(entry.prefix + "/"):
            return Classification(RouteKind.PAGE, entry)

    if path in ("", "/"):
        return Classification(RouteKind.ROOT)

    return Classification(RouteKind.UNKNOWN)
