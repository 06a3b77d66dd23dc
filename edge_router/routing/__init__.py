from .classifier import Classification, RouteKind, classify
from .route_table import (
    RouteEntry,
    RouteTable,
    RouteTableError,
    load_route_table,
    parse_route_table,
)

__all__ = [
    "Classification",
    "RouteKind",
    "classify",
    "RouteEntry",
    "RouteTable",
    "RouteTableError",
    "load_route_table",
    "parse_route_table",
]
