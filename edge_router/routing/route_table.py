"""
Route table: ordered page-site bindings plus the API origin and the default route.

The table is loaded once at process start (from ``ROUTE_TABLE`` or
``ROUTE_TABLE_FILE``) and is read-only afterwards, so it can be shared by
every concurrent request without locking.
"""

import json
import logging
import os
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from edge_router.vars import ROUTE_TABLE, ROUTE_TABLE_FILE

logger = logging.getLogger("uvicorn.error")


class RouteTableError(ValueError):
    """Raised when the route table configuration is missing or invalid."""


def _prefixes_overlap(a: str, b: str) -> bool:
    return a == b or a.startswith(b + "/") or b.startswith(a + "/")


class RouteEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    prefix: str
    target_origin: str

    @field_validator("prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        if not value or not value.startswith("/"):
            raise ValueError(f"route prefix must start with '/': {value!r}")
        if value == "/" or value.endswith("/"):
            raise ValueError(f"route prefix must not end with '/': {value!r}")
        return value

    @field_validator("target_origin")
    @classmethod
    def _check_origin(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("target_origin must not be empty")
        return value


class RouteTable(BaseModel):
    """
    Ordered routing configuration.

    ``routes`` is matched first-match-wins in declared order. Overlapping
    prefixes are rejected at construction time so the order never has to
    break a tie.
    """

    model_config = ConfigDict(frozen=True)

    routes: List[RouteEntry]
    api_origin: str
    default_route: str
    api_prefix: str = "/api"

    @field_validator("api_origin")
    @classmethod
    def _check_api_origin(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("api_origin must not be empty")
        return value

    @field_validator("api_prefix", "default_route")
    @classmethod
    def _check_absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"path must start with '/': {value!r}")
        return value

    @model_validator(mode="after")
    def _check_prefixes(self) -> "RouteTable":
        seen: List[str] = []
        for entry in self.routes:
            if entry.prefix.startswith(self.api_prefix):
                raise ValueError(
                    f"route prefix {entry.prefix!r} is shadowed by the API prefix {self.api_prefix!r}"
                )
            for other in seen:
                if _prefixes_overlap(entry.prefix, other):
                    raise ValueError(
                        f"route prefix {entry.prefix!r} overlaps with {other!r}"
                    )
            seen.append(entry.prefix)
        return self


def parse_route_table(raw: str) -> RouteTable:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise RouteTableError(f"Route table is not valid JSON: {e}") from e
    try:
        return RouteTable.model_validate(data)
    except ValidationError as e:
        raise RouteTableError(f"Invalid route table: {e}") from e


def load_route_table(
    inline: Optional[str] = None, path: Optional[str] = None
) -> RouteTable:
    """Load the route table from inline JSON or a JSON file, inline first."""
    inline = ROUTE_TABLE if inline is None else inline
    path = ROUTE_TABLE_FILE if path is None else path

    if inline:
        table = parse_route_table(inline)
        source = "ROUTE_TABLE"
    elif path:
        if not os.path.exists(path):
            raise RouteTableError(f"Route table file not found: {path}")
        with open(path, "r", encoding="utf-8") as fh:
            table = parse_route_table(fh.read())
        source = path
    else:
        raise RouteTableError(
            "No route table configured. Set ROUTE_TABLE or ROUTE_TABLE_FILE."
        )

    logger.info(
        f"[RouteTable] Loaded {len(table.routes)} page routes from {source}, "
        f"api {table.api_prefix} -> {table.api_origin}, default {table.default_route}"
    )
    return table
