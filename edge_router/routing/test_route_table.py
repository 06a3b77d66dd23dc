import json

import pytest

from edge_router.routing.route_table import (
    RouteEntry,
    RouteTable,
    RouteTableError,
    load_route_table,
    parse_route_table,
)


def _table(routes, **overrides):
    data = {
        "api_origin": "api.example.dev",
        "default_route": "/administracao",
        "routes": routes,
    }
    data.update(overrides)
    return json.dumps(data)


def test_parse_keeps_declared_order():
    table = parse_route_table(
        _table(
            [
                {"prefix": "/medico", "target_origin": "medico.pages.dev"},
                {"prefix": "/administracao", "target_origin": "adm.pages.dev"},
            ]
        )
    )
    assert [r.prefix for r in table.routes] == ["/medico", "/administracao"]
    assert table.api_prefix == "/api"


def test_origin_trailing_slash_is_trimmed():
    entry = RouteEntry(prefix="/docs", target_origin="http://localhost:8001/")
    assert entry.target_origin == "http://localhost:8001"


@pytest.mark.parametrize("prefix", ["", "docs", "/", "/docs/"])
def test_invalid_prefix_rejected(prefix):
    with pytest.raises(RouteTableError):
        parse_route_table(_table([{"prefix": prefix, "target_origin": "a.dev"}]))


def test_duplicate_prefix_rejected():
    with pytest.raises(RouteTableError, match="overlaps"):
        parse_route_table(
            _table(
                [
                    {"prefix": "/docs", "target_origin": "a.dev"},
                    {"prefix": "/docs", "target_origin": "b.dev"},
                ]
            )
        )


def test_nested_prefix_rejected():
    with pytest.raises(RouteTableError, match="overlaps"):
        parse_route_table(
            _table(
                [
                    {"prefix": "/docs", "target_origin": "a.dev"},
                    {"prefix": "/docs/v2", "target_origin": "b.dev"},
                ]
            )
        )


def test_sibling_prefixes_sharing_text_are_allowed():
    table = parse_route_table(
        _table(
            [
                {"prefix": "/doc", "target_origin": "a.dev"},
                {"prefix": "/docs", "target_origin": "b.dev"},
            ]
        )
    )
    assert len(table.routes) == 2


def test_prefix_shadowed_by_api_prefix_rejected():
    with pytest.raises(RouteTableError, match="shadowed"):
        parse_route_table(_table([{"prefix": "/apidocs", "target_origin": "a.dev"}]))


def test_empty_api_origin_rejected():
    with pytest.raises(RouteTableError):
        parse_route_table(_table([], api_origin="  "))


def test_default_route_must_be_absolute():
    with pytest.raises(RouteTableError):
        parse_route_table(_table([], default_route="administracao"))


def test_invalid_json_rejected():
    with pytest.raises(RouteTableError, match="not valid JSON"):
        parse_route_table("{not json")


def test_table_is_immutable(route_table):
    with pytest.raises(Exception):
        route_table.default_route = "/other"
    with pytest.raises(Exception):
        route_table.routes[0].prefix = "/other"


def test_load_prefers_inline_over_file(tmp_path):
    path = tmp_path / "routes.json"
    path.write_text(_table([{"prefix": "/file", "target_origin": "file.dev"}]))
    inline = _table([{"prefix": "/inline", "target_origin": "inline.dev"}])

    table = load_route_table(inline=inline, path=str(path))

    assert table.routes[0].prefix == "/inline"


def test_load_from_file(tmp_path):
    path = tmp_path / "routes.json"
    path.write_text(_table([{"prefix": "/file", "target_origin": "file.dev"}]))

    table = load_route_table(inline="", path=str(path))

    assert isinstance(table, RouteTable)
    assert table.routes[0].target_origin == "file.dev"


def test_load_missing_file(tmp_path):
    with pytest.raises(RouteTableError, match="not found"):
        load_route_table(inline="", path=str(tmp_path / "missing.json"))


def test_load_without_configuration():
    with pytest.raises(RouteTableError, match="No route table configured"):
        load_route_table(inline="", path="")


def test_example_configuration_is_valid():
    table = load_route_table(inline="")
    assert table.default_route == "/administracao"
    assert [r.prefix for r in table.routes] == [
        "/administracao",
        "/paciente",
        "/medico",
        "/documentacao",
    ]
