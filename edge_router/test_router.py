import pytest
from fastapi import HTTPException

from edge_router.proxy.forwarder import Forwarder
from edge_router.router import EdgeRouter
from edge_router.utils_tests.mock_origins import make_incoming, read_body

API_HOST = "api.example.dev"
ADM_HOST = "adm.pages.dev"


@pytest.mark.asyncio
async def test_api_request_is_forwarded(route_table, origins):
    origins.respond(API_HOST, "/users", content=b"[]")
    async with origins.client() as client:
        router = EdgeRouter(route_table, Forwarder(client))
        response = await router.handle(make_incoming(path="/api/users"))
        body = await read_body(response)

    assert response.status_code == 200
    assert body == b"[]"
    assert str(origins.requests[0].url) == f"https://{API_HOST}/users"


@pytest.mark.asyncio
async def test_page_request_uses_spa_fallback(route_table, origins):
    origins.respond(ADM_HOST, "/", content=b"<html>index</html>")
    async with origins.client() as client:
        router = EdgeRouter(route_table, Forwarder(client))
        response = await router.handle(make_incoming(path="/administracao/dashboard"))
        body = await read_body(response)

    assert body == b"<html>index</html>"
    assert [str(r.url) for r in origins.requests] == [
        f"https://{ADM_HOST}/dashboard",
        f"https://{ADM_HOST}/",
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["", "/"])
async def test_root_redirects_without_upstream_call(route_table, origins, path):
    async with origins.client() as client:
        router = EdgeRouter(route_table, Forwarder(client))
        response = await router.handle(make_incoming(path=path))

    assert response.status_code == 302
    assert response.headers["location"] == "https://edge.example.dev/administracao"
    assert origins.requests == []


@pytest.mark.asyncio
async def test_unknown_path_gets_not_found_page(route_table, origins):
    async with origins.client() as client:
        router = EdgeRouter(route_table, Forwarder(client))
        response = await router.handle(make_incoming(path="/unknown/thing"))

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("text/html")
    assert origins.requests == []


@pytest.mark.asyncio
async def test_unreachable_api_becomes_bad_gateway(route_table, origins):
    origins.fail(API_HOST)
    async with origins.client() as client:
        router = EdgeRouter(route_table, Forwarder(client))
        with pytest.raises(HTTPException) as exc_info:
            await router.handle(make_incoming(path="/api/users"))

    assert exc_info.value.status_code == 502
    assert "Bad gateway" in exc_info.value.detail


@pytest.mark.asyncio
async def test_unreachable_fallback_becomes_bad_gateway(route_table, origins):
    origins.fail(ADM_HOST, "/")
    async with origins.client() as client:
        router = EdgeRouter(route_table, Forwarder(client))
        with pytest.raises(HTTPException) as exc_info:
            await router.handle(make_incoming(path="/administracao/dashboard"))

    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_deadline_is_shared_by_primary_and_fallback(route_table, origins):
    origins.respond(ADM_HOST, "/", content=b"index")
    async with origins.client() as client:
        router = EdgeRouter(route_table, Forwarder(client), upstream_timeout=10)
        await router.handle(make_incoming(path="/administracao/dashboard"))

    primary, fallback = (r.extensions["timeout"]["read"] for r in origins.requests)
    assert 0 < fallback <= primary <= 10
