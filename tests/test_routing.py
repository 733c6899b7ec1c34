"""Tests for Router dispatch."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from signpost import PlainTextResponse, Request, Response, Router, not_found_handler
from signpost.routing import ANY

# =====================================================================
# Helpers
# =====================================================================


def _make_client(app: Any, base_url: str = "http://test") -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url=base_url)


def _text(body: str, status_code: int = 200) -> PlainTextResponse:
    return PlainTextResponse(body, status_code=status_code)


async def _echo_query(scope, receive, send) -> None:
    await _text(scope["query_string"].decode("latin-1")).send(send)


async def _echo_method(scope, receive, send) -> None:
    await _text(scope["method"]).send(send)


async def _call(
    app: Any, method: str, path: str, headers: list | None = None, query: bytes = b""
) -> dict[str, Any]:
    """Drive *app* directly, without a Host header unless one is given."""
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": query,
        "headers": headers or [],
    }
    messages: list[dict[str, Any]] = []

    async def receive() -> dict[str, Any]:
        return {"type": "http.request", "body": b"", "more_body": False}

    async def send(message: dict[str, Any]) -> None:
        messages.append(message)

    await app(scope, receive, send)
    return {"status": messages[0]["status"], "body": messages[1]["body"], "scope": scope}


# =====================================================================
# Not found
# =====================================================================


class TestNotFound:
    @pytest.mark.asyncio
    async def test_default_not_found(self) -> None:
        async with _make_client(Router()) as client:
            resp = await client.get("/a")
        assert resp.status_code == 404
        assert resp.text == "Not Found\n"
        assert resp.headers["content-type"] == "text/plain; charset=utf-8"
        assert resp.headers["x-content-type-options"] == "nosniff"

    @pytest.mark.asyncio
    async def test_unrelated_path(self) -> None:
        router = Router()
        router.add_route("GET", "/error", Response())
        async with _make_client(router) as client:
            assert (await client.get("/a")).status_code == 404

    @pytest.mark.asyncio
    async def test_custom_not_found(self) -> None:
        router = Router(not_found=_text("Custom", status_code=403))
        async with _make_client(router) as client:
            resp = await client.get("/a")
        assert resp.status_code == 403
        assert resp.text == "Custom"

    @pytest.mark.asyncio
    async def test_not_found_can_be_replaced(self) -> None:
        router = Router()
        assert router.not_found is not_found_handler
        router.not_found = _text("Gone", status_code=410)
        async with _make_client(router) as client:
            assert (await client.get("/a")).status_code == 410

    @pytest.mark.asyncio
    async def test_fallback_sees_unmodified_request(self) -> None:
        seen: dict[str, Any] = {}

        async def fallback(scope, receive, send) -> None:
            seen.update(scope)
            await Response(status_code=404).send(send)

        router = Router(not_found=fallback)
        router.add_route("GET", "/a/:b", _echo_query)
        async with _make_client(router) as client:
            await client.get("/x/y?q=1")
        assert seen["query_string"] == b"q=1"
        assert "path_params" not in seen


# =====================================================================
# Method and precedence
# =====================================================================


class TestDispatch:
    @pytest.mark.asyncio
    async def test_matches_related_route(self) -> None:
        router = Router()
        router.add_route("GET", "/a", Response())
        async with _make_client(router) as client:
            assert (await client.get("/a")).status_code == 200

    @pytest.mark.asyncio
    async def test_does_not_match_unrelated_method(self) -> None:
        router = Router()
        router.add_route("POST", "/a", _text("post"))
        router.add_route("GET", "/a", _text("get"))
        async with _make_client(router) as client:
            assert (await client.get("/a")).text == "get"
            assert (await client.put("/a")).status_code == 404

    @pytest.mark.asyncio
    async def test_first_defined_route_wins(self) -> None:
        router = Router()
        router.add_route("GET", "/:any", _text("first"))
        router.add_route("GET", "/:a", _text("second"))
        async with _make_client(router) as client:
            assert (await client.get("/a")).text == "first"

    @pytest.mark.asyncio
    async def test_literal_before_placeholder(self) -> None:
        router = Router()
        router.add_route("GET", "/a", _text("literal"))
        router.add_route("GET", "/:any", _text("placeholder"))
        async with _make_client(router) as client:
            assert (await client.get("/a")).text == "literal"
            assert (await client.get("/b")).text == "placeholder"

    @pytest.mark.asyncio
    async def test_any_method(self) -> None:
        router = Router()
        router.add_any("/a", _echo_method)
        async with _make_client(router) as client:
            assert (await client.get("/a")).text == "GET"
            assert (await client.post("/a")).text == "POST"
            assert (await client.get("/b")).text == "Not Found\n"

    @pytest.mark.asyncio
    async def test_method_tier_beats_any_tier(self) -> None:
        router = Router()
        router.add_any("/a", _text("any"))
        router.add_route("GET", "/a", _text("get"))
        async with _make_client(router) as client:
            assert (await client.get("/a")).text == "get"
            assert (await client.delete("/a")).text == "any"

    @pytest.mark.asyncio
    async def test_catch_all(self) -> None:
        router = Router()
        router.add_route("GET", "/a", _text("a"))
        router.handle(_text("everything"))
        async with _make_client(router) as client:
            assert (await client.get("/a")).text == "a"
            assert (await client.post("/a")).text == "everything"
            assert (await client.get("/deep/nested/path")).text == "everything"

    def test_method_is_case_insensitive(self) -> None:
        router = Router()
        route = router.add_route("get", "/a", Response())
        assert router.routes["GET"] == [route]
        assert router.match("get", "/a") is route

    def test_match_scan_order(self) -> None:
        router = Router()
        any_route = router.add_any("/:x", Response())
        get_route = router.add_route("GET", "/:y", Response())
        assert list(router.candidates("GET")) == [get_route, any_route]
        assert list(router.candidates(ANY)) == [any_route]
        assert router.match("GET", "/a") is get_route
        assert router.match("POST", "/a") is any_route
        assert router.match("POST", "/a/b") is None

    def test_malformed_pattern_fails_at_registration(self) -> None:
        router = Router()
        with pytest.raises(ValueError, match="placeholder without a name"):
            router.add_route("GET", "/users/:", Response())
        assert router.routes == {}

    @pytest.mark.asyncio
    async def test_handler_errors_propagate(self) -> None:
        async def boom(scope, receive, send) -> None:
            raise RuntimeError("kaboom")

        router = Router()
        router.add_route("GET", "/boom", boom)
        async with _make_client(router) as client:
            with pytest.raises(RuntimeError, match="kaboom"):
                await client.get("/boom")


# =====================================================================
# Query merging
# =====================================================================


class TestQueryString:
    @pytest.mark.asyncio
    async def test_adds_path_params(self) -> None:
        router = Router()
        router.add_route("GET", "/a/:b", _echo_query)
        async with _make_client(router) as client:
            assert (await client.get("/a/b")).text == "b=b"

    @pytest.mark.asyncio
    async def test_extends_existing_values(self) -> None:
        router = Router()
        router.add_route("GET", "/a/:b", _echo_query)
        async with _make_client(router) as client:
            assert (await client.get("/a/b?b=c")).text == "b=c&b=b"

    @pytest.mark.asyncio
    async def test_keys_are_sorted(self) -> None:
        router = Router()
        router.add_route("GET", "/:id", _echo_query)
        async with _make_client(router) as client:
            assert (await client.get("/7?z=1&a=2&a=3")).text == "a=2&a=3&id=7&z=1"

    @pytest.mark.asyncio
    async def test_raw_utf8_query_is_preserved(self) -> None:
        router = Router()
        router.add_route("GET", "/:id", _echo_query)
        result = await _call(router, "GET", "/7", query="q=é".encode())
        assert result["body"] == b"id=7&q=%C3%A9"

    @pytest.mark.asyncio
    async def test_non_ascii_path_param_is_utf8_encoded(self) -> None:
        router = Router()
        router.add_route("GET", "/tags/:tag", _echo_query)
        result = await _call(router, "GET", "/tags/café", query=b"tag=%C3%A9t%C3%A9")
        assert result["body"] == b"tag=%C3%A9t%C3%A9&tag=caf%C3%A9"
        assert Request(result["scope"], None).query_params == {"tag": ["été", "café"]}

    @pytest.mark.asyncio
    async def test_path_params_recorded_in_scope(self) -> None:
        router = Router()
        router.add_route("GET", "/users/:user/posts/:post", _echo_query)
        result = await _call(router, "GET", "/users/ann/posts/9")
        assert result["scope"]["path_params"] == {"user": "ann", "post": "9"}

    @pytest.mark.asyncio
    async def test_request_sees_merged_query(self) -> None:
        captured: dict[str, Any] = {}

        async def handler(scope, receive, send) -> None:
            captured["params"] = Request(scope, receive).query_params
            await Response().send(send)

        router = Router()
        router.add_route("GET", "/entries/:id", handler)
        async with _make_client(router) as client:
            await client.get("/entries/42?id=1&flag=")
        assert captured["params"] == {"flag": [""], "id": ["1", "42"]}


# =====================================================================
# Host gate and composition
# =====================================================================


class TestHost:
    @pytest.mark.asyncio
    async def test_matches_only_related_host(self) -> None:
        router = Router()
        router.add_route("GET", "/a", Response())
        router.host = "example.com"
        async with _make_client(router) as client:
            assert (await client.get("/a")).status_code == 404
        async with _make_client(router, "http://example.com") as client:
            assert (await client.get("/a")).status_code == 200

    @pytest.mark.asyncio
    async def test_port_is_stripped(self) -> None:
        router = Router(host="example.com")
        router.add_route("GET", "/a", Response())
        async with _make_client(router, "http://example.com:8080") as client:
            assert (await client.get("/a")).status_code == 200

    @pytest.mark.asyncio
    async def test_missing_host_header_falls_through(self) -> None:
        router = Router(host="example.com")
        router.add_route("GET", "/a", Response())
        assert (await _call(router, "GET", "/a"))["status"] == 404
        hosted = await _call(router, "GET", "/a", headers=[(b"host", b"example.com")])
        assert hosted["status"] == 200

    def test_match_host(self) -> None:
        router = Router()
        assert router.match_host("")
        assert router.match_host("anything:1")
        router.host = "example.com"
        assert router.match_host("example.com")
        assert router.match_host("example.com:8080")
        assert not router.match_host("")
        assert not router.match_host("api.example.com")

    def test_match_host_ipv6(self) -> None:
        router = Router(host="[::1]")
        assert router.match_host("[::1]:8000")
        assert router.match_host("[::1]")
        assert not router.match_host("[::2]:8000")

    @pytest.mark.asyncio
    async def test_many_hosts(self) -> None:
        main_router = Router()
        main_router.add_route("GET", "/b", Response())
        api_router = Router(host="api.example.com", not_found=main_router)
        api_router.add_route("GET", "/a", Response())

        async with _make_client(api_router, "http://api.example.com") as client:
            assert (await client.get("/a")).status_code == 200
            assert (await client.get("/b")).status_code == 200
        async with _make_client(api_router) as client:
            assert (await client.get("/b")).status_code == 200
            assert (await client.get("/a")).status_code == 404

    @pytest.mark.asyncio
    async def test_router_as_route_handler(self) -> None:
        inner = Router()
        inner.add_route("GET", "/users/:id", _echo_query)
        outer = Router()
        outer.add_any("/users/:id", inner)
        async with _make_client(outer) as client:
            assert (await client.get("/users/3")).text == "id=3&id=3"


class TestFallbackCycles:
    def test_self_fallback_rejected(self) -> None:
        router = Router()
        with pytest.raises(ValueError, match="loop back"):
            router.not_found = router

    def test_mutual_fallback_rejected(self) -> None:
        a = Router()
        b = Router(not_found=a)
        with pytest.raises(ValueError, match="loop back"):
            a.not_found = b

    def test_long_chain_rejected(self) -> None:
        a = Router()
        c = Router(not_found=Router(not_found=a))
        with pytest.raises(ValueError):
            a.not_found = c

    def test_acyclic_chain_accepted(self) -> None:
        a = Router()
        b = Router(not_found=Router())
        a.not_found = b
        assert a.not_found is b


# =====================================================================
# Lifespan
# =====================================================================


@pytest.mark.asyncio
async def test_lifespan_is_acknowledged() -> None:
    incoming = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
    sent: list[dict[str, Any]] = []

    async def receive() -> dict[str, Any]:
        return incoming.pop(0)

    async def send(message: dict[str, Any]) -> None:
        sent.append(message)

    await Router()({"type": "lifespan"}, receive, send)
    assert [m["type"] for m in sent] == ["lifespan.startup.complete", "lifespan.shutdown.complete"]


@pytest.mark.asyncio
async def test_websocket_is_rejected_without_http_messages() -> None:
    sent: list[dict[str, Any]] = []

    async def receive() -> dict[str, Any]:
        return {"type": "websocket.connect"}

    async def send(message: dict[str, Any]) -> None:
        sent.append(message)

    router = Router()
    router.add_any("/ws", Response())
    await router({"type": "websocket", "path": "/ws", "headers": []}, receive, send)
    assert sent == [{"type": "websocket.close", "code": 1000}]


@pytest.mark.asyncio
async def test_unknown_scope_type_is_ignored() -> None:
    sent: list[dict[str, Any]] = []

    async def send(message: dict[str, Any]) -> None:
        sent.append(message)

    await Router()({"type": "custom"}, None, send)
    assert sent == []
