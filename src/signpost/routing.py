"""Route matching and dispatch."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from signpost.endpoint import Endpoint
from signpost.pattern import ANYTHING, Pattern, compile_pattern
from signpost.query import extend_query_string
from signpost.request import Request
from signpost.response import PlainTextResponse

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from signpost._types import ASGIApp, Params, Receive, Scope, Send

logger = logging.getLogger("signpost")

ANY = "ANY"

_NOT_FOUND = PlainTextResponse(
    "Not Found\n",
    status_code=404,
    headers={"x-content-type-options": "nosniff"},
)


async def not_found_handler(scope: Scope, receive: Receive, send: Send) -> None:
    """Default fallback: ``404`` with a plain-text ``Not Found`` body."""
    await _NOT_FOUND.send(send)


class Route:
    """A compiled pattern paired with the handler it dispatches to."""

    __slots__ = ("handler", "pattern")

    def __init__(self, pattern: str | Pattern, handler: ASGIApp) -> None:
        self.pattern = pattern if isinstance(pattern, Pattern) else compile_pattern(pattern)
        self.handler = handler

    @classmethod
    def catch_all(cls, handler: ASGIApp) -> Route:
        """A route that matches every path and extracts nothing."""
        return cls(ANYTHING, handler)

    @property
    def names(self) -> tuple[str, ...]:
        return self.pattern.names

    def match(self, path: str) -> bool:
        return self.pattern.match(path)

    def extract_params(self, path: str) -> Params:
        """Bind each placeholder name to its captured value.

        Only valid for a *path* that :meth:`match` accepts; any other path
        raises :class:`ValueError`.
        """
        captures = self.pattern.captures(path)
        if captures is None:
            msg = f"{path!r} does not match {self.pattern.source!r}"
            raise ValueError(msg)
        params: Params = {}
        for name, value in zip(self.pattern.names, captures, strict=True):
            params.setdefault(name, []).append(value)
        return params

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        extracted = self.extract_params(scope["path"])
        scope["query_string"] = extend_query_string(scope.get("query_string", b""), extracted)
        scope["path_params"] = {
            **scope.get("path_params", {}),
            **{name: values[-1] for name, values in extracted.items()},
        }
        await self.handler(scope, receive, send)

    def __repr__(self) -> str:
        return f"Route({self.pattern.source!r}, {self.handler!r})"


class Router:
    """Method-keyed route table with host gating and a fallback handler.

    Routes registered for the request's method are scanned first, in
    registration order, then routes registered for any method. The first
    match wins. Unmatched requests, and every request when the host gate
    fails, go to :attr:`not_found`.

    A router is itself an ASGI app, so it can serve as another router's
    fallback or as a route's handler.
    """

    __slots__ = ("_host", "_not_found", "routes")

    def __init__(self, *, host: str = "", not_found: ASGIApp | None = None) -> None:
        self.routes: dict[str, list[Route]] = {}
        self._host = host
        self._not_found: ASGIApp = not_found_handler
        if not_found is not None:
            self.not_found = not_found

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def host(self) -> str:
        return self._host

    @host.setter
    def host(self, host: str) -> None:
        self._host = host

    @property
    def not_found(self) -> ASGIApp:
        return self._not_found

    @not_found.setter
    def not_found(self, handler: ASGIApp) -> None:
        for router in _fallback_chain(handler):
            if router is self:
                msg = "Router fallback chain would loop back to itself"
                raise ValueError(msg)
        self._not_found = handler

    # ------------------------------------------------------------------
    # Route registration
    # ------------------------------------------------------------------

    def add_route(self, method: str, pattern: str, handler: ASGIApp) -> Route:
        route = Route(pattern, handler)
        self._append(method.upper(), route)
        return route

    def add_any(self, pattern: str, handler: ASGIApp) -> Route:
        return self.add_route(ANY, pattern, handler)

    def handle(self, handler: ASGIApp) -> Route:
        """Register *handler* for every method and every path."""
        route = Route.catch_all(handler)
        self._append(ANY, route)
        return route

    def _append(self, method: str, route: Route) -> None:
        self.routes.setdefault(method, []).append(route)
        logger.debug("Registered %s %s params=%s", method, route.pattern.source, list(route.names))

    def _route(self, method: str, pattern: str) -> Callable[..., Any]:
        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.add_route(method, pattern, Endpoint(func))
            return func

        return decorator

    def get(self, pattern: str) -> Callable[..., Any]:
        return self._route("GET", pattern)

    def post(self, pattern: str) -> Callable[..., Any]:
        return self._route("POST", pattern)

    def put(self, pattern: str) -> Callable[..., Any]:
        return self._route("PUT", pattern)

    def delete(self, pattern: str) -> Callable[..., Any]:
        return self._route("DELETE", pattern)

    def patch(self, pattern: str) -> Callable[..., Any]:
        return self._route("PATCH", pattern)

    def options(self, pattern: str) -> Callable[..., Any]:
        return self._route("OPTIONS", pattern)

    def head(self, pattern: str) -> Callable[..., Any]:
        return self._route("HEAD", pattern)

    def any(self, pattern: str) -> Callable[..., Any]:
        return self._route(ANY, pattern)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def match_host(self, host: str) -> bool:
        return not self._host or self._host == _strip_port(host)

    def match(self, method: str, path: str) -> Route | None:
        """Return the first route matching *path*, or ``None``."""
        for route in self.candidates(method):
            if route.match(path):
                return route
        return None

    def candidates(self, method: str) -> Iterator[Route]:
        """Yield routes in scan order: *method* first, then any-method."""
        method = method.upper()
        yield from self.routes.get(method, ())
        if method != ANY:
            yield from self.routes.get(ANY, ())

    def route_count(self) -> int:
        return sum(len(routes) for routes in self.routes.values())

    # ------------------------------------------------------------------
    # ASGI interface
    # ------------------------------------------------------------------

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        kind = scope["type"]
        if kind == "lifespan":
            await self._lifespan(receive, send)
            return
        if kind == "websocket":
            # Closing before accept rejects the handshake.
            logger.debug("Rejecting websocket %s", scope.get("path"))
            await send({"type": "websocket.close", "code": 1000})
            return
        if kind != "http":
            return

        host = Request(scope, receive).host
        if self.match_host(host):
            route = self.match(scope["method"], scope["path"])
            if route is not None:
                logger.debug("%s %s -> %r", scope["method"], scope["path"], route)
                await route(scope, receive, send)
                return
        else:
            logger.debug("Host %r rejected by %r", host, self._host)

        logger.debug("%s %s -> fallback", scope["method"], scope["path"])
        await self._not_found(scope, receive, send)

    async def _lifespan(self, receive: Receive, send: Send) -> None:
        """Acknowledge startup and shutdown; a router holds no resources."""
        while True:
            message = await receive()
            phase = message["type"].rpartition(".")[2]
            logger.debug("Lifespan %s for %r", phase, self)
            await send({"type": f"lifespan.{phase}.complete"})
            if phase == "shutdown":
                return

    # ------------------------------------------------------------------
    # Granian convenience
    # ------------------------------------------------------------------

    def run(
        self,
        host: str = "127.0.0.1",
        port: int = 8000,
        *,
        dev: bool = False,
        reload: bool | None = None,
        workers: int = 1,
        log_level: str = "info",
        **granian_kwargs: Any,
    ) -> None:
        """Serve this router with Granian."""
        from signpost._server import serve

        serve(
            self,
            host=host,
            port=port,
            dev=dev,
            reload=reload,
            workers=workers,
            log_level=log_level,
            granian_kwargs=granian_kwargs or None,
        )

    def __repr__(self) -> str:
        return f"Router(host={self._host!r}, routes={self.route_count()})"


# ------------------------------------------------------------------
# Module-level helpers
# ------------------------------------------------------------------


def _fallback_chain(handler: ASGIApp) -> Iterator[Router]:
    seen: set[int] = set()
    while isinstance(handler, Router) and id(handler) not in seen:
        seen.add(id(handler))
        yield handler
        handler = handler.not_found


def _strip_port(host: str) -> str:
    """``example.com:8080`` -> ``example.com``; ``[::1]:80`` -> ``[::1]``."""
    if host.startswith("["):
        end = host.find("]")
        return host[: end + 1] if end != -1 else host
    return host.split(":", 1)[0]
