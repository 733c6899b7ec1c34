"""Lift plain functions into ASGI handlers."""

from __future__ import annotations

import asyncio
import inspect
from typing import TYPE_CHECKING, Any, get_type_hints

from pydantic import BaseModel, TypeAdapter

from signpost.request import Request
from signpost.response import JSONResponse, PlainTextResponse, Response

if TYPE_CHECKING:
    from collections.abc import Callable

    from signpost._types import Receive, Scope, Send


class Endpoint:
    """ASGI adapter around a sync or async request function.

    The signature is inspected once, at construction. A parameter named
    ``request`` receives the :class:`Request`; any other parameter whose name
    matches a path parameter receives its value, converted to the annotated
    type when there is one.
    """

    __slots__ = ("adapters", "func", "is_coroutine", "param_names", "wants_request")

    def __init__(self, func: Callable[..., Any]) -> None:
        self.func = func
        self.is_coroutine = inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(
            getattr(func, "__call__", None)
        )
        sig = inspect.signature(func)
        self.wants_request = "request" in sig.parameters
        self.param_names = frozenset(sig.parameters.keys()) - {"request"}
        hints = _type_hints(func, sig)
        self.adapters: dict[str, TypeAdapter[Any]] = {
            name: TypeAdapter(hints[name]) for name in self.param_names if name in hints
        }

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        response = await self.invoke(request)
        await _send_response(response, send)

    async def invoke(self, request: Request) -> Any:
        path_params = request.path_params
        kwargs: dict[str, Any] = {}
        for name in self.param_names:
            if name not in path_params:
                continue
            adapter = self.adapters.get(name)
            value = path_params[name]
            kwargs[name] = adapter.validate_python(value) if adapter is not None else value
        if self.wants_request:
            kwargs["request"] = request

        if self.is_coroutine:
            return await self.func(**kwargs)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self.func(**kwargs))

    def __repr__(self) -> str:
        return getattr(self.func, "__qualname__", repr(self.func))


def _type_hints(func: Callable[..., Any], sig: inspect.Signature) -> dict[str, Any]:
    """Resolved annotations, falling back to the signature's for partials
    and callable instances, which ``get_type_hints`` rejects."""
    try:
        return get_type_hints(func)
    except TypeError:
        return {
            name: param.annotation
            for name, param in sig.parameters.items()
            if param.annotation is not inspect.Parameter.empty and not isinstance(param.annotation, str)
        }


async def _send_response(response: Any, send: Send) -> None:
    if isinstance(response, Response):
        await response.send(send)
    elif isinstance(response, dict | list | BaseModel):
        await JSONResponse(response).send(send)
    elif response is None:
        await Response().send(send)
    else:
        await PlainTextResponse(str(response)).send(send)
