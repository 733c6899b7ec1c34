"""HTTP response types."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    from signpost._types import Receive, Scope, Send


class Response:
    """A complete HTTP response, sendable over any ASGI *send* callable.

    A response is also an ASGI app, so it can be registered as a handler or
    used as a router's fallback.
    """

    media_type: str | None = None
    charset = "utf-8"

    def __init__(
        self,
        body: bytes | str = b"",
        status_code: int = 200,
        headers: dict[str, str] | None = None,
        media_type: str | None = None,
    ) -> None:
        self.status_code = status_code
        if media_type is not None:
            self.media_type = media_type
        self.body = self.render(body)
        self.headers: dict[str, str] = {k.lower(): v for k, v in (headers or {}).items()}

    def render(self, content: Any) -> bytes:
        if isinstance(content, bytes):
            return content
        return str(content).encode(self.charset)

    def raw_headers(self) -> list[tuple[bytes, bytes]]:
        headers = dict(self.headers)
        if self.media_type is not None and "content-type" not in headers:
            content_type = self.media_type
            if content_type.startswith("text/"):
                content_type += f"; charset={self.charset}"
            headers["content-type"] = content_type
        headers.setdefault("content-length", str(len(self.body)))
        return [(k.encode("latin-1"), v.encode("latin-1")) for k, v in headers.items()]

    async def send(self, send: Send) -> None:
        await send(
            {
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self.raw_headers(),
            }
        )
        await send({"type": "http.response.body", "body": self.body})

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.send(send)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code})"


class PlainTextResponse(Response):
    media_type = "text/plain"


class JSONResponse(Response):
    """Serialise dicts, lists and pydantic models as JSON."""

    media_type = "application/json"

    def __init__(
        self,
        content: Any,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(content, status_code=status_code, headers=headers)

    def render(self, content: Any) -> bytes:
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json")
        return json.dumps(content, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
