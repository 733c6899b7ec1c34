"""Sinatra-style request routing for ASGI."""

__version__ = "0.1.0"

from signpost.endpoint import Endpoint
from signpost.errors import PatternError
from signpost.pattern import Pattern, compile_pattern
from signpost.request import Request
from signpost.response import JSONResponse, PlainTextResponse, Response
from signpost.routing import Route, Router, not_found_handler

__all__ = [
    "Endpoint",
    "JSONResponse",
    "Pattern",
    "PatternError",
    "PlainTextResponse",
    "Request",
    "Response",
    "Route",
    "Router",
    "compile_pattern",
    "not_found_handler",
]
