"""Exceptions raised by signpost."""

from __future__ import annotations


class PatternError(ValueError):
    """A route pattern could not be compiled.

    Raised at registration time so a router never holds a route whose
    matcher is unusable.
    """

    def __init__(self, pattern: object, reason: str, position: int | None = None) -> None:
        self.pattern = pattern
        self.reason = reason
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Invalid route pattern {pattern!r}{where}: {reason}")
