"""Compile sinatra-style path patterns into matchers."""

from __future__ import annotations

import re
from typing import NamedTuple

from signpost.errors import PatternError

_PLACEHOLDER_RE = re.compile(r":(\w*)", re.ASCII)

# One or more characters within a single segment, stopping at query and
# fragment delimiters.
_SEGMENT_CAPTURE = "([^#?/]+)"


class Pattern(NamedTuple):
    """A compiled path matcher and the names of its capture groups."""

    source: str
    regex: re.Pattern[str]
    names: tuple[str, ...]

    def match(self, path: str) -> bool:
        return self.regex.fullmatch(path) is not None

    def captures(self, path: str) -> tuple[str, ...] | None:
        """Return the captured substrings for *path*, or ``None`` on a miss."""
        m = self.regex.fullmatch(path)
        if m is None:
            return None
        return m.groups()


ANYTHING = Pattern("*", re.compile(r".*", re.DOTALL), ())


def compile_pattern(source: str) -> Pattern:
    """Compile ``/hello/:world`` into ``^/hello/([^#?/]+)$`` and ``("world",)``.

    Empty segments are preserved, so leading, trailing and doubled slashes
    are significant.
    """
    if not isinstance(source, str):
        raise PatternError(source, "pattern must be a string")

    names: list[str] = []
    parts: list[str] = []
    offset = 0

    for segment in source.split("/"):
        parts.append(_compile_segment(source, segment, offset, names))
        offset += len(segment) + 1

    regex = re.compile("/".join(parts))
    return Pattern(source, regex, tuple(names))


def _compile_segment(source: str, segment: str, offset: int, names: list[str]) -> str:
    pieces: list[str] = []
    last_end = 0

    for m in _PLACEHOLDER_RE.finditer(segment):
        name = m.group(1)
        if not name:
            raise PatternError(source, "placeholder without a name", offset + m.start())
        pieces.append(re.escape(segment[last_end : m.start()]))
        pieces.append(_SEGMENT_CAPTURE)
        names.append(name)
        last_end = m.end()

    pieces.append(re.escape(segment[last_end:]))
    return "".join(pieces)
