"""Query-string parsing and merging."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from signpost._types import Params


def parse_query(query_string: bytes | str, encoding: str = "utf-8") -> Params:
    """Parse a query string into ordered multi-valued params.

    Blank values are kept (``a=&b`` gives ``{"a": [""], "b": [""]}``).
    """
    if isinstance(query_string, bytes):
        query_string = query_string.decode(encoding, errors="replace")
    params: Params = {}
    for key, value in parse_qsl(query_string, keep_blank_values=True, encoding=encoding, errors="replace"):
        params.setdefault(key, []).append(value)
    return params


def merge_params(existing: Params, extra: Mapping[str, Sequence[str]]) -> Params:
    """Append *extra* values after *existing* ones, key by key.

    Nothing is replaced: ``{"b": ["c"]}`` merged with ``{"b": ["b"]}`` gives
    ``{"b": ["c", "b"]}``.
    """
    merged = {key: list(values) for key, values in existing.items()}
    for key, values in extra.items():
        merged.setdefault(key, []).extend(values)
    return merged


def encode_query(params: Mapping[str, Sequence[str]], encoding: str = "utf-8") -> str:
    """Encode params sorted by key, values kept in order."""
    return urlencode(sorted(params.items()), doseq=True, encoding=encoding)


def extend_query_string(query_string: bytes, extra: Mapping[str, Sequence[str]]) -> bytes:
    """Append *extra* to a raw ASGI query string and re-encode it.

    Existing keys and values keep their original bytes. latin-1 maps every
    byte to one code point, so the round trip is lossless. The new text
    values are encoded as UTF-8.
    """
    existing = parse_query(query_string, encoding="latin-1")
    raw_extra = {
        _raw(key): [_raw(value) for value in values] for key, values in extra.items()
    }
    return encode_query(merge_params(existing, raw_extra), encoding="latin-1").encode("ascii")


def _raw(text: str) -> str:
    return text.encode("utf-8").decode("latin-1")
