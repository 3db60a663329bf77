"""
httpwrap.tier1_runtime.query
──────────────────────────────
Query-string helpers: parse a raw query into pairs, encode request
parameters, and append encoded parameters to a URL's existing query.

Encoding uses percent-escapes for spaces (``x y`` → ``x%20y``). Appending
never deduplicates: a key already present in the URL stays there and the
new pair is added after it.
"""
from __future__ import annotations

from typing import Any, Mapping
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit


def parse_query(query: str) -> dict[str, str]:
    """
    Parse ``a=1&b=2`` into a dict. Values are URL-decoded, blank values
    are kept and the last occurrence of a duplicate key wins.
    """
    query = query.lstrip("?")
    return dict(parse_qsl(query, keep_blank_values=True))


def _scalar(value: Any) -> str | bytes:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, bytes):
        # percent-encoded as is by urlencode
        return value
    return str(value)


def form_fields(params: Mapping[str, Any]) -> dict[str, Any]:
    """
    Stringify *params*. ``None`` values are skipped, booleans become
    ``1``/``0``, bytes are kept as raw bytes and list or tuple values stay
    lists (one pair per item).
    """
    fields: dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            fields[str(key)] = [_scalar(item) for item in value if item is not None]
        else:
            fields[str(key)] = _scalar(value)
    return fields


def encode_params(params: Mapping[str, Any]) -> str:
    """Encode *params* as ``k=v&k2=v2`` following the form_fields rules."""
    return urlencode(form_fields(params), doseq=True, quote_via=quote)


def append_query(url: str, params: Mapping[str, Any]) -> str:
    """
    Return *url* with *params* appended to its query component.

    The URL is split into components and reassembled, so userinfo, port,
    path and fragment come back exactly as they were.
    """
    encoded = encode_params(params)
    if not encoded:
        return url
    parts = urlsplit(url)
    query = f"{parts.query}&{encoded}" if parts.query else encoded
    return urlunsplit(parts._replace(query=query))


__all__ = ["parse_query", "encode_params", "form_fields", "append_query"]
