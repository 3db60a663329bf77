"""
httpwrap.tier0_core.redact
───────────────────────────
Credential redaction for everything the wrapper logs: header maps, cookie
maps, option values and URLs. The structlog pipeline in logging.py runs
every event through structlog_redact_processor before rendering.
"""
from __future__ import annotations

import re
from typing import Any

# ── Default redacted key names (case-insensitive) ─────────────────────────

_SENSITIVE_KEYS: frozenset[str] = frozenset({
    "password", "passwd", "secret", "token", "api_key", "apikey",
    "access_token", "refresh_token", "client_secret",
    "authorization", "proxy-authorization", "x-api-key",
    "cookie", "set-cookie", "userpwd", "session",
})

# ── Regex patterns for inline scrubbing ───────────────────────────────────

_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # user:password@ in URLs
    (re.compile(r"(?<=://)([^/@:\s]+):([^/@\s]+)@"), r"\1:[REDACTED]@"),
    # Bearer tokens
    (re.compile(r"Bearer\s+[A-Za-z0-9\-._~+/]+=*", re.I), "Bearer [REDACTED]"),
    # Basic auth
    (re.compile(r"Basic\s+[A-Za-z0-9+/=]+", re.I), "Basic [REDACTED]"),
    # Secrets passed as query parameters or form fields
    (re.compile(
        r"(password|secret|token|api[_-]?key)=[^\s&#\"']+",
        re.I,
    ), r"\1=[REDACTED]"),
]

REDACTED = "[REDACTED]"


# ── Public API ─────────────────────────────────────────────────────────────

def redact_dict(
    data: dict[Any, Any],
    sensitive_keys: frozenset[str] | None = None,
    *,
    deep: bool = True,
) -> dict[Any, Any]:
    """
    Return a copy of *data* with sensitive key values replaced by REDACTED.
    Non-string keys (e.g. Option members) are matched by their name.
    If *deep* is True, recurse into nested dicts.
    """
    keys = sensitive_keys if sensitive_keys is not None else _SENSITIVE_KEYS
    result: dict[Any, Any] = {}
    for k, v in data.items():
        name = k if isinstance(k, str) else getattr(k, "name", str(k))
        if name.lower() in keys:
            result[k] = REDACTED
        elif deep and isinstance(v, dict):
            result[k] = redact_dict(v, keys, deep=True)
        elif isinstance(v, str):
            result[k] = scrub_string(v)
        else:
            result[k] = v
    return result


def redact_header_lines(lines: list[str]) -> list[str]:
    """Redact compiled ``"Name: value"`` header lines."""
    result: list[str] = []
    for line in lines:
        name, sep, _ = line.partition(":")
        if sep and name.strip().lower() in _SENSITIVE_KEYS:
            result.append(f"{name}: {REDACTED}")
        else:
            result.append(line)
    return result


def scrub_string(text: str) -> str:
    """Apply regex-based scrubbing to an arbitrary string (URLs included)."""
    for pattern, replacement in _PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def structlog_redact_processor(
    logger: Any,
    method: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """
    structlog processor that redacts sensitive keys from the event dict.
    Add to the structlog processor chain before any serialisation step.
    """
    return redact_dict(event_dict)


__all__ = [
    "REDACTED",
    "redact_dict",
    "redact_header_lines",
    "scrub_string",
    "structlog_redact_processor",
]
