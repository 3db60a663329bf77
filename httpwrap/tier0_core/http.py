"""
httpwrap.tier0_core.http
─────────────────────────
HTTP primitives: status code constants and the request-method marker.

A request is exactly one of HEAD, GET, POST or a custom verb. The builder
stores a single RequestMethod per request instead of a set of competing
flags, so a previous request can never leave a stale marker behind.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# ── Status code constants ──────────────────────────────────────────────────

class HTTP:
    """HTTP status codes the wrapper inspects."""

    # first status treated as a failure when FAILONERROR is set
    BAD_REQUEST = 400


# ── Method marker ─────────────────────────────────────────────────────────

class MethodKind(Enum):
    HEAD = "HEAD"
    GET = "GET"
    POST = "POST"
    CUSTOM = "CUSTOM"


@dataclass(frozen=True)
class RequestMethod:
    """Tagged request method: HEAD, GET, POST or CUSTOM carrying its verb."""
    kind: MethodKind
    custom_verb: str | None = None

    @classmethod
    def from_verb(cls, verb: str) -> RequestMethod:
        """Build the marker for *verb* (case-insensitive)."""
        upper = verb.strip().upper()
        if not upper:
            raise ValueError("HTTP method must not be empty")
        if upper in (MethodKind.HEAD.value, MethodKind.GET.value, MethodKind.POST.value):
            return cls(MethodKind(upper))
        return cls(MethodKind.CUSTOM, upper)

    @property
    def verb(self) -> str:
        """The verb sent on the wire."""
        if self.kind is not MethodKind.CUSTOM:
            return self.kind.value
        if not self.custom_verb:
            raise ValueError("CUSTOM request method needs a verb")
        return self.custom_verb

    def __str__(self) -> str:
        return self.verb


__all__ = ["HTTP", "MethodKind", "RequestMethod"]
