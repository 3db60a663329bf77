"""
httpwrap.tier0_core.errors
───────────────────────────
Standard error taxonomy for the wrapper. Every error raised by a builder
or a transport is an HttpWrapError, so callers can catch one base class.

Errors are raised to the caller as soon as they are detected. The library
never logs or swallows them.
"""
from __future__ import annotations

from typing import Any


# ── Base error ────────────────────────────────────────────────────────────────

class HttpWrapError(Exception):
    """
    Base class for all wrapper errors. Every error has:
    - code: stable machine-readable string (snake_case)
    - user_message: safe to surface to end users
    - detail: internal context
    - metadata: extra structured fields
    """

    code: str = "httpwrap_error"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "An unexpected error occurred.",
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        self.code = code or self.__class__.code
        self.user_message = user_message
        self.detail = detail or user_message
        self.metadata = metadata
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.user_message,
            }
        }


# ── Typed error classes ───────────────────────────────────────────────────────

class ConfigurationError(HttpWrapError):
    """Invalid local setup: unwritable cookie file, unknown backend, ..."""
    code = "configuration_error"


class NotFoundError(HttpWrapError):
    """Requested value does not exist (e.g. transfer info before a request)."""
    code = "not_found"


class TransferError(HttpWrapError):
    """
    The transport reported a failure. Carries the transport's native error
    number and message verbatim.
    """
    code = "transfer_error"

    def __init__(
        self,
        errno: int,
        message: str,
        **metadata: Any,
    ) -> None:
        self.errno = errno
        self.message = message
        super().__init__(
            None,
            user_message=f"Transfer failed: {message}",
            detail=f"[{errno}] {message}",
            **metadata,
        )

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["error"]["errno"] = self.errno
        return d


__all__ = [
    "HttpWrapError",
    "ConfigurationError",
    "NotFoundError",
    "TransferError",
]
