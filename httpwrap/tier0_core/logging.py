"""
httpwrap.tier0_core.logging
────────────────────────────
Structured logs with levels, automatic context injection and credential
redaction for every transfer the wrapper performs.

Minimal stack: structlog (stdout JSON or console)
Configure via: HTTPWRAP_LOG_LEVEL, HTTPWRAP_LOG_FORMAT=json|console
"""
from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from httpwrap.tier0_core.redact import structlog_redact_processor


# ── Configuration ─────────────────────────────────────────────────────────────

def _configure_structlog() -> None:
    from httpwrap.tier0_core.config import get_config

    config = get_config()
    log_level = config.log_level.upper()
    log_format = config.log_format.lower()

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog_redact_processor,
    ]

    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    package_logger = logging.getLogger("httpwrap")
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, log_level, logging.INFO))


# ── Public API ────────────────────────────────────────────────────────────────

_configured = False


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Return a structured logger bound to the given name.

    Usage:
        log = get_logger(__name__)
        log.debug("transfer.start", method="GET", url="https://example.com/")
    """
    global _configured
    if not _configured:
        _configure_structlog()
        _configured = True
    return structlog.get_logger(name or __name__)


def bind_context(**kwargs: Any) -> None:
    """
    Bind key-value pairs to the current thread context.
    All subsequent log calls in this context will include these fields.

    Usage:
        bind_context(job="nightly-sync")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all context-bound log fields."""
    structlog.contextvars.clear_contextvars()


__all__ = ["get_logger", "bind_context", "clear_context"]
