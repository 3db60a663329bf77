"""
httpwrap
────────
Stable top-level exports. Import from here, not from sub-modules directly.
Every name exported here is part of the public API and subject to semver.
"""
from httpwrap.tier0_core.logging import get_logger, bind_context, clear_context
from httpwrap.tier0_core.errors import (
    HttpWrapError,
    ConfigurationError,
    NotFoundError,
    TransferError,
)
from httpwrap.tier0_core.config import get_config, WrapperConfig
from httpwrap.tier0_core.http import RequestMethod
from httpwrap.tier0_core.options import Option, BrowserAgent

from httpwrap.tier1_runtime.info import TransferInfo
from httpwrap.tier1_runtime.transport import (
    Transport,
    HttpxTransport,
    MockTransport,
    create_transport,
)

from httpwrap.tier2_client.builder import RequestBuilder

__version__ = "0.1.0"
__all__ = [
    # logging
    "get_logger", "bind_context", "clear_context",
    # errors
    "HttpWrapError", "ConfigurationError", "NotFoundError", "TransferError",
    # config
    "get_config", "WrapperConfig",
    # http / options
    "RequestMethod", "Option", "BrowserAgent",
    # transport
    "TransferInfo", "Transport", "HttpxTransport", "MockTransport", "create_transport",
    # builder
    "RequestBuilder",
]
