"""
httpwrap test configuration.

All tests run against in-memory transports by default, so no network is required.
Override by setting environment variables before running pytest.
"""
from __future__ import annotations

import os

import pytest

# ── Force mock transports for all tests ───────────────────────────────────
# These must be set before any httpwrap modules are imported.

os.environ.setdefault("HTTPWRAP_TRANSPORT_BACKEND", "mock")
os.environ.setdefault("HTTPWRAP_LOG_LEVEL", "WARNING")
os.environ.setdefault("HTTPWRAP_LOG_FORMAT", "console")


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def reset_config_cache():
    """
    Clear the cached config around every test so monkeypatched env vars
    are picked up and don't leak into the next test.
    """
    from httpwrap.tier0_core.config import _reset_config

    _reset_config()
    yield
    _reset_config()


@pytest.fixture
def mock_transport():
    """Return a fresh MockTransport."""
    from httpwrap.tier1_runtime.transport import MockTransport
    return MockTransport()


@pytest.fixture
def builder(mock_transport):
    """Return a RequestBuilder wired to the mock_transport fixture."""
    from httpwrap.tier2_client.builder import RequestBuilder

    with RequestBuilder(transport_factory=lambda: mock_transport) as b:
        yield b


@pytest.fixture
def cookie_file(tmp_path):
    """Return the path of an empty, writable cookie jar file."""
    path = tmp_path / "cookies.txt"
    path.write_text("")
    return str(path)
