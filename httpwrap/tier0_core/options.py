"""
httpwrap.tier0_core.options
────────────────────────────
Transport option identifiers and the static registries the builder seeds
itself from: canned browser user agents, the default header bundle and
the default option bundle.

Option names follow the libcurl vocabulary (URL, HTTPHEADER, POSTFIELDS,
COOKIEJAR, ...) so option maps read the same whichever transport runs them.
"""
from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class Option(str, Enum):
    """Identifiers accepted as keys of a builder's option map."""

    # request target and method markers
    URL = "url"
    HTTPGET = "httpget"
    NOBODY = "nobody"
    POST = "post"
    CUSTOMREQUEST = "customrequest"

    # payload and request headers
    POSTFIELDS = "postfields"
    HTTPHEADER = "httpheader"
    USERAGENT = "useragent"
    REFERER = "referer"
    ENCODING = "encoding"
    USERPWD = "userpwd"

    # cookies
    COOKIE = "cookie"
    COOKIEFILE = "cookiefile"
    COOKIEJAR = "cookiejar"

    # behaviour
    TIMEOUT = "timeout"
    CONNECTTIMEOUT = "connecttimeout"
    FOLLOWLOCATION = "followlocation"
    MAXREDIRS = "maxredirs"
    AUTOREFERER = "autoreferer"
    FAILONERROR = "failonerror"
    SSL_VERIFYPEER = "ssl_verifypeer"
    PROXY = "proxy"
    FILETIME = "filetime"

    # output
    RETURNTRANSFER = "returntransfer"
    HEADER = "header"
    FILE = "file"


METHOD_MARKERS: frozenset[Option] = frozenset({
    Option.HTTPGET,
    Option.NOBODY,
    Option.POST,
    Option.CUSTOMREQUEST,
})
"""Options derived from the request method on every request."""


# ── Browser user agents ────────────────────────────────────────────────────

class BrowserAgent(Enum):
    """Canned User-Agent strings selectable by a short token."""

    IE = "Mozilla/5.0 (compatible; MSIE 10.0; Windows NT 6.1; WOW64; Trident/6.0)"
    FIREFOX = "Mozilla/5.0 (Windows NT 6.1; WOW64; rv:22.0) Gecko/20100101 Firefox/22.0"
    OPERA = "Opera/9.80 (Windows NT 6.1; WOW64) Presto/2.12.388 Version/12.15"
    CHROME = (
        "Mozilla/5.0 (Windows NT 6.1; WOW64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/28.0.1500.72 Safari/537.36"
    )
    BOT = "Googlebot/2.1 (+http://www.google.com/bot.html)"

    @classmethod
    def lookup(cls, token: str) -> BrowserAgent | None:
        """Return the agent registered under *token*, or None."""
        try:
            return cls[token.strip().upper()]
        except KeyError:
            return None


def resolve_user_agent(name: str) -> str:
    """Expand a registry token to its User-Agent string; pass anything else through."""
    agent = BrowserAgent.lookup(name)
    return agent.value if agent is not None else name


# ── Default bundles ────────────────────────────────────────────────────────

DEFAULT_HEADERS: Mapping[str, str] = MappingProxyType({
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Charset": "utf-8,windows-1251;q=0.7,*;q=0.7",
    "Accept-Language": "en-us,en;q=0.8,ru-ru;q=0.5,ru;q=0.3",
    "Accept-Encoding": "gzip,deflate",
    "Connection": "keep-alive",
    "Cache-Control": "max-age=0",
    "Pragma": "",
})

DEFAULT_OPTIONS: Mapping[Option, Any] = MappingProxyType({
    Option.RETURNTRANSFER: True,
    Option.ENCODING: "gzip,deflate",
    Option.AUTOREFERER: True,
    Option.CONNECTTIMEOUT: 15,
    Option.TIMEOUT: 30,
})


__all__ = [
    "Option",
    "METHOD_MARKERS",
    "BrowserAgent",
    "resolve_user_agent",
    "DEFAULT_HEADERS",
    "DEFAULT_OPTIONS",
]
