"""
httpwrap.tier2_client.builder
───────────────────────────────
RequestBuilder: accumulates options, headers, cookies and request
parameters across calls, reconciles them into a flat option map right
before each transfer, and keeps the last response body and transfer
metadata for inspection.

Usage::

    with RequestBuilder(set_defaults=True) as builder:
        builder.add_header("X-Requested-With", "XMLHttpRequest")
        builder.add_cookie("session", "abc")
        body = builder.get("https://example.com/search", {"q": "x y"})
        status = builder.get_transfer_info("http_code")

One builder owns one transport. It is not thread-safe.
"""
from __future__ import annotations

from typing import Any, Callable, Mapping

from httpwrap.tier0_core.errors import NotFoundError
from httpwrap.tier0_core.http import MethodKind, RequestMethod
from httpwrap.tier0_core.logging import get_logger
from httpwrap.tier0_core.options import (
    DEFAULT_HEADERS,
    DEFAULT_OPTIONS,
    METHOD_MARKERS,
    Option,
    resolve_user_agent,
)
from httpwrap.tier0_core.redact import redact_header_lines, scrub_string
from httpwrap.tier1_runtime.cookies import compile_cookies, ensure_writable, truncate_cookie_file
from httpwrap.tier1_runtime.info import TransferInfo
from httpwrap.tier1_runtime.query import append_query, parse_query
from httpwrap.tier1_runtime.transport import Transport, create_transport

log = get_logger(__name__)


def _as_option(option: Option | str) -> Option:
    return option if isinstance(option, Option) else Option(str(option).lower())


class RequestBuilder:
    """Stateful HTTP request builder over a pluggable Transport."""

    def __init__(
        self,
        set_defaults: bool = False,
        *,
        transport_factory: Callable[[], Transport] | None = None,
    ) -> None:
        self._transport_factory = transport_factory or create_transport
        self._transport: Transport | None = self._transport_factory()

        self._options: dict[Option, Any] = {}
        self._headers: dict[str, str] = {}
        self._cookies: dict[str, Any] = {}
        self._request_params: dict[str, Any] = {}
        self._cookie_file = ""
        self._method: RequestMethod | None = None

        self._response: bytes | None = None
        self._transfer_info: TransferInfo | None = None

        if set_defaults:
            from httpwrap.tier0_core.config import get_config
            self.set_defaults(get_config().default_user_agent)

    # ── lifecycle ─────────────────────────────────────────────────────────

    def __enter__(self) -> RequestBuilder:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release the transport. Safe to call more than once."""
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    def reset(self) -> None:
        """
        Dispose and reacquire the transport. Options, headers, cookies,
        request params and the cookie file path are kept; the transfer
        metadata is cleared.
        """
        self.close()
        self._transfer_info = None
        self._transport = self._transport_factory()
        log.debug("transport.reset")

    def reset_all(self) -> None:
        """Clear every map, the method and the cookie file path, then reset()."""
        self.clear_options()
        self.clear_headers()
        self.clear_cookies()
        self.clear_request_params()
        self._cookie_file = ""
        self._method = None
        self.reset()

    # ── read accessors ────────────────────────────────────────────────────

    @property
    def options(self) -> dict[Option, Any]:
        return dict(self._options)

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    @property
    def cookies(self) -> dict[str, Any]:
        return dict(self._cookies)

    @property
    def request_params(self) -> dict[str, Any]:
        return dict(self._request_params)

    @property
    def cookie_file(self) -> str:
        return self._cookie_file

    @property
    def method(self) -> RequestMethod | None:
        """Method of the most recently prepared request."""
        return self._method

    # ── options ───────────────────────────────────────────────────────────

    def add_option(self, option: Mapping[Option | str, Any] | Option | str, value: Any = None) -> None:
        """
        Set *option* to *value*, or merge a mapping of options.
        Later values overwrite earlier ones.
        """
        if isinstance(option, Mapping):
            for opt, val in option.items():
                self._options[_as_option(opt)] = val
        else:
            self._options[_as_option(option)] = value

    def remove_option(self, option: Option | str) -> None:
        self._options.pop(_as_option(option), None)

    def clear_options(self) -> None:
        self._options = {}

    # ── headers ───────────────────────────────────────────────────────────

    def add_header(self, header: Mapping[str, str] | str, value: str | None = None) -> None:
        """
        Set header *header* to *value*, or merge a mapping of headers.
        An empty value is kept: it suppresses a header the transport would
        send by default (e.g. ``add_header("Pragma", "")``).
        """
        if isinstance(header, Mapping):
            for name, val in header.items():
                self._headers[name] = val
        elif value is None:
            raise TypeError(f"add_header() needs a value for header {header!r}")
        else:
            self._headers[header] = value

    def remove_header(self, header: str) -> None:
        self._headers.pop(header, None)

    def clear_headers(self) -> None:
        self._headers = {}

    # ── cookies ───────────────────────────────────────────────────────────

    def add_cookie(self, cookie: Mapping[str, Any] | str, value: Any = None) -> None:
        """Set cookie *cookie* to *value*, or merge a mapping of cookies."""
        if isinstance(cookie, Mapping):
            for name, val in cookie.items():
                self._cookies[name] = val
        else:
            self._cookies[cookie] = value

    def remove_cookie(self, cookie: str) -> None:
        self._cookies.pop(cookie, None)

    def clear_cookies(self) -> None:
        self._cookies = {}

    # ── request params ────────────────────────────────────────────────────

    def add_request_param(self, name: Mapping[str, Any] | str, value: Any = None) -> None:
        """
        Add GET query / POST body fields. Three forms:

        - ``add_request_param({"a": 1})`` merges the mapping;
        - ``add_request_param("a=1&b=2")`` parses the query string and merges it;
        - ``add_request_param("a", 1)`` sets a single field.
        """
        if isinstance(name, Mapping):
            self._request_params.update(name)
        elif isinstance(name, str) and value is None:
            self._request_params.update(parse_query(name))
        else:
            self._request_params[name] = value

    def remove_request_param(self, name: str) -> None:
        self._request_params.pop(name, None)

    def clear_request_params(self) -> None:
        self._request_params = {}

    # ── cookie file ───────────────────────────────────────────────────────

    def set_cookie_file(self, path: str) -> None:
        """
        Persist cookies in the Netscape jar at *path* across requests.
        Raises ConfigurationError if the file doesn't exist or isn't writable.
        """
        self._cookie_file = ensure_writable(path)
        log.debug("cookie_file.set", path=self._cookie_file)

    def clear_cookie_file(self) -> None:
        """Truncate the cookie file. The path stays set."""
        truncate_cookie_file(self._cookie_file)
        log.debug("cookie_file.cleared", path=self._cookie_file)

    def unset_cookie_file(self) -> None:
        """Stop using the cookie file without touching it."""
        self._cookie_file = ""

    # ── sugar ─────────────────────────────────────────────────────────────

    def set_user_agent(self, user_agent: str) -> None:
        """
        Set the User-Agent. ``ie``, ``firefox``, ``opera``, ``chrome`` and
        ``bot`` select canned strings; anything else is used literally.
        """
        self.add_option(Option.USERAGENT, resolve_user_agent(user_agent))

    def set_timeout(self, seconds: float) -> None:
        self.add_option(Option.TIMEOUT, seconds)

    def set_connect_timeout(self, seconds: float) -> None:
        self.add_option(Option.CONNECTTIMEOUT, seconds)

    def set_referer(self, referer: str) -> None:
        self.add_option(Option.REFERER, referer)

    def set_default_headers(self) -> None:
        self.add_header(dict(DEFAULT_HEADERS))

    def set_default_options(self) -> None:
        self.add_option(dict(DEFAULT_OPTIONS))

    def set_defaults(self, user_agent: str | None = None) -> None:
        """Seed the default headers and options, then the user agent if given."""
        self.set_default_headers()
        self.set_default_options()
        if user_agent:
            self.set_user_agent(user_agent)

    # ── requests ──────────────────────────────────────────────────────────

    def get(self, url: str, params: Mapping[str, Any] | str | None = None) -> bytes | bool:
        return self.request(url, "GET", params)

    def post(self, url: str, params: Mapping[str, Any] | str | None = None) -> bytes | bool:
        return self.request(url, "POST", params)

    def put(self, url: str, params: Mapping[str, Any] | str | None = None) -> bytes | bool:
        return self.request(url, "PUT", params)

    def patch(self, url: str, params: Mapping[str, Any] | str | None = None) -> bytes | bool:
        return self.request(url, "PATCH", params)

    def head(self, url: str, params: Mapping[str, Any] | str | None = None) -> bytes | bool:
        return self.request(url, "HEAD", params)

    def delete(self, url: str, params: Mapping[str, Any] | str | None = None) -> bytes | bool:
        return self.request(url, "DELETE", params)

    def request(
        self,
        url: str,
        method: str = "GET",
        params: Mapping[str, Any] | str | None = None,
    ) -> bytes | bool:
        """
        Perform a request and return the response body. When the
        RETURNTRANSFER option is set to False the transport writes the body to
        Option.FILE (stdout by default) and True is returned instead.

        Raises TransferError if the transport fails. Accumulated state is
        left as it was so the caller can retry; the previous response and
        transfer info are gone.
        """
        options = self.prepare(url, method, params)
        transport = self._transport
        if transport is None:
            transport = self._transport = self._transport_factory()
        self._response = None
        self._transfer_info = None

        log.debug(
            "transfer.start",
            method=str(self._method),
            url=scrub_string(str(options[Option.URL])),
            headers=redact_header_lines(options.get(Option.HTTPHEADER, [])),
        )
        result = transport.perform(options)

        self._response = result.body
        self._transfer_info = result.info
        log.debug(
            "transfer.complete",
            url=scrub_string(result.info.url),
            http_code=result.info.http_code,
            total_time=result.info.total_time,
            size_download=result.info.size_download,
        )

        if not options.get(Option.RETURNTRANSFER, True):
            return True
        return result.body

    def prepare(
        self,
        url: str,
        method: str = "GET",
        params: Mapping[str, Any] | str | None = None,
    ) -> dict[Option, Any]:
        """
        Record *url* and *method*, merge *params*, and return the option map
        the transport will receive. The builder's own option map only gains
        the URL; everything derived here lives in the returned copy.
        """
        self.add_option(Option.URL, url)
        self._method = RequestMethod.from_verb(method)
        if params is not None:
            self.add_request_param(params)

        options = dict(self._options)
        for marker in METHOD_MARKERS:
            options.pop(marker, None)
        kind = self._method.kind
        if kind is MethodKind.HEAD:
            options[Option.NOBODY] = True
            options[Option.HEADER] = True
        elif kind is MethodKind.GET:
            options[Option.HTTPGET] = True
        elif kind is MethodKind.POST:
            options[Option.POST] = True
        else:
            options[Option.CUSTOMREQUEST] = self._method.verb

        if self._request_params:
            if kind is MethodKind.GET:
                options[Option.URL] = append_query(str(options[Option.URL]), self._request_params)
            else:
                options[Option.POSTFIELDS] = dict(self._request_params)

        if self._headers:
            options[Option.HTTPHEADER] = [f"{name}: {value}" for name, value in self._headers.items()]

        if self._cookie_file:
            options[Option.COOKIEFILE] = self._cookie_file
            options[Option.COOKIEJAR] = self._cookie_file

        cookie = compile_cookies(self._cookies)
        if cookie is not None:
            options[Option.COOKIE] = cookie

        return options

    # ── results ───────────────────────────────────────────────────────────

    def get_response(self) -> bytes | None:
        """Body of the last completed request, or None if there is none yet."""
        return self._response

    def get_transfer_info(self, key: str | None = None) -> Any:
        """
        Metadata of the last transfer: the whole mapping, or the value of
        *key* (``http_code``, ``total_time``, ...).
        Raises NotFoundError before any request or for an unknown key.
        """
        if self._transfer_info is None:
            raise NotFoundError(
                "transfer_info_unavailable",
                "No transfer info available: no request has completed yet.",
            )
        info = self._transfer_info.as_dict()
        if key is None:
            return info
        if key not in info:
            raise NotFoundError(
                "transfer_info_unknown_key",
                f"Unknown transfer info key: {key!r}.",
                key=key,
            )
        return info[key]


__all__ = ["RequestBuilder"]
