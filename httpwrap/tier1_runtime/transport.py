"""
httpwrap.tier1_runtime.transport
──────────────────────────────────
Transports perform the actual HTTP exchange for a reconciled option map
and report the response body plus a TransferInfo snapshot.

Backends:  httpx (default) | mock (tests, dry runs)
Select via: HTTPWRAP_TRANSPORT_BACKEND=httpx|mock

Failures are raised as TransferError carrying a libcurl-style error number
and the underlying message, built here at the failure site.
"""
from __future__ import annotations

import sys
import time
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from enum import IntEnum
from http.cookiejar import CookieJar, LoadError, MozillaCookieJar
from typing import Any, Mapping, Protocol, runtime_checkable

import httpx

from httpwrap.tier0_core.errors import ConfigurationError, TransferError
from httpwrap.tier0_core.http import HTTP
from httpwrap.tier0_core.logging import get_logger
from httpwrap.tier0_core.options import Option
from httpwrap.tier1_runtime.cookies import load_jar, save_jar
from httpwrap.tier1_runtime.info import TransferInfo
from httpwrap.tier1_runtime.query import encode_params

log = get_logger(__name__)


# ── Error numbers ─────────────────────────────────────────────────────────────

class TransferErrorCode(IntEnum):
    """Native error numbers, libcurl numbering."""
    UNSUPPORTED_PROTOCOL = 1
    URL_MALFORMAT = 3
    COULDNT_RESOLVE_PROXY = 5
    COULDNT_RESOLVE_HOST = 6
    COULDNT_CONNECT = 7
    WEIRD_SERVER_REPLY = 8
    HTTP_RETURNED_ERROR = 22
    WRITE_ERROR = 23
    OPERATION_TIMEDOUT = 28
    SSL_CONNECT_ERROR = 35
    BAD_FUNCTION_ARGUMENT = 43
    TOO_MANY_REDIRECTS = 47
    SEND_ERROR = 55
    RECV_ERROR = 56
    BAD_CONTENT_ENCODING = 61


_RESOLVE_HINTS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "temporary failure in name resolution",
    "no address associated",
)


def _error_code(exc: Exception) -> TransferErrorCode:
    if isinstance(exc, httpx.InvalidURL):
        return TransferErrorCode.URL_MALFORMAT
    if isinstance(exc, httpx.UnsupportedProtocol):
        return TransferErrorCode.UNSUPPORTED_PROTOCOL
    if isinstance(exc, httpx.ProxyError):
        return TransferErrorCode.COULDNT_RESOLVE_PROXY
    if isinstance(exc, httpx.TimeoutException):
        return TransferErrorCode.OPERATION_TIMEDOUT
    if isinstance(exc, httpx.ConnectError):
        message = str(exc).lower()
        if any(hint in message for hint in _RESOLVE_HINTS):
            return TransferErrorCode.COULDNT_RESOLVE_HOST
        if "ssl" in message or "certificate" in message:
            return TransferErrorCode.SSL_CONNECT_ERROR
        return TransferErrorCode.COULDNT_CONNECT
    if isinstance(exc, httpx.TooManyRedirects):
        return TransferErrorCode.TOO_MANY_REDIRECTS
    if isinstance(exc, httpx.DecodingError):
        return TransferErrorCode.BAD_CONTENT_ENCODING
    if isinstance(exc, httpx.RemoteProtocolError):
        return TransferErrorCode.WEIRD_SERVER_REPLY
    if isinstance(exc, httpx.WriteError):
        return TransferErrorCode.SEND_ERROR
    if isinstance(exc, httpx.TransportError) and not isinstance(exc, httpx.LocalProtocolError):
        return TransferErrorCode.RECV_ERROR
    return TransferErrorCode.BAD_FUNCTION_ARGUMENT


def transfer_error(exc: Exception) -> TransferError:
    """Wrap an httpx failure into a TransferError with its native error number."""
    code = _error_code(exc)
    return TransferError(int(code), str(exc) or exc.__class__.__name__, reason=code.name)


# ── Domain model ─────────────────────────────────────────────────────────────

@dataclass
class TransferResult:
    """Raw response body plus the metadata snapshot of one transfer."""
    body: bytes
    info: TransferInfo


@runtime_checkable
class Transport(Protocol):
    def perform(self, options: Mapping[Option, Any]) -> TransferResult: ...
    def close(self) -> None: ...


# ── httpx transport ─────────────────────────────────────────────────────────

class _TraceClock:
    """
    httpx ``trace`` extension callback recording when each connection
    phase happened, in seconds since *origin*.
    """

    def __init__(self, origin: float) -> None:
        self._origin = origin
        self.marks: dict[str, float] = {}

    def __call__(self, event_name: str, info: dict[str, Any]) -> None:
        # "connection.connect_tcp.started", "http11.send_request_headers.started", ...
        _, _, phase = event_name.partition(".")
        self.marks.setdefault(phase, time.perf_counter() - self._origin)

    def get(self, *phases: str) -> float:
        for phase in phases:
            if phase in self.marks:
                return self.marks[phase]
        return 0.0


@dataclass
class _Hop:
    request: httpx.Request
    response: httpx.Response
    clock: _TraceClock
    started: float


@dataclass
class _PreparedRequest:
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    removed: list[str] = field(default_factory=list)
    cookie: str | None = None
    content: bytes | None = None


def _method_of(options: Mapping[Option, Any]) -> str:
    custom = options.get(Option.CUSTOMREQUEST)
    if custom:
        return str(custom).upper()
    if options.get(Option.NOBODY):
        return "HEAD"
    if options.get(Option.POST) or (Option.POSTFIELDS in options and not options.get(Option.HTTPGET)):
        return "POST"
    return "GET"


def _seconds(value: Any) -> float | None:
    if value is None:
        return None
    seconds = float(value)
    return seconds if seconds > 0 else None


def _header_block(response: httpx.Response) -> bytes:
    lines = [f"{response.http_version} {response.status_code} {response.reason_phrase}".encode("latin-1")]
    lines.extend(name + b": " + value for name, value in response.headers.raw)
    return b"\r\n".join(lines) + b"\r\n\r\n"


def _request_size(request: httpx.Request) -> int:
    size = len(f"{request.method} ".encode("ascii")) + len(request.url.raw_path) + len(b" HTTP/1.1\r\n")
    size += sum(len(name) + len(value) + 4 for name, value in request.headers.raw)
    return size + 2


def _body_size(request: httpx.Request) -> int:
    try:
        return len(request.content)
    except httpx.RequestNotRead:
        return len(request.read())


def _filetime(response: httpx.Response) -> int:
    last_modified = response.headers.get("Last-Modified")
    if not last_modified:
        return -1
    try:
        return int(parsedate_to_datetime(last_modified).timestamp())
    except (TypeError, ValueError):
        return -1


class HttpxTransport:
    """
    Transport backed by ``httpx.Client``. Owns one client (and its
    connection pool); a new client is built only when the TLS verification
    or proxy option changes between transfers.

    Usage::

        transport = HttpxTransport()
        result = transport.perform({Option.URL: "https://example.com/", Option.HTTPGET: True})
        transport.close()
    """

    def __init__(
        self,
        *,
        verify: bool | None = None,
        proxy: str | None = None,
        max_redirects: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        from httpwrap.tier0_core.config import get_config

        config = get_config()
        self._verify = config.verify_ssl if verify is None else verify
        self._proxy = config.proxy if proxy is None else proxy
        self._max_redirects = config.max_redirects if max_redirects is None else max_redirects
        self._mounted = transport
        self._client: httpx.Client | None = None
        self._client_key: tuple[bool, str | None] | None = None

    # ── client lifecycle ──────────────────────────────────────────────────

    def _get_client(self, verify: bool, proxy: str | None) -> httpx.Client:
        key = (verify, proxy)
        if self._client is not None and self._client_key == key:
            return self._client
        if self._client is not None:
            self._client.close()
        kwargs: dict[str, Any] = {"verify": verify}
        if self._mounted is not None:
            kwargs["transport"] = self._mounted
        elif proxy:
            kwargs["proxy"] = proxy
        self._client = httpx.Client(**kwargs)
        self._client_key = key
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            self._client_key = None

    # ── transfer ──────────────────────────────────────────────────────────

    def perform(self, options: Mapping[Option, Any]) -> TransferResult:
        url = options.get(Option.URL)
        if not url:
            raise TransferError(int(TransferErrorCode.URL_MALFORMAT), "No URL set!")

        verify = bool(options.get(Option.SSL_VERIFYPEER, self._verify))
        proxy = options.get(Option.PROXY, self._proxy) or None
        client = self._get_client(verify, proxy)

        jar = self._prepare_jar(client, options)
        prepared = self._prepare(str(url), options)
        origin = time.perf_counter()
        try:
            hops = self._exchange(client, prepared, options, origin)
        except TransferError:
            raise
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise transfer_error(exc) from exc
        except ValueError as exc:
            # header values httpx cannot encode, e.g. non-ASCII cookies
            raise transfer_error(exc) from exc
        total_time = time.perf_counter() - origin

        jar_path = options.get(Option.COOKIEJAR)
        if jar_path and isinstance(jar, MozillaCookieJar):
            try:
                save_jar(jar, str(jar_path))
            except OSError as exc:
                raise TransferError(int(TransferErrorCode.WRITE_ERROR), str(exc)) from exc

        final = hops[-1].response
        if options.get(Option.FAILONERROR) and final.status_code >= HTTP.BAD_REQUEST:
            raise TransferError(
                int(TransferErrorCode.HTTP_RETURNED_ERROR),
                f"The requested URL returned error: {final.status_code}",
            )

        body = final.content
        if options.get(Option.HEADER):
            body = b"".join(_header_block(hop.response) for hop in hops) + body

        if not options.get(Option.RETURNTRANSFER, True):
            self._write_output(body, options.get(Option.FILE))

        info = self._snapshot(hops, options, total_time)
        return TransferResult(body=body, info=info)

    def _prepare_jar(self, client: httpx.Client, options: Mapping[Option, Any]) -> CookieJar:
        cookie_file = options.get(Option.COOKIEFILE)
        jar: CookieJar
        if cookie_file:
            try:
                jar = load_jar(str(cookie_file))
            except (LoadError, OSError):
                log.debug("cookie_jar.unreadable", path=str(cookie_file))
                jar = MozillaCookieJar(str(cookie_file))
        elif options.get(Option.COOKIEJAR):
            jar = MozillaCookieJar()
        else:
            jar = CookieJar()
        client.cookies = jar
        return jar

    def _prepare(self, url: str, options: Mapping[Option, Any]) -> _PreparedRequest:
        prepared = _PreparedRequest(method=_method_of(options), url=url)

        user_agent = options.get(Option.USERAGENT)
        if user_agent:
            prepared.headers["User-Agent"] = str(user_agent)
        referer = options.get(Option.REFERER)
        if referer:
            prepared.headers["Referer"] = str(referer)
        encoding = options.get(Option.ENCODING)
        if encoding:
            prepared.headers["Accept-Encoding"] = str(encoding)

        for line in options.get(Option.HTTPHEADER) or []:
            name, sep, value = str(line).partition(":")
            name, value = name.strip(), value.strip()
            if not sep or not name:
                continue
            if value:
                prepared.headers[name] = value
                if name in prepared.removed:
                    prepared.removed.remove(name)
            else:
                prepared.headers.pop(name, None)
                prepared.removed.append(name)

        cookie = options.get(Option.COOKIE)
        if cookie:
            prepared.cookie = str(cookie).strip()

        payload = options.get(Option.POSTFIELDS)
        if payload is not None:
            if isinstance(payload, Mapping):
                prepared.content = encode_params(payload).encode("ascii")
            else:
                prepared.content = payload if isinstance(payload, bytes) else str(payload).encode("utf-8")
            has_type = any(name.lower() == "content-type" for name in prepared.headers)
            if not has_type:
                prepared.headers["Content-Type"] = "application/x-www-form-urlencoded"
        return prepared

    def _exchange(
        self,
        client: httpx.Client,
        prepared: _PreparedRequest,
        options: Mapping[Option, Any],
        origin: float,
    ) -> list[_Hop]:
        timeout = httpx.Timeout(
            _seconds(options.get(Option.TIMEOUT)),
            connect=_seconds(options.get(Option.CONNECTTIMEOUT)),
        )
        request = client.build_request(
            prepared.method,
            prepared.url,
            headers=prepared.headers,
            content=prepared.content,
            timeout=timeout,
        )
        self._finish_headers(request, prepared)

        auth = self._auth(options)
        origin_host = request.url.host
        follow = bool(options.get(Option.FOLLOWLOCATION))
        max_redirects = int(options.get(Option.MAXREDIRS, self._max_redirects))

        hops: list[_Hop] = []
        while True:
            clock = _TraceClock(origin)
            request.extensions["trace"] = clock
            started = time.perf_counter() - origin
            response = client.send(
                request,
                auth=auth if request.url.host == origin_host else None,
                follow_redirects=False,
            )
            try:
                response.read()
            finally:
                response.close()
            hops.append(_Hop(request, response, clock, started))

            next_request = response.next_request
            if not follow or next_request is None:
                return hops
            if max_redirects >= 0 and len(hops) > max_redirects:
                raise TransferError(
                    int(TransferErrorCode.TOO_MANY_REDIRECTS),
                    f"Maximum ({max_redirects}) redirects followed",
                )
            if options.get(Option.AUTOREFERER):
                next_request.headers["Referer"] = str(request.url)
            self._finish_headers(next_request, prepared)
            request = next_request

    @staticmethod
    def _finish_headers(request: httpx.Request, prepared: _PreparedRequest) -> None:
        for name in prepared.removed:
            if name in request.headers:
                del request.headers[name]
        if prepared.cookie:
            from_jar = request.headers.get("Cookie")
            request.headers["Cookie"] = (
                f"{prepared.cookie} {from_jar}" if from_jar else prepared.cookie
            )

    @staticmethod
    def _auth(options: Mapping[Option, Any]) -> httpx.BasicAuth | None:
        userpwd = options.get(Option.USERPWD)
        if not userpwd:
            return None
        username, _, password = str(userpwd).partition(":")
        return httpx.BasicAuth(username, password)

    @staticmethod
    def _write_output(body: bytes, stream: Any) -> None:
        target = stream if stream is not None else sys.stdout
        target = getattr(target, "buffer", target)
        try:
            target.write(body)
            target.flush()
        except (OSError, ValueError) as exc:
            raise TransferError(int(TransferErrorCode.WRITE_ERROR), str(exc)) from exc

    @staticmethod
    def _snapshot(
        hops: list[_Hop],
        options: Mapping[Option, Any],
        total_time: float,
    ) -> TransferInfo:
        final = hops[-1]
        request, response, clock = final.request, final.response, final.clock

        size_download = float(response.num_bytes_downloaded)
        size_upload = float(_body_size(request))
        content_length = response.headers.get("Content-Length")
        upload_length = request.headers.get("Content-Length")

        return TransferInfo(
            url=str(request.url),
            content_type=response.headers.get("Content-Type"),
            http_code=response.status_code,
            header_size=sum(len(_header_block(hop.response)) for hop in hops),
            request_size=sum(_request_size(hop.request) for hop in hops),
            filetime=_filetime(response) if options.get(Option.FILETIME) else -1,
            ssl_verify_result=0,
            redirect_count=len(hops) - 1,
            total_time=total_time,
            namelookup_time=clock.get("connect_tcp.started"),
            connect_time=clock.get("connect_tcp.complete"),
            pretransfer_time=clock.get("start_tls.complete", "connect_tcp.complete", "send_request_headers.started"),
            starttransfer_time=clock.get("receive_response_headers.complete"),
            redirect_time=final.started if len(hops) > 1 else 0.0,
            size_upload=size_upload,
            size_download=size_download,
            speed_download=size_download / total_time if total_time > 0 else 0.0,
            speed_upload=size_upload / total_time if total_time > 0 else 0.0,
            download_content_length=float(content_length) if content_length and content_length.isdigit() else -1.0,
            upload_content_length=float(upload_length) if upload_length and upload_length.isdigit() else -1.0,
        )


# ── Mock transport (tests) ────────────────────────────────────────────────────

@dataclass
class MockResponse:
    body: bytes = b""
    status: int = 200
    content_type: str | None = "text/html; charset=utf-8"


class MockTransport:
    """
    In-memory transport for tests. Records every option map it receives
    and replies with queued MockResponses (an empty 200 when the queue is
    empty). Queue a TransferError with fail_next() to simulate failures.
    """

    def __init__(self, responses: list[MockResponse] | None = None) -> None:
        self.calls: list[dict[Option, Any]] = []
        self.closed = False
        self._responses: list[MockResponse | TransferError] = list(responses or [])

    def queue(self, body: bytes | str = b"", status: int = 200, content_type: str | None = "text/html; charset=utf-8") -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._responses.append(MockResponse(body, status, content_type))

    def fail_next(self, errno: int, message: str) -> None:
        self._responses.append(TransferError(errno, message))

    @property
    def last_options(self) -> dict[Option, Any]:
        if not self.calls:
            raise AssertionError("MockTransport has not performed any transfer")
        return self.calls[-1]

    def perform(self, options: Mapping[Option, Any]) -> TransferResult:
        self.calls.append(dict(options))
        reply = self._responses.pop(0) if self._responses else MockResponse()
        if isinstance(reply, TransferError):
            raise reply
        return TransferResult(
            body=reply.body,
            info=TransferInfo(
                url=str(options.get(Option.URL, "")),
                content_type=reply.content_type,
                http_code=reply.status,
                size_download=float(len(reply.body)),
                download_content_length=float(len(reply.body)),
            ),
        )

    def close(self) -> None:
        self.closed = True


# ── Factory ─────────────────────────────────────────────────────────────────

def create_transport(backend: str | None = None) -> Transport:
    """Build a new transport for the configured (or given) backend."""
    from httpwrap.tier0_core.config import get_config

    name = (backend or get_config().transport_backend).lower()
    if name == "httpx":
        return HttpxTransport()
    if name == "mock":
        return MockTransport()
    raise ConfigurationError(
        "unknown_transport_backend",
        f"Unknown HTTPWRAP_TRANSPORT_BACKEND: {name!r}. Supported: httpx, mock",
    )


__all__ = [
    "TransferErrorCode",
    "TransferResult",
    "Transport",
    "HttpxTransport",
    "MockResponse",
    "MockTransport",
    "create_transport",
    "transfer_error",
]
