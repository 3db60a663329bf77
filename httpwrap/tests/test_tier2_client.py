"""Tests for tier2_client modules (RequestBuilder)."""
from __future__ import annotations

import os

import httpx
import pytest

from httpwrap.tier0_core.errors import ConfigurationError, NotFoundError, TransferError
from httpwrap.tier0_core.http import MethodKind
from httpwrap.tier0_core.options import DEFAULT_HEADERS, BrowserAgent, Option
from httpwrap.tier1_runtime.transport import HttpxTransport, MockTransport
from httpwrap.tier2_client.builder import RequestBuilder


# ── mutators ───────────────────────────────────────────────────────────────

class TestMutators:
    def test_starts_empty(self, builder):
        assert builder.options == {}
        assert builder.headers == {}
        assert builder.cookies == {}
        assert builder.request_params == {}
        assert builder.cookie_file == ""

    def test_last_writer_wins_across_forms(self, builder):
        builder.add_header("X-A", "1")
        builder.add_header({"X-A": "2", "X-B": "b"})
        builder.add_header("X-B", "3")
        assert builder.headers == {"X-A": "2", "X-B": "3"}

        builder.add_option(Option.TIMEOUT, 10)
        builder.add_option({Option.TIMEOUT: 20})
        builder.add_option("timeout", 25)
        assert builder.options == {Option.TIMEOUT: 25}

        builder.add_cookie({"user": "admin"})
        builder.add_cookie("user", "root")
        assert builder.cookies == {"user": "root"}

        builder.add_request_param("a", "1")
        builder.add_request_param({"a": "2"})
        builder.add_request_param("a=3")
        assert builder.request_params == {"a": "3"}

    def test_repeated_identical_calls_are_idempotent(self, builder):
        for _ in range(3):
            builder.add_header("X-A", "1")
            builder.add_cookie("c", "v")
        assert builder.headers == {"X-A": "1"}
        assert builder.cookies == {"c": "v"}

    def test_query_string_form_matches_mapping_form(self, builder, mock_transport):
        other = RequestBuilder(transport_factory=lambda: mock_transport)
        builder.add_request_param("a=1&b=2")
        other.add_request_param({"a": "1", "b": "2"})
        assert builder.request_params == other.request_params == {"a": "1", "b": "2"}

    def test_empty_header_value_is_kept(self, builder):
        builder.add_header("Pragma", "")
        assert builder.headers == {"Pragma": ""}

    def test_header_without_value_is_rejected(self, builder):
        with pytest.raises(TypeError):
            builder.add_header("X-A")

    def test_remove_missing_keys_is_noop(self, builder):
        builder.remove_option(Option.TIMEOUT)
        builder.remove_header("X-Nope")
        builder.remove_cookie("nope")
        builder.remove_request_param("nope")

    def test_remove_and_clear(self, builder):
        builder.add_header({"A": "1", "B": "2"})
        builder.remove_header("A")
        assert builder.headers == {"B": "2"}
        builder.clear_headers()
        assert builder.headers == {}

        builder.add_option({Option.TIMEOUT: 1, Option.REFERER: "r"})
        builder.remove_option("referer")
        assert builder.options == {Option.TIMEOUT: 1}
        builder.clear_options()
        assert builder.options == {}

        builder.add_cookie({"a": 1, "b": 2})
        builder.remove_cookie("a")
        builder.clear_cookies()
        assert builder.cookies == {}

        builder.add_request_param({"a": 1, "b": 2})
        builder.remove_request_param("a")
        assert builder.request_params == {"b": 2}
        builder.clear_request_params()
        assert builder.request_params == {}

    def test_accessors_return_copies(self, builder):
        builder.add_header("A", "1")
        builder.headers["B"] = "2"
        assert builder.headers == {"A": "1"}


# ── sugar ──────────────────────────────────────────────────────────────────

class TestSugar:
    def test_user_agent_registry(self, builder):
        builder.set_user_agent("firefox")
        assert builder.options[Option.USERAGENT] == BrowserAgent.FIREFOX.value

    def test_user_agent_literal(self, builder):
        builder.set_user_agent("MyBot/1.0")
        assert builder.options[Option.USERAGENT] == "MyBot/1.0"

    def test_typed_setters(self, builder):
        builder.set_timeout(12)
        builder.set_connect_timeout(3)
        builder.set_referer("http://example.com/")
        assert builder.options == {
            Option.TIMEOUT: 12,
            Option.CONNECTTIMEOUT: 3,
            Option.REFERER: "http://example.com/",
        }

    def test_set_defaults(self, builder):
        builder.set_defaults("chrome")
        assert builder.headers == dict(DEFAULT_HEADERS)
        assert builder.options[Option.RETURNTRANSFER] is True
        assert builder.options[Option.ENCODING] == "gzip,deflate"
        assert builder.options[Option.AUTOREFERER] is True
        assert builder.options[Option.CONNECTTIMEOUT] == 15
        assert builder.options[Option.TIMEOUT] == 30
        assert builder.options[Option.USERAGENT] == BrowserAgent.CHROME.value

    def test_set_defaults_without_user_agent(self, builder):
        builder.set_defaults()
        assert Option.USERAGENT not in builder.options

    def test_constructor_defaults_use_configured_agent(self, monkeypatch, mock_transport):
        monkeypatch.setenv("HTTPWRAP_DEFAULT_USER_AGENT", "opera")
        with RequestBuilder(True, transport_factory=lambda: mock_transport) as b:
            assert b.options[Option.USERAGENT] == BrowserAgent.OPERA.value
            assert b.headers["Pragma"] == ""


# ── reconciliation ─────────────────────────────────────────────────────────

class TestPrepare:
    def test_get_params_go_to_query(self, builder):
        options = builder.prepare("http://example.com/search", "GET", {"q": "x y"})
        assert options[Option.URL] == "http://example.com/search?q=x%20y"
        assert Option.POSTFIELDS not in options
        assert options[Option.HTTPGET] is True

    def test_get_params_append_to_existing_query(self, builder):
        options = builder.prepare("http://example.com/s?existing=1#top", "GET", {"q": "x y"})
        assert options[Option.URL] == "http://example.com/s?existing=1&q=x%20y#top"

    def test_existing_duplicate_key_is_not_deduplicated(self, builder):
        options = builder.prepare("http://example.com/s?q=old", "GET", {"q": "new"})
        assert options[Option.URL] == "http://example.com/s?q=old&q=new"

    def test_post_params_go_to_body(self, builder):
        options = builder.prepare("http://example.com/form", "POST", {"q": "x"})
        assert options[Option.URL] == "http://example.com/form"
        assert options[Option.POSTFIELDS] == {"q": "x"}
        assert options[Option.POST] is True

    def test_custom_verb(self, builder):
        options = builder.prepare("http://example.com/items/1", "delete")
        assert options[Option.CUSTOMREQUEST] == "DELETE"
        assert builder.method.kind is MethodKind.CUSTOM

    def test_head_then_post_leaves_no_head_marker(self, builder):
        head = builder.prepare("http://example.com/", "HEAD")
        assert head[Option.NOBODY] is True
        post = builder.prepare("http://example.com/", "POST")
        assert Option.NOBODY not in post
        assert Option.HEADER not in post
        assert Option.HTTPGET not in post
        assert post[Option.POST] is True

    def test_user_header_option_survives_non_head_requests(self, builder):
        builder.add_option(Option.HEADER, True)
        assert builder.prepare("http://example.com/", "GET")[Option.HEADER] is True
        assert builder.prepare("http://example.com/", "POST")[Option.HEADER] is True
        assert builder.options[Option.HEADER] is True

    def test_user_set_markers_are_replaced(self, builder):
        builder.add_option(Option.CUSTOMREQUEST, "PATCH")
        options = builder.prepare("http://example.com/", "GET")
        assert Option.CUSTOMREQUEST not in options
        assert options[Option.HTTPGET] is True

    def test_headers_compiled_to_lines(self, builder):
        builder.add_header({"Accept": "*/*", "Pragma": ""})
        options = builder.prepare("http://example.com/")
        assert options[Option.HTTPHEADER] == ["Accept: */*", "Pragma: "]

    def test_cookies_compiled_in_insertion_order(self, builder):
        builder.add_cookie({"user": "admin", "id": 1})
        options = builder.prepare("http://example.com/")
        assert options[Option.COOKIE] == "user=admin; id=1; "

    def test_cookie_file_sets_read_and_write_options(self, builder, cookie_file):
        builder.set_cookie_file(cookie_file)
        options = builder.prepare("http://example.com/")
        assert options[Option.COOKIEFILE] == cookie_file
        assert options[Option.COOKIEJAR] == cookie_file

    def test_empty_maps_add_nothing(self, builder):
        options = builder.prepare("http://example.com/")
        assert set(options) == {Option.URL, Option.HTTPGET}

    def test_only_url_persists_in_option_map(self, builder):
        builder.add_header("A", "1")
        builder.prepare("http://example.com/", "POST", {"q": "x"})
        assert builder.options == {Option.URL: "http://example.com/"}

    def test_params_persist_across_requests(self, builder):
        builder.prepare("http://example.com/", "POST", {"q": "x"})
        options = builder.prepare("http://example.com/list", "GET")
        assert options[Option.URL] == "http://example.com/list?q=x"

    def test_raw_query_string_params(self, builder):
        options = builder.prepare("http://example.com/", "GET", "a=1&b=2")
        assert options[Option.URL] == "http://example.com/?a=1&b=2"


# ── requests ───────────────────────────────────────────────────────────────

class TestRequest:
    def test_request_returns_body_and_stores_record(self, builder, mock_transport):
        mock_transport.queue("<html>hi</html>", status=200)
        body = builder.get("http://example.com/", {"q": "x y"})
        assert body == b"<html>hi</html>"
        assert builder.get_response() == b"<html>hi</html>"
        assert mock_transport.last_options[Option.URL] == "http://example.com/?q=x%20y"

    @pytest.mark.parametrize("call,verb_option,value", [
        ("get", Option.HTTPGET, True),
        ("post", Option.POST, True),
        ("head", Option.NOBODY, True),
        ("put", Option.CUSTOMREQUEST, "PUT"),
        ("patch", Option.CUSTOMREQUEST, "PATCH"),
        ("delete", Option.CUSTOMREQUEST, "DELETE"),
    ])
    def test_convenience_wrappers(self, builder, mock_transport, call, verb_option, value):
        getattr(builder, call)("http://example.com/")
        assert mock_transport.last_options[verb_option] == value

    def test_response_absent_before_request(self, builder):
        assert builder.get_response() is None

    def test_transfer_info_before_request(self, builder):
        with pytest.raises(NotFoundError):
            builder.get_transfer_info()
        with pytest.raises(NotFoundError):
            builder.get_transfer_info("http_code")

    def test_transfer_info_after_request(self, builder, mock_transport):
        mock_transport.queue("ok", status=201)
        builder.get("http://example.com/")
        info = builder.get_transfer_info()
        assert info
        assert info["url"] == "http://example.com/"
        assert builder.get_transfer_info("http_code") == 201

    def test_transfer_info_unknown_key(self, builder):
        builder.get("http://example.com/")
        with pytest.raises(NotFoundError) as exc_info:
            builder.get_transfer_info("no_such_key")
        assert exc_info.value.metadata["key"] == "no_such_key"

    def test_failed_request_keeps_state(self, builder, mock_transport):
        builder.add_header("A", "1")
        mock_transport.fail_next(7, "Failed to connect")
        with pytest.raises(TransferError) as exc_info:
            builder.post("http://example.com/", {"q": "x"})
        assert exc_info.value.errno == 7
        assert builder.headers == {"A": "1"}
        assert builder.request_params == {"q": "x"}
        assert builder.get_response() is None

    def test_failed_request_discards_previous_result(self, builder, mock_transport):
        mock_transport.queue("first")
        builder.get("http://example.com/one")
        mock_transport.fail_next(28, "Operation timed out")
        with pytest.raises(TransferError):
            builder.get("http://example.com/two")
        assert builder.get_response() is None
        with pytest.raises(NotFoundError):
            builder.get_transfer_info()

    def test_returntransfer_false_returns_true(self, builder, mock_transport):
        builder.add_option(Option.RETURNTRANSFER, False)
        mock_transport.queue("body")
        assert builder.get("http://example.com/") is True
        assert builder.get_response() == b"body"


# ── cookie file ────────────────────────────────────────────────────────────

class TestCookieFile:
    def test_set_rejects_missing_file(self, builder, tmp_path):
        with pytest.raises(ConfigurationError):
            builder.set_cookie_file(str(tmp_path / "nope.txt"))
        assert builder.cookie_file == ""

    def test_clear_truncates_but_keeps_path(self, builder, cookie_file):
        with open(cookie_file, "w") as fh:
            fh.write("# Netscape HTTP Cookie File\n")
        builder.set_cookie_file(cookie_file)
        builder.clear_cookie_file()
        assert os.path.getsize(cookie_file) == 0
        assert builder.cookie_file == cookie_file

    def test_clear_without_path(self, builder):
        with pytest.raises(ConfigurationError):
            builder.clear_cookie_file()

    def test_unset_leaves_file_alone(self, builder, cookie_file):
        with open(cookie_file, "w") as fh:
            fh.write("keep")
        builder.set_cookie_file(cookie_file)
        builder.unset_cookie_file()
        assert builder.cookie_file == ""
        with open(cookie_file) as fh:
            assert fh.read() == "keep"


# ── lifecycle ──────────────────────────────────────────────────────────────

class TestLifecycle:
    def _populate(self, builder, cookie_file):
        builder.add_option(Option.TIMEOUT, 5)
        builder.add_header("A", "1")
        builder.add_cookie("c", "v")
        builder.add_request_param("p", "1")
        builder.set_cookie_file(cookie_file)
        builder.get("http://example.com/")

    def test_reset_keeps_state_and_clears_info(self, cookie_file):
        transports: list[MockTransport] = []

        def factory() -> MockTransport:
            transports.append(MockTransport())
            return transports[-1]

        builder = RequestBuilder(transport_factory=factory)
        self._populate(builder, cookie_file)
        builder.reset()

        assert len(transports) == 2
        assert transports[0].closed is True
        assert builder.options[Option.TIMEOUT] == 5
        assert builder.headers == {"A": "1"}
        assert builder.cookies == {"c": "v"}
        assert builder.request_params == {"p": "1"}
        assert builder.cookie_file == cookie_file
        with pytest.raises(NotFoundError):
            builder.get_transfer_info()
        builder.close()

    def test_reset_all_clears_everything(self, builder, cookie_file):
        self._populate(builder, cookie_file)
        builder.reset_all()
        assert builder.options == {}
        assert builder.headers == {}
        assert builder.cookies == {}
        assert builder.request_params == {}
        assert builder.cookie_file == ""
        assert builder.method is None

    def test_context_manager_closes_transport(self, mock_transport):
        with RequestBuilder(transport_factory=lambda: mock_transport) as b:
            b.get("http://example.com/")
        assert mock_transport.closed is True

    def test_request_after_close_reacquires(self, mock_transport):
        b = RequestBuilder(transport_factory=lambda: mock_transport)
        b.close()
        b.close()
        b.get("http://example.com/")
        assert len(mock_transport.calls) == 1
        b.close()

    def test_default_factory_uses_configured_backend(self):
        with RequestBuilder() as b:
            b.get("http://example.com/")
            assert b.get_transfer_info("http_code") == 200


# ── end to end over httpx ──────────────────────────────────────────────────

class TestOverHttpx:
    def test_full_round_trip(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"found", headers={"Content-Type": "text/plain"})

        def factory() -> HttpxTransport:
            return HttpxTransport(transport=httpx.MockTransport(handler))

        with RequestBuilder(True, transport_factory=factory) as b:
            b.set_user_agent("MyBot/1.0")
            b.add_cookie({"user": "admin", "id": 1})
            body = b.get("http://example.com/search?existing=1", {"q": "x y"})

            assert body == b"found"
            assert b.get_transfer_info("http_code") == 200
            assert b.get_transfer_info("content_type") == "text/plain"

        request = seen[0]
        assert str(request.url) == "http://example.com/search?existing=1&q=x%20y"
        assert request.headers["User-Agent"] == "MyBot/1.0"
        assert request.headers["Cookie"] == "user=admin; id=1;"
        assert request.headers["Cache-Control"] == "max-age=0"
        assert "Pragma" not in request.headers

    def test_header_option_on_get_over_httpx(self):
        def factory() -> HttpxTransport:
            return HttpxTransport(transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"body")))

        with RequestBuilder(transport_factory=factory) as b:
            b.add_option(Option.HEADER, True)
            body = b.get("http://example.com/")

        assert body.startswith(b"HTTP/1.1 200")
        assert body.endswith(b"body")

    def test_non_ascii_cookie_raises_transfer_error(self):
        def factory() -> HttpxTransport:
            return HttpxTransport(transport=httpx.MockTransport(lambda request: httpx.Response(200)))

        with RequestBuilder(transport_factory=factory) as b:
            b.add_cookie("name", "José")
            with pytest.raises(TransferError) as exc_info:
                b.get("http://example.com/")
            assert b.cookies == {"name": "José"}
        assert exc_info.value.errno == 43

    def test_non_utf8_bytes_param_in_query(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        with RequestBuilder(transport_factory=lambda: HttpxTransport(transport=httpx.MockTransport(handler))) as b:
            b.add_request_param("k", b"\xff\xfe")
            b.get("http://example.com/s")

        assert seen[0].url.query == b"k=%FF%FE"

    def test_post_body_over_httpx(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        with RequestBuilder(transport_factory=lambda: HttpxTransport(transport=httpx.MockTransport(handler))) as b:
            b.post("http://example.com/form", {"q": "x"})

        assert seen[0].method == "POST"
        assert str(seen[0].url) == "http://example.com/form"
        assert seen[0].content == b"q=x"
