"""
httpwrap.tier1_runtime.cookies
────────────────────────────────
Cookie helpers: compile a cookie map into a Cookie header value, validate
and truncate cookie-jar files, and load/save Netscape-format jars for the
transport.

The jar format is owned by http.cookiejar.MozillaCookieJar; the builder
only checks that the file is writable and hands the path to the transport.
"""
from __future__ import annotations

import os
from http.cookiejar import MozillaCookieJar
from pathlib import Path
from typing import Any, Mapping

from httpwrap.tier0_core.errors import ConfigurationError


def compile_cookies(cookies: Mapping[str, Any]) -> str | None:
    """
    Compile *cookies* into ``"name=value; name2=value2; "``.
    Insertion order is kept and the trailing separator is included.
    Returns None for an empty map.
    """
    if not cookies:
        return None
    return "".join(f"{name}={value}; " for name, value in cookies.items())


def ensure_writable(path: str | os.PathLike[str]) -> str:
    """
    Return *path* as a string if it names an existing writable file.
    Raises ConfigurationError otherwise.
    """
    filename = os.fspath(path)
    if not filename or not os.path.isfile(filename) or not os.access(filename, os.W_OK):
        raise ConfigurationError(
            "cookie_file_not_writable",
            f"Cookie file {filename!r} is not writable or doesn't exist.",
            path=filename,
        )
    return filename


def truncate_cookie_file(path: str) -> None:
    """Empty the jar at *path*; ConfigurationError if unset or unwritable."""
    if not path:
        raise ConfigurationError(
            "cookie_file_not_set",
            "No cookie file is set.",
        )
    filename = ensure_writable(path)
    with open(filename, "w", encoding="utf-8"):
        pass


def load_jar(path: str) -> MozillaCookieJar:
    """
    Load the Netscape jar at *path*. A missing or empty file yields an
    empty jar, matching how a fresh jar file behaves on first use.
    """
    jar = MozillaCookieJar(path)
    file = Path(path)
    if file.is_file() and file.stat().st_size > 0:
        jar.load(ignore_discard=True, ignore_expires=True)
    return jar


def save_jar(jar: MozillaCookieJar, path: str) -> None:
    """Write *jar* to *path*, keeping session cookies."""
    jar.save(path, ignore_discard=True, ignore_expires=True)


__all__ = [
    "compile_cookies",
    "ensure_writable",
    "truncate_cookie_file",
    "load_jar",
    "save_jar",
]
