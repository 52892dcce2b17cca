"""A minimal HTTP client that fetches a URL into memory."""

from __future__ import annotations

import asyncio
import http.client
import logging
import threading
import time
import urllib.request
from collections.abc import Mapping
from datetime import timedelta
from typing import Callable, Optional, Union
from urllib.error import HTTPError, URLError
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

BUFFER_SIZE = 2048
MAX_RESPONSE_SIZE = 4 * 1048576
ACCEPT_LANGUAGE = "en-us"

FetchCallback = Callable[[int, bytes], None]
Timeout = Union[float, int, timedelta, None]

_SECURE_SCHEMES = frozenset({"https", "wss"})


class _Cancelled(Exception):
    pass


class _SecureRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Follows redirects only to cryptographic schemes."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        if urlsplit(newurl).scheme.lower() not in _SECURE_SCHEMES:
            raise _Cancelled(newurl)
        return super().redirect_request(req, fp, code, msg, headers, newurl)


def _seconds(timeout: Timeout) -> float:
    if timeout is None:
        return 0.0
    value = timeout.total_seconds() if isinstance(timeout, timedelta) else float(timeout)
    if value < 0:
        raise ValueError("timeout must not be negative")
    return value


def _build_opener() -> urllib.request.OpenerDirector:
    opener = urllib.request.build_opener(
        urllib.request.ProxyHandler({}), _SecureRedirectHandler
    )
    opener.addheaders = []
    return opener


class URLFetcher:
    """Performs one GET or POST request.

    The result is an HTTP status code and the body; the code is 0 when the
    request failed, was cancelled, timed out or the body exceeded the limit.
    A fetcher serves a single request.
    """

    def __init__(self, callback: Optional[FetchCallback] = None) -> None:
        self._callback = callback
        self._started = False
        self._thread: Optional[threading.Thread] = None

    def get(self, url: str, headers: Optional[Mapping[str, str]] = None, timeout: Timeout = None) -> None:
        """Start a GET in the background; the callback receives the result."""
        self._start_async(url, "GET", headers, None, timeout)

    def post(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        post_data: Union[bytes, str, None] = None,
        timeout: Timeout = None,
    ) -> None:
        """Start a POST in the background; the callback receives the result."""
        self._start_async(url, "POST", headers, post_data, timeout)

    def sync_get(
        self, url: str, headers: Optional[Mapping[str, str]] = None, timeout: Timeout = None
    ) -> tuple[int, bytes]:
        """Perform a GET and return ``(status, body)``."""
        return self._fetch(self._prepare(url, "GET", headers, None), _seconds(timeout))

    def sync_post(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        post_data: Union[bytes, str, None] = None,
        timeout: Timeout = None,
    ) -> tuple[int, bytes]:
        """Perform a POST and return ``(status, body)``."""
        return self._fetch(self._prepare(url, "POST", headers, post_data), _seconds(timeout))

    def _prepare(
        self,
        url: str,
        method: str,
        headers: Optional[Mapping[str, str]],
        post_data: Union[bytes, str, None],
    ) -> urllib.request.Request:
        if self._started:
            raise RuntimeError("fetcher has already been started")
        self._started = True
        body = post_data.encode() if isinstance(post_data, str) else post_data
        request = urllib.request.Request(url, data=body, method=method)
        request.add_header("Accept-Language", ACCEPT_LANGUAGE)
        for name, value in (headers or {}).items():
            request.add_header(name, value)
        return request

    def _start_async(
        self,
        url: str,
        method: str,
        headers: Optional[Mapping[str, str]],
        post_data: Union[bytes, str, None],
        timeout: Timeout,
    ) -> None:
        request = self._prepare(url, method, headers, post_data)
        seconds = _seconds(timeout)
        try:
            loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        def work() -> None:
            code, body = self._fetch(request, seconds)
            if self._callback is None:
                return
            if loop is None:
                self._callback(code, body)
            else:
                loop.call_soon_threadsafe(self._callback, code, body)

        self._thread = threading.Thread(target=work, name="url-fetcher", daemon=True)
        self._thread.start()

    def _fetch(self, request: urllib.request.Request, timeout: float) -> tuple[int, bytes]:
        deadline = time.monotonic() + timeout if timeout else None
        received = bytearray()
        try:
            response = _build_opener().open(request, timeout=timeout or None)
        except HTTPError as err:
            if err.code in (401, 407):
                err.close()
                return 0, b""
            response = err
        except (_Cancelled, URLError, OSError, http.client.HTTPException, ValueError):
            return 0, b""

        with response:
            code = response.getcode()
            while True:
                if deadline is not None and time.monotonic() > deadline:
                    return 0, bytes(received)
                try:
                    chunk = response.read(BUFFER_SIZE)
                except (OSError, http.client.HTTPException):
                    return 0, bytes(received)
                if not chunk:
                    break
                received += chunk
                if len(received) > MAX_RESPONSE_SIZE:
                    return 0, bytes(received)

        if code != 200:
            logger.error("request failed, bad response: %s", code)
        return code, bytes(received)