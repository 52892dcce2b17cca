"""HTTP/1.x request and response objects and path-based request dispatch."""

from __future__ import annotations

import asyncio
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from enum import IntEnum
from http import HTTPStatus
from typing import Callable, Optional, Union

from workerkit.rtc.io_buffer import IOBuffer

CONTENT_LENGTH = "Content-Length"
CONTENT_TYPE = "Content-Type"

_ASCII_UPPER = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_ASCII_LOWER_TABLE = str.maketrans(_ASCII_UPPER, _ASCII_UPPER.lower())


def _ascii_lower(text: str) -> str:
    return text.translate(_ASCII_LOWER_TABLE)


def reason_phrase(status_code: int) -> str:
    """Return the standard reason phrase for ``status_code``, or an empty string."""
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


class HttpMethod(IntEnum):
    GET = 0
    POST = 1


@dataclass
class HttpRequestInfo:
    """A parsed request; header names are stored in lower case."""

    secure: bool = False
    method: HttpMethod = HttpMethod.GET
    path: str = ""
    query: Optional[str] = None
    body: Optional[bytes] = None
    headers: dict[str, str] = field(default_factory=dict)

    def get_header_value(self, header_name: str) -> str:
        """Return the value of ``header_name``, or an empty string if absent."""
        return self.headers.get(header_name, "")

    def has_header_value(self, header_name: str, header_value: str) -> bool:
        """Whether the comma-separated header holds ``header_value`` (case-insensitive)."""
        complete = _ascii_lower(self.get_header_value(header_name))
        return any(
            piece.strip(" \t") == header_value
            for piece in complete.split(",")
            if piece
        )


BodyLike = Union[IOBuffer, bytes, bytearray, str, None]


@dataclass
class HttpResponseInfo:
    """A response to be serialised onto the wire."""

    status_code: int = HTTPStatus.FORBIDDEN
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: Optional[IOBuffer] = None

    def add_header(self, name: str, value: str) -> None:
        self.headers.append((name, value))

    def set_content_headers(self, body: BodyLike, content_type: str) -> None:
        """Attach ``body`` and add Content-Length and Content-Type headers."""
        if body is None or isinstance(body, IOBuffer):
            self.body = body
        else:
            self.body = IOBuffer(body)
        self.add_header(CONTENT_LENGTH, str(len(self.body) if self.body else 0))
        self.add_header(CONTENT_TYPE, content_type)

    def serialize(self) -> IOBuffer:
        """Return the status line, headers, blank line and body as one buffer."""
        code = int(self.status_code)
        lines = [f"HTTP/1.1 {code} {reason_phrase(code)}\r\n"]
        lines.extend(f"{name}: {value}\r\n" for name, value in self.headers)
        lines.append("\r\n")
        head = "".join(lines).encode("latin-1")
        body = self.body.data if self.body else b""
        return IOBuffer(head + body)


OnComplete = Callable[[HttpResponseInfo], None]
HandlerCallback = Callable[[HttpRequestInfo, HttpResponseInfo], None]
AsyncHandlerCallback = Callable[[HttpRequestInfo, OnComplete], None]


@dataclass
class _Handler:
    secure: bool
    dispatch: Callable[[HttpRequestInfo, OnComplete], bool]


def _sync_dispatch(callback: HandlerCallback) -> Callable[[HttpRequestInfo, OnComplete], bool]:
    def dispatch(request: HttpRequestInfo, on_complete: OnComplete) -> bool:
        response = HttpResponseInfo()
        callback(request, response)
        on_complete(response)
        return True

    return dispatch


def _executor_dispatch(
    callback: HandlerCallback, executor: Executor
) -> Callable[[HttpRequestInfo, OnComplete], bool]:
    def dispatch(request: HttpRequestInfo, on_complete: OnComplete) -> bool:
        response = HttpResponseInfo()
        try:
            loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        try:
            future = executor.submit(callback, request, response)
        except RuntimeError:
            return False

        def reply(done: Future) -> None:
            if done.cancelled():
                return
            if loop is None:
                on_complete(response)
            else:
                loop.call_soon_threadsafe(on_complete, response)

        future.add_done_callback(reply)
        return True

    return dispatch


def _async_dispatch(callback: AsyncHandlerCallback) -> Callable[[HttpRequestInfo, OnComplete], bool]:
    def dispatch(request: HttpRequestInfo, on_complete: OnComplete) -> bool:
        callback(request, on_complete)
        return True

    return dispatch


class Http1Processor:
    """Routes requests to handlers registered by exact path."""

    def __init__(self) -> None:
        self._handlers: dict[str, _Handler] = {}

    def set_handler(
        self,
        path: str,
        secure: bool,
        callback: HandlerCallback,
        executor: Optional[Executor] = None,
    ) -> None:
        """Register a handler that fills in a response.

        With ``executor`` the handler runs there and the completion is
        delivered back on the event loop that dispatched the request, if any.
        """
        dispatch = (
            _executor_dispatch(callback, executor)
            if executor is not None
            else _sync_dispatch(callback)
        )
        self._handlers[str(path)] = _Handler(secure, dispatch)

    def set_async_handler(self, path: str, secure: bool, callback: AsyncHandlerCallback) -> None:
        """Register a handler that calls the completion itself, possibly later."""
        self._handlers[str(path)] = _Handler(secure, _async_dispatch(callback))

    def process(self, request_info: HttpRequestInfo, on_complete: OnComplete) -> bool:
        """Dispatch a request; return False when no handler accepts it."""
        if not request_info.path:
            raise ValueError("request path must not be empty")
        handler = self._handlers.get(request_info.path)
        if handler is None:
            return False
        if handler.secure and not request_info.secure:
            return False
        return handler.dispatch(request_info, on_complete)