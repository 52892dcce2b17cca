"""State-machine parser for HTTP/1.x request heads."""

from __future__ import annotations

from enum import IntEnum
from typing import Optional, Union

from workerkit.rtc.http1_processor import HttpMethod, HttpRequestInfo


class HeaderParseError(ValueError):
    """The request head has invalid syntax."""


class _Input(IntEnum):
    LWS = 0
    CR = 1
    LF = 2
    COLON = 3
    DEFAULT = 4


class _State(IntEnum):
    METHOD = 0
    URL = 1
    PROTO = 2
    HEADER = 3
    NAME = 4
    SEPARATOR = 5
    VALUE = 6
    DONE = 7
    ERR = 8


_S = _State
# Next state, indexed by current state then input kind (LWS, CR, LF, COLON, DEFAULT).
_TRANSITIONS: tuple[tuple[_State, ...], ...] = (
    (_S.URL, _S.ERR, _S.ERR, _S.ERR, _S.METHOD),
    (_S.PROTO, _S.ERR, _S.ERR, _S.URL, _S.URL),
    (_S.ERR, _S.HEADER, _S.NAME, _S.ERR, _S.PROTO),
    (_S.ERR, _S.ERR, _S.NAME, _S.ERR, _S.ERR),
    (_S.SEPARATOR, _S.DONE, _S.ERR, _S.VALUE, _S.NAME),
    (_S.SEPARATOR, _S.ERR, _S.ERR, _S.VALUE, _S.ERR),
    (_S.VALUE, _S.HEADER, _S.NAME, _S.VALUE, _S.VALUE),
    (_S.DONE, _S.DONE, _S.DONE, _S.DONE, _S.DONE),
    (_S.ERR, _S.ERR, _S.ERR, _S.ERR, _S.ERR),
)

_ACCUMULATING = frozenset({_S.METHOD, _S.URL, _S.PROTO, _S.VALUE, _S.NAME})
_PROTOCOLS = (b"HTTP/1.1", b"HTTP/1.0")

_INPUTS = {
    ord(" "): _Input.LWS,
    ord("\t"): _Input.LWS,
    ord("\r"): _Input.CR,
    ord("\n"): _Input.LF,
    ord(":"): _Input.COLON,
}


def _text(buffer: bytearray) -> str:
    return buffer.decode("latin-1")


def parse_headers(
    data: Union[bytes, bytearray, memoryview], secure: bool = False
) -> Optional[tuple[HttpRequestInfo, int]]:
    """Parse a request head at the start of ``data``.

    Returns the request and the number of bytes the head took, or None when
    more data is needed. Raises :class:`HeaderParseError` on invalid syntax.
    When the URL carries a query, its first character is dropped from the path.
    """
    request = HttpRequestInfo(secure=secure)
    state = _State.METHOD
    buffer = bytearray()
    header_name = ""

    for consumed, byte in enumerate(bytes(data), start=1):
        kind = _INPUTS.get(byte, _Input.DEFAULT)
        next_state = _TRANSITIONS[state][kind]

        if next_state != state:
            if state is _State.METHOD:
                request.method = HttpMethod.POST if buffer[:1] == b"P" else HttpMethod.GET
            elif state is _State.URL:
                url = _text(buffer)
                mark = url.find("?")
                if mark >= 0:
                    request.path = url[1:mark] if mark else url[1:]
                    request.query = url[mark + 1:]
                else:
                    request.path = url
            elif state is _State.PROTO:
                if bytes(buffer) not in _PROTOCOLS:
                    next_state = _State.ERR
            elif state is _State.NAME:
                header_name = _text(buffer.lower())
            elif state is _State.VALUE:
                value = _text(buffer).lstrip(" \t\r\n\f\v")
                existing = request.headers.get(header_name)
                request.headers[header_name] = value if existing is None else f"{existing},{value}"
            if state is not _State.SEPARATOR:
                buffer.clear()
            state = next_state
        elif state in _ACCUMULATING:
            buffer.append(byte)
        elif state is _State.DONE:
            if kind is _Input.LF:
                return request, consumed
            raise HeaderParseError("expected LF after the final CR")
        elif state is _State.ERR:
            raise HeaderParseError("malformed request head")

    return None