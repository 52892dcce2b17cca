"""WebSocket framing for the server side: reading client frames, writing server frames."""

from __future__ import annotations

import base64
import hashlib
from collections.abc import Iterable
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union

from workerkit.rtc.io_buffer import BufferType, IOBuffer, websocket_header

WEBSOCKET_GUID = "258EAFA5-E914-47DA-95CA-C5AB0DC85B11"

# Payload lengths above this are refused.
MAX_PAYLOAD = 2**31 - 1


class Opcode(IntEnum):
    CONTINUATION = 0x0
    TEXT = 0x1
    BINARY = 0x2
    CLOSE = 0x8
    PING = 0x9
    PONG = 0xA


_DATA_OPCODES = frozenset({Opcode.CONTINUATION, Opcode.TEXT, Opcode.BINARY})


class FrameError(ValueError):
    """A client frame is malformed or not allowed."""


@dataclass(frozen=True)
class WebSocketFrame:
    """A complete message or control frame received from a client."""

    opcode: Opcode
    payload: bytes
    fin: bool = True


def _unmask(raw: bytes, mask: bytes) -> bytes:
    size = len(raw)
    if not size:
        return b""
    key = (mask * (size // 4 + 1))[:size]
    value = int.from_bytes(raw, "big") ^ int.from_bytes(key, "big")
    return value.to_bytes(size, "big")


class FrameReader:
    """Incrementally decodes masked client frames and reassembles fragments.

    After a close frame or an error the reader accepts no more data.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._pending = bytearray()
        self._pending_opcode: Optional[Opcode] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def buffered(self) -> int:
        """Bytes received but not yet part of a complete frame."""
        return len(self._buffer)

    def _fail(self, reason: str) -> FrameError:
        self._closed = True
        return FrameError(reason)

    def _next_raw(self) -> Optional[tuple[bool, int, bytes]]:
        buf = self._buffer
        if len(buf) < 2:
            return None
        first, second = buf[0], buf[1]
        if not second & 0x80:
            raise self._fail("client frame is not masked")
        if len(buf) < 6:
            return None
        length = second & 0x7F
        offset = 2
        if length == 126:
            if len(buf) < 8:
                return None
            length = int.from_bytes(buf[2:4], "big")
            offset = 4
        elif length == 127:
            if len(buf) < 14:
                return None
            length = int.from_bytes(buf[2:10], "big")
            if length > MAX_PAYLOAD:
                raise self._fail("frame payload too large")
            offset = 10
        end = offset + 4 + length
        if len(buf) < end:
            return None
        mask = bytes(buf[offset:offset + 4])
        payload = _unmask(bytes(buf[offset + 4:end]), mask)
        del buf[:end]
        return bool(first & 0x80), first & 0x0F, payload

    def feed(self, data: Union[bytes, bytearray, memoryview]) -> list[WebSocketFrame]:
        """Add received bytes; return the messages and control frames now complete."""
        if self._closed:
            raise FrameError("reader is closed")
        self._buffer += data
        frames: list[WebSocketFrame] = []
        while (raw := self._next_raw()) is not None:
            fin, code, payload = raw
            if code == Opcode.CLOSE:
                self._closed = True
                frames.append(WebSocketFrame(Opcode.CLOSE, payload))
                break
            try:
                opcode = Opcode(code)
            except ValueError:
                raise self._fail(f"unknown opcode {code:#x}") from None
            if opcode not in _DATA_OPCODES:
                frames.append(WebSocketFrame(opcode, payload))
            elif fin:
                message_opcode = self._pending_opcode if self._pending_opcode is not None else opcode
                message = bytes(self._pending) + payload
                self._pending.clear()
                self._pending_opcode = None
                frames.append(WebSocketFrame(message_opcode, message))
            else:
                if self._pending_opcode is None:
                    self._pending_opcode = opcode
                self._pending += payload
        return frames


def encode_frames(buffers: Iterable[IOBuffer]) -> bytes:
    """Concatenate buffers for the wire, framing plain data as binary messages.

    Buffers already holding WebSocket frames are passed through unchanged.
    """
    parts: list[bytes] = []
    for buffer in buffers:
        if buffer.type is not BufferType.WEBSOCKET_FRAME:
            parts.append(websocket_header(Opcode.BINARY, len(buffer)))
        parts.append(buffer.data)
    return b"".join(parts)


def websocket_accept(key: str) -> str:
    """Return the Sec-WebSocket-Accept value for a client key."""
    digest = hashlib.sha1((key + WEBSOCKET_GUID).encode("latin-1")).digest()
    return base64.b64encode(digest).decode("ascii")


def handshake_response(key: str) -> IOBuffer:
    """Return the 101 response that completes the upgrade handshake."""
    text = (
        "HTTP/1.1 101 WebSocket Protocol Handshake\r\n"
        "Upgrade: WebSocket\r\n"
        "Connection: Upgrade\r\n"
        f"Sec-WebSocket-Accept: {websocket_accept(key)}\r\n"
        "\r\n"
    )
    return IOBuffer(text.encode("latin-1"), BufferType.WEBSOCKET_FRAME)