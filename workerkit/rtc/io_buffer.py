"""Byte buffers queued for output, and WebSocket frame construction."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

_FIN = 0x80
_TEXT = 0x1
_BINARY = 0x2


class BufferType(IntEnum):
    DATA = 0
    APP = 1
    WEBSOCKET_FRAME = 2


@dataclass
class IOBuffer:
    """A block of bytes tagged with how it should be sent."""

    data: bytes
    type: BufferType = BufferType.DATA

    def __post_init__(self) -> None:
        if isinstance(self.data, str):
            self.data = self.data.encode()
        else:
            self.data = bytes(self.data)
        self.type = BufferType(self.type)

    def __len__(self) -> int:
        return len(self.data)


def websocket_header(opcode: int, length: int) -> bytes:
    """Return an unmasked, final-fragment WebSocket header for ``length`` bytes."""
    if length < 0:
        raise ValueError("length must not be negative")
    first = bytes([_FIN | (opcode & 0x0F)])
    if length < 126:
        return first + bytes([length])
    if length < (1 << 16):
        return first + bytes([126]) + length.to_bytes(2, "big")
    if length < (1 << 63):
        return first + bytes([127]) + length.to_bytes(8, "big")
    raise ValueError("payload too large for a WebSocket frame")


def new_websocket_frame(data: bytes | str, text: bool = True) -> IOBuffer:
    """Wrap ``data`` in a single text or binary WebSocket frame."""
    payload = data.encode() if isinstance(data, str) else bytes(data)
    header = websocket_header(_TEXT if text else _BINARY, len(payload))
    return IOBuffer(header + payload, BufferType.WEBSOCKET_FRAME)