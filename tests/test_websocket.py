import os

import pytest

from workerkit.rtc.io_buffer import BufferType, IOBuffer, new_websocket_frame, websocket_header
from workerkit.rtc.websocket import (
    FrameError,
    FrameReader,
    Opcode,
    WebSocketFrame,
    encode_frames,
    handshake_response,
    websocket_accept,
)

MASK = b"\x37\xfa\x21\x3d"


def client_frame(opcode, payload, fin=True, mask=MASK):
    first = (0x80 if fin else 0) | opcode
    size = len(payload)
    if size < 126:
        head = bytes([first, 0x80 | size])
    elif size < 1 << 16:
        head = bytes([first, 0x80 | 126]) + size.to_bytes(2, "big")
    else:
        head = bytes([first, 0x80 | 127]) + size.to_bytes(8, "big")
    masked = bytes(b ^ mask[i % 4] for i, b in enumerate(payload))
    return head + mask + masked


def test_single_text_frame():
    reader = FrameReader()
    assert reader.feed(client_frame(0x1, b"hello")) == [WebSocketFrame(Opcode.TEXT, b"hello")]
    assert reader.buffered == 0


def test_byte_by_byte_feed():
    reader = FrameReader()
    data = client_frame(0x2, b"chunked payload")
    frames = []
    for byte in data:
        frames.extend(reader.feed(bytes([byte])))
    assert frames == [WebSocketFrame(Opcode.BINARY, b"chunked payload")]


def test_two_frames_in_one_feed():
    reader = FrameReader()
    frames = reader.feed(client_frame(0x1, b"one") + client_frame(0x2, b"two"))
    assert [f.payload for f in frames] == [b"one", b"two"]
    assert [f.opcode for f in frames] == [Opcode.TEXT, Opcode.BINARY]


def test_fragments_reassembled():
    reader = FrameReader()
    assert reader.feed(client_frame(0x1, b"hel", fin=False)) == []
    frames = reader.feed(client_frame(0x0, b"lo"))
    assert frames == [WebSocketFrame(Opcode.TEXT, b"hello")]


def test_ping_and_pong_reported():
    reader = FrameReader()
    frames = reader.feed(client_frame(0x9, b"") + client_frame(0xA, b"x"))
    assert [f.opcode for f in frames] == [Opcode.PING, Opcode.PONG]


@pytest.mark.parametrize("size", [300, 70000])
def test_extended_lengths(size):
    payload = os.urandom(size)
    reader = FrameReader()
    assert reader.feed(client_frame(0x2, payload)) == [WebSocketFrame(Opcode.BINARY, payload)]


def test_unmasked_frame_rejected():
    reader = FrameReader()
    with pytest.raises(FrameError):
        reader.feed(b"\x81\x02hi")
    assert reader.closed


def test_unknown_opcode_rejected():
    reader = FrameReader()
    with pytest.raises(FrameError):
        reader.feed(client_frame(0x3, b"x"))


def test_oversized_payload_rejected():
    head = bytes([0x82, 0x80 | 127]) + (2**31).to_bytes(8, "big") + MASK
    with pytest.raises(FrameError):
        FrameReader().feed(head)


def test_close_stops_reader():
    reader = FrameReader()
    frames = reader.feed(client_frame(0x8, b"") + client_frame(0x1, b"after"))
    assert [f.opcode for f in frames] == [Opcode.CLOSE]
    assert reader.closed
    with pytest.raises(FrameError):
        reader.feed(client_frame(0x1, b"more"))


def test_encode_plain_data_as_binary():
    assert encode_frames([IOBuffer(b"abc")]) == b"\x82\x03abc"


def test_encode_passes_frames_through():
    frame = new_websocket_frame("hi", text=True)
    data = IOBuffer(b"x" * 200)
    encoded = encode_frames([frame, data])
    assert encoded == frame.data + websocket_header(Opcode.BINARY, 200) + b"x" * 200


def test_websocket_accept_known_value():
    assert websocket_accept("dGhlIHNhbXBsZSBub25jZQ==") == "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="


def test_handshake_response():
    key = "dGhlIHNhbXBsZSBub25jZQ=="
    response = handshake_response(key)
    assert response.type is BufferType.WEBSOCKET_FRAME
    assert response.data.startswith(b"HTTP/1.1 101 ")
    assert f"Sec-WebSocket-Accept: {websocket_accept(key)}\r\n".encode() in response.data
    assert response.data.endswith(b"\r\n\r\n")