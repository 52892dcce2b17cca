"""One accepted TCP connection speaking HTTP/1.x, optionally upgraded to WebSocket."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional, Protocol

from workerkit.rtc.channel import Channel, Connection
from workerkit.rtc.http1_processor import (
    Http1Processor,
    HttpMethod,
    HttpRequestInfo,
    HttpResponseInfo,
)
from workerkit.rtc.http_parser import HeaderParseError, parse_headers
from workerkit.rtc.io_buffer import BufferType, IOBuffer
from workerkit.rtc.websocket import (
    FrameError,
    FrameReader,
    Opcode,
    encode_frames,
    handshake_response,
)

logger = logging.getLogger(__name__)

READ_SIZE = 4 * 1024
MAX_HTTP_POST_BODY = 4 * 1024
# An unfinished request head may not grow beyond this many bytes.
MAX_PENDING_HEAD = READ_SIZE - 0x100

HANDSHAKE_TIMEOUT = 2.0
LIVE_CHECK_INTERVAL = 2.0
LIVE_TIMEOUT = 3.0
PING_INTERVAL = 5.0
PING_IDLE = 10.0

_GET = b"GET "
_POST = b"POST"
_CONTENT_LENGTH = re.compile(r"[+-]?[0-9]+")
_WEBSOCKET_VERSIONS = ("8", "13")


class ServerHooks(Protocol):
    """What a connection needs from the server that accepted it."""

    http_processor: Optional[Http1Processor]

    def handle_websocket_request(
        self, connection: Connection, request_info: HttpRequestInfo
    ) -> Optional[Channel]: ...

    def remove_connection(self, connection: TCPServerConnection) -> None: ...


class _Drop(Exception):
    """The connection has to be dropped."""


def _control_frame(opcode: Opcode) -> IOBuffer:
    return IOBuffer(bytes([0x80 | opcode, 0]), BufferType.WEBSOCKET_FRAME)


class TCPServerConnection(Connection):
    """Serves HTTP requests on a stream and can switch it to WebSocket.

    The first byte must arrive within ``handshake_timeout`` and start a GET or
    POST request. The connection is dropped when nothing is received for
    ``live_timeout`` while no request or write is outstanding.
    """

    def __init__(
        self,
        server: ServerHooks,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        self._server = server
        self._reader = reader
        self._writer = writer
        self.secure = False
        self.handshake_timeout = HANDSHAKE_TIMEOUT
        self.live_check_interval = LIVE_CHECK_INTERVAL
        self.live_timeout = LIVE_TIMEOUT
        self.ping_interval = PING_INTERVAL
        self.ping_idle = PING_IDLE

        self._input = bytearray()
        self._queue: list[IOBuffer] = []
        self._frames: Optional[FrameReader] = None
        self._channel: Optional[Channel] = None
        self._pending_request = False
        self._last_recv = 0.0

        self._task: Optional[asyncio.Task] = None
        self._flush_task: Optional[asyncio.Task] = None
        self._live_task: Optional[asyncio.Task] = None
        self._ping_task: Optional[asyncio.Task] = None
        self._closing = False
        self._finished = False

    @property
    def is_websocket(self) -> bool:
        return self._frames is not None

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def _writing(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    async def run(self) -> None:
        """Serve the connection until it ends, then detach it from the server."""
        if self._finished:
            return
        self._task = asyncio.current_task()
        try:
            await self._serve()
        except _Drop as err:
            logger.info("dropping connection: %s", err)
        except asyncio.TimeoutError:
            logger.info("handshake timeout")
        except (ConnectionError, OSError) as err:
            logger.info("connection error: %s", err)
        except asyncio.CancelledError:
            if not self._closing:
                raise
        finally:
            self._teardown()

    def send(self, buffer: IOBuffer) -> None:
        """Queue ``buffer``; plain data is framed as binary after an upgrade."""
        if self._closing:
            return
        self._queue.append(buffer)
        if not self._writing:
            self._flush_task = asyncio.get_running_loop().create_task(self._flush())

    def close(self) -> None:
        """Drop the connection."""
        if self._closing or self._finished:
            return
        self._closing = True
        task = self._task
        if task is None or task.done():
            self._teardown()
        else:
            task.cancel()

    def _touch(self) -> None:
        self._last_recv = asyncio.get_running_loop().time()

    async def _serve(self) -> None:
        loop = asyncio.get_running_loop()
        first = await asyncio.wait_for(
            self._reader.read(READ_SIZE), self.handshake_timeout
        )
        if not first or first[:1] not in (b"G", b"P"):
            raise _Drop("handshake failed")
        self._touch()
        self._live_task = loop.create_task(self._live_check())
        self._input += first

        while len(self._input) < 4:
            head = bytes(self._input)
            if not (_GET.startswith(head) or _POST.startswith(head)):
                raise _Drop("unknown protocol")
            chunk = await self._reader.read(READ_SIZE)
            if not chunk:
                raise _Drop("connection closed")
            self._touch()
            self._input += chunk
        if bytes(self._input[:4]) not in (_GET, _POST):
            raise _Drop("unknown protocol")
        self._handle_http()

        while True:
            chunk = await self._reader.read(READ_SIZE)
            if not chunk:
                return
            self._touch()
            if self._frames is not None:
                self._handle_websocket(chunk)
            else:
                self._input += chunk
                self._handle_http()

    def _handle_http(self) -> None:
        while self._input and self._frames is None:
            try:
                parsed = parse_headers(self._input, self.secure)
            except HeaderParseError as err:
                raise _Drop(f"bad request head: {err}") from None
            if parsed is None:
                if len(self._input) > MAX_PENDING_HEAD:
                    raise _Drop("request head too large")
                return
            request, size = parsed

            if request.has_header_value("connection", "upgrade") and request.has_header_value(
                "upgrade", "websocket"
            ):
                self._upgrade(request, size)
                return

            if request.method is HttpMethod.POST:
                text = request.get_header_value("content-length")
                length = 0
                if text:
                    if not _CONTENT_LENGTH.fullmatch(text):
                        raise _Drop(f"invalid content-length: {text}")
                    length = int(text)
                if length < 0 or length > MAX_HTTP_POST_BODY:
                    raise _Drop(f"invalid content-length: {length}")
                if len(self._input) < size + length:
                    return
                request.body = bytes(self._input[size:size + length])
                size += length

            processor = self._server.http_processor
            if processor is None:
                raise _Drop("no http processor")
            del self._input[:size]
            self._pending_request = True
            try:
                accepted = processor.process(request, self._handle_http_response)
            except ValueError as err:
                raise _Drop(str(err)) from None
            if not accepted:
                raise _Drop(f"request for {request.path!r} not handled")

    def _handle_http_response(self, response_info: HttpResponseInfo) -> None:
        if self._closing:
            return
        self._pending_request = False
        self.send(response_info.serialize())

    def _upgrade(self, request: HttpRequestInfo, size: int) -> None:
        version = request.get_header_value("sec-websocket-version")
        if version not in _WEBSOCKET_VERSIONS:
            raise _Drop(f"unsupported websocket version: {version}")
        key = request.get_header_value("sec-websocket-key")
        if not key:
            raise _Drop("invalid websocket key")
        if self._queue or self._writing:
            raise _Drop("output pending during upgrade")
        channel = self._server.handle_websocket_request(self, request)
        if channel is None:
            raise _Drop("websocket request refused")

        channel.add_ref()
        self._channel = channel
        leftover = bytes(self._input[size:])
        self._input.clear()
        self._frames = FrameReader()
        self.send(handshake_response(key))
        self._ping_task = asyncio.get_running_loop().create_task(self._ping_loop())
        if leftover:
            self._handle_websocket(leftover)

    def _handle_websocket(self, data: bytes) -> None:
        assert self._frames is not None
        try:
            frames = self._frames.feed(data)
        except FrameError as err:
            raise _Drop(f"invalid websocket frame: {err}") from None
        got_ping = False
        for frame in frames:
            if frame.opcode is Opcode.CLOSE:
                raise _Drop("websocket closed by peer")
            if frame.opcode is Opcode.PING:
                got_ping = True
            elif frame.opcode is Opcode.PONG:
                continue
            elif self._channel is not None:
                self._channel.on_message(frame.payload)
        if got_ping:
            self.send(_control_frame(Opcode.PONG))

    async def _flush(self) -> None:
        try:
            while self._queue:
                batch, self._queue = self._queue, []
                if self._frames is not None:
                    payload = encode_frames(batch)
                else:
                    payload = b"".join(buffer.data for buffer in batch)
                self._writer.write(payload)
                await self._writer.drain()
        except (ConnectionError, OSError):
            self.close()

    async def _live_check(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(self.live_check_interval)
            if self._pending_request or self._writing:
                continue
            if loop.time() - self._last_recv > self.live_timeout:
                self.close()
                return

    async def _ping_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(self.ping_interval)
            if self._writing:
                continue
            if loop.time() - self._last_recv < self.ping_idle:
                continue
            self.send(_control_frame(Opcode.PING))

    def _teardown(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._closing = True
        current = asyncio.current_task()
        for task in (self._live_task, self._ping_task, self._flush_task):
            if task is not None and task is not current:
                task.cancel()
        self._queue.clear()
        if self._channel is not None:
            channel, self._channel = self._channel, None
            channel.release()
        self._writer.close()
        self._server.remove_connection(self)