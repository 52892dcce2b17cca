"""A TCP server whose connections speak HTTP/1.x and WebSocket."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from workerkit.rtc.channel import Channel, Connection
from workerkit.rtc.http1_processor import Http1Processor, HttpRequestInfo
from workerkit.rtc.server_connection import TCPServerConnection

logger = logging.getLogger(__name__)

BACKLOG = 10


class TCPServerDelegate:
    """Decides whether WebSocket upgrades are accepted; refuses by default."""

    def handle_websocket_request(
        self,
        server: TCPServer,
        connection: Connection,
        request_info: HttpRequestInfo,
    ) -> Optional[Channel]:
        """Return a channel for the upgraded connection, or None to refuse it."""
        return None


class TCPServer:
    """Accepts connections and serves each with a :class:`TCPServerConnection`."""

    def __init__(
        self,
        delegate: Optional[TCPServerDelegate] = None,
        http_processor: Optional[Http1Processor] = None,
    ) -> None:
        self.delegate = delegate
        self.http_processor = http_processor
        self._server: Optional[asyncio.AbstractServer] = None
        self._closed: Optional[asyncio.Event] = None
        self._connections: set[TCPServerConnection] = set()

    @property
    def address(self) -> tuple[str, int]:
        """The host and port the server is bound to."""
        if self._server is None or not self._server.sockets:
            raise RuntimeError("server is not listening")
        host, port = self._server.sockets[0].getsockname()[:2]
        return host, port

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def listen(self, host: str, port: int) -> None:
        """Bind to ``host``:``port``; raises OSError when that fails."""
        if self._server is not None:
            raise RuntimeError("server is already listening")
        self._server = await asyncio.start_server(
            self._accept, host, port, backlog=BACKLOG, start_serving=False
        )
        self._closed = asyncio.Event()

    async def run(self) -> None:
        """Accept connections until :meth:`close` is called."""
        if self._server is None or self._closed is None:
            raise RuntimeError("server is not listening")
        if self._closed.is_set():
            return
        await self._server.start_serving()
        await self._closed.wait()

    def close(self) -> None:
        """Stop accepting and drop every open connection."""
        if self._server is None:
            return
        if self._closed is not None:
            self._closed.set()
        self._server.close()
        for connection in list(self._connections):
            connection.close()

    def remove_connection(self, connection: TCPServerConnection) -> None:
        """Forget a connection that has ended."""
        self._connections.discard(connection)

    def handle_websocket_request(
        self, connection: Connection, request_info: HttpRequestInfo
    ) -> Optional[Channel]:
        """Ask the delegate for a channel to serve an upgraded connection."""
        if self.delegate is None:
            return None
        return self.delegate.handle_websocket_request(self, connection, request_info)

    async def _accept(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        connection = TCPServerConnection(self, reader, writer)
        self._connections.add(connection)
        try:
            await connection.run()
        finally:
            self._connections.discard(connection)