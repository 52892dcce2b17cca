"""Reference-counted message channels and the connection interface."""

from __future__ import annotations

import asyncio
import threading
from abc import ABC, abstractmethod

from workerkit.rtc.io_buffer import IOBuffer


class Channel(ABC):
    """Receives WebSocket messages; disposed when its last reference goes."""

    def __init__(self) -> None:
        self._ref_count = 0
        self._lock = threading.Lock()
        self._disposed = False

    @property
    def ref_count(self) -> int:
        return self._ref_count

    @property
    def disposed(self) -> bool:
        return self._disposed

    def add_ref(self) -> None:
        with self._lock:
            self._ref_count += 1

    def release(self) -> None:
        """Drop a reference, disposing the channel when none are left."""
        with self._lock:
            if self._ref_count <= 0:
                raise RuntimeError("channel released more times than referenced")
            self._ref_count -= 1
            last = self._ref_count == 0
        if last:
            self.dispose()

    def dispose(self) -> None:
        """Tear the channel down, deferred to the running event loop if any."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._destruct()
        else:
            loop.call_soon(self._destruct)

    def _destruct(self) -> None:
        self._disposed = True

    @abstractmethod
    def on_message(self, data: bytes) -> None:
        """Handle one complete message."""

    @abstractmethod
    def on_close(self) -> None:
        """Handle the connection closing."""


class Connection(ABC):
    """A transport that can send buffers and be closed."""

    @abstractmethod
    def send(self, buffer: IOBuffer) -> None:
        """Queue ``buffer`` for sending."""

    @abstractmethod
    def close(self) -> None:
        """Close the transport."""