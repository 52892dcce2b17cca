"""Asyncio HTTP/WebSocket server, HTTP client helpers and file-generation utilities."""

__version__ = "0.1.0"