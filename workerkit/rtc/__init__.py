"""HTTP/1.x and WebSocket serving over asyncio, WebSocket framing, and HTTP client helpers."""