# workerkit

A small toolkit for worker processes, using only the standard library.

- `workerkit.rtc` is an asyncio TCP server that answers HTTP/1.x `GET` and
  `POST` requests through handlers registered by path, and that can upgrade a
  connection to WebSocket. It also has a simple HTTP client (`URLFetcher`,
  and `get`, `post`, `sync_get`, `sync_post` in `workerkit.rtc.url_request`)
  and a request body builder for url-encoded and multipart data (`URLPayload`).
- `workerkit.gen` has helpers for generating files. It writes bytes as a C
  array (`gen_binary`, `format_binary`), builds a text file line by line
  (`GenerateFile`), hands out random unique ids (`ContainerIdGenerator`) and
  builds JSON command messages (`MessageBuild`, `build_message`).

## Installation

```
pip install .
```

## Serving HTTP

```python
import asyncio
from workerkit.rtc.http1_processor import Http1Processor
from workerkit.rtc.tcp_server import TCPServer, TCPServerDelegate


def hello(request, response):
    response.status_code = 200
    response.set_content_headers(b"hello", "text/plain")


async def main():
    processor = Http1Processor()
    processor.set_handler("/hello", False, hello)
    server = TCPServer(TCPServerDelegate(), processor)
    await server.listen("127.0.0.1", 8080)
    await server.run()  # until server.close()

asyncio.run(main())
```

How requests are handled:

- Handlers are matched on the exact path. A request without a query string has
  its path as received (`/hello`). For a request that carries a query, the
  first character of the path is dropped (`GET /hello?x=1` has path `hello`),
  and the query is kept in `request.query`.
- A response starts out as `403 Forbidden` with no headers.
  `set_content_headers` adds `Content-Length` and `Content-Type`.
- `set_handler(path, secure, callback, executor)` calls
  `callback(request, response)`. When an `concurrent.futures.Executor` is
  given, the callback runs there and the reply goes back to the event loop.
  `set_async_handler(path, secure, callback)` calls
  `callback(request, on_complete)`, and the handler calls `on_complete(response)`
  when it is ready.
- A handler registered as secure does not answer requests that are not
  secure. The server marks every connection as not secure.
- The connection is dropped in these cases: the request is not `GET` or
  `POST`, no handler takes it, the request head is malformed or larger than
  about 3.8 KiB, or a `POST` body is larger than 4096 bytes. It is also
  dropped when the first byte does not arrive within 2 seconds, or when
  nothing is received for 3 seconds while no request or write is outstanding.

## WebSocket

Subclass `TCPServerDelegate` and return a `Channel` from
`handle_websocket_request` to accept an upgrade. Return `None` to refuse it.
Versions 8 and 13 are accepted.

```python
from workerkit.rtc.channel import Channel
from workerkit.rtc.io_buffer import new_websocket_frame
from workerkit.rtc.tcp_server import TCPServerDelegate


class Echo(Channel):
    def __init__(self, connection):
        super().__init__()
        self.connection = connection

    def on_message(self, data):
        self.connection.send(new_websocket_frame(data, text=False))

    def on_close(self):
        pass


class Delegate(TCPServerDelegate):
    def handle_websocket_request(self, server, connection, request_info):
        return Echo(connection)
```

Complete messages, with fragments joined, go to `on_message`. Pings are
answered with a pong. A close frame or an invalid frame drops the connection.

After the upgrade, `connection.send` sends a plain `IOBuffer` as one binary
frame. Buffers built with `new_websocket_frame` are sent as they are. When the
peer has been quiet for 10 seconds, the server sends a ping.

The server holds a reference to the channel (`add_ref`). It releases it when
the connection ends. The channel is then disposed, but `on_close` is not
called by the server.

The framing helpers in `workerkit.rtc.websocket` can be used on their own:
`FrameReader`, `encode_frames`, `websocket_accept` and `handshake_response`.
So can the request-head parser `workerkit.rtc.http_parser.parse_headers`.

## HTTP client

```python
from workerkit.rtc import url_request

status, body = url_request.sync_get("https://example.com/", timeout=5)
url_request.post("https://example.com/api", {"Accept": "text/plain"}, b"data",
                 callback=lambda status, body: print(status, body))
```

Both the synchronous and the callback form give a status code and the body.
The status is `0` in these cases:

- the request failed or timed out
- the server asked for authentication
- a redirect led to a scheme that is not `https`/`wss`
- the body grew beyond 4 MiB

Proxies are not used. When a fetch starts from a running event loop, the
callback runs on that loop. A `URLFetcher` serves one request only.

`URLPayload` builds request bodies:

- `add_url_encoded(key, value)` joins pairs with `&`, using
  `encode_form_value`.
- `add_form_data`, `add_form_data_with_file_name` and `add_form_data_end`
  build a multipart body.
- `form_data_value` gives the matching `Content-Type`.
- `read_file(path)` returns a file's bytes.

## Generating files

```python
from workerkit.gen.binary import gen_binary
from workerkit.gen.generate_file import GenerateFile

gen_binary("out/blob.h", "Blob", b"\x01\x02\x03")  # const unsigned char Blob[3] = {...}

f = GenerateFile("out/notes.txt")
f.add_line("first line")
f.add_line()
f.build()  # creates out/ if needed
```

`ContainerIdGenerator` hands out ids that it has not issued before:

- `generate_unique_id()`: 12 characters
- `generate_unique_did()`: 48 characters. These are checked against the same
  set as container ids.
- `generate_unique_uid()`: a 32-bit integer
- `random_unique_name(names)`: 10 characters, not among `names`

## Messages

```python
from workerkit.gen.message_build import MessageBuild, MessageType, build_message

build_message(MessageType.ECHO, "hi")                          # '{"message":"hi","type":0}'
MessageBuild(MessageType.RUN).set("id", "abc").set("pid", 42).build()
```

The output is compact JSON with sorted keys.

## What it does not do

- There is no command-line program. Everything is a library.
- The server speaks plain TCP only: no TLS. It handles `GET` and `POST` only,
  and it does not serve files.

## Running the tests

```
pip install .[test]
pytest
```