"""Request payload builders and one-shot GET/POST helpers."""

from __future__ import annotations

import secrets
import string
from collections.abc import Mapping
from pathlib import Path
from typing import Optional, Union

from workerkit.rtc.url_fetcher import FetchCallback, Timeout, URLFetcher

UPLOAD_DATA_MIME_TYPE = "multipart/form-data; boundary="

_BOUNDARY_PREFIX = "----MultipartBoundary--"
_BOUNDARY_SUFFIX = "----"
_BOUNDARY_SIZE = 69
_BOUNDARY_CHARS = string.ascii_letters + string.digits

_KEPT = frozenset((string.ascii_letters + string.digits + "-_.~").encode("ascii"))
_SPACE = ord(" ")

Data = Union[str, bytes, bytearray]

_in_flight: set[URLFetcher] = set()


def _as_bytes(data: Data) -> bytes:
    return data.encode() if isinstance(data, str) else bytes(data)


def generate_boundary() -> str:
    """Return a random multipart boundary."""
    count = _BOUNDARY_SIZE - len(_BOUNDARY_PREFIX) - len(_BOUNDARY_SUFFIX)
    middle = "".join(secrets.choice(_BOUNDARY_CHARS) for _ in range(count))
    return f"{_BOUNDARY_PREFIX}{middle}{_BOUNDARY_SUFFIX}"


def encode_form_value(data: Data) -> str:
    """Encode for application/x-www-form-urlencoded.

    Letters, digits and ``-_.~`` are kept, a space becomes ``+`` and every
    other byte becomes ``%`` followed by its lower-case hex value, without
    zero padding.
    """
    parts = []
    for byte in _as_bytes(data):
        if byte in _KEPT:
            parts.append(chr(byte))
        elif byte == _SPACE:
            parts.append("+")
        else:
            parts.append(f"%{byte:x}")
    return "".join(parts)


class URLPayload:
    """Builds a url-encoded or multipart/form-data request body."""

    def __init__(self) -> None:
        self.boundary = generate_boundary()
        self._payload = bytearray()
        self._start = True

    @property
    def payload(self) -> bytes:
        """The body built so far."""
        return bytes(self._payload)

    @property
    def form_data_value(self) -> str:
        """The Content-Type value for a multipart body using this boundary."""
        return UPLOAD_DATA_MIME_TYPE + self.boundary

    def add_url_encoded(self, key: Data, value: Data) -> None:
        """Append ``key=value``, separated from earlier pairs by ``&``."""
        if self._start:
            self._start = False
        else:
            self._payload += b"&"
        self._payload += encode_form_value(key).encode("ascii")
        self._payload += b"="
        self._payload += encode_form_value(value).encode("ascii")

    def _add_part(self, disposition: str, value: Data, content_type: str) -> None:
        head = f"--{self.boundary}\r\nContent-Disposition: form-data; {disposition}\r\n"
        if content_type:
            head += f"Content-Type: {content_type}\r\n"
        self._payload += head.encode()
        self._payload += b"\r\n"
        self._payload += _as_bytes(value)
        self._payload += b"\r\n"

    def add_form_data(self, name: str, value: Data, content_type: str = "") -> None:
        """Append a multipart field."""
        self._add_part(f'name="{name}"', value, content_type)

    def add_form_data_with_file_name(
        self, name: str, file_name: str, value: Data, content_type: str = ""
    ) -> None:
        """Append a multipart field carrying a file name."""
        self._add_part(f'name="{name}"; filename="{file_name}"', value, content_type)

    def add_form_data_end(self) -> None:
        """Append the closing multipart delimiter."""
        self._payload += f"--{self.boundary}--\r\n".encode()

    def read_file(self, path: Union[str, Path]) -> bytes:
        """Return the contents of ``path`` for uploading."""
        target = Path(path)
        if not target.exists():
            raise FileNotFoundError("Upload directory is missing the file")
        try:
            return target.read_bytes()
        except OSError as err:
            raise OSError("Failed to read file contents") from err

    def clear(self) -> None:
        """Drop the body built so far."""
        self._payload.clear()

    def reset(self) -> None:
        """Drop the body and start a fresh url-encoded sequence."""
        self._start = True
        self._payload.clear()


def _tracked(callback: Optional[FetchCallback]) -> tuple[URLFetcher, FetchCallback]:
    holder: list[URLFetcher] = []

    def done(code: int, body: bytes) -> None:
        for fetcher in holder:
            _in_flight.discard(fetcher)
        if callback is not None:
            callback(code, body)

    fetcher = URLFetcher(done)
    holder.append(fetcher)
    _in_flight.add(fetcher)
    return fetcher, done


def get(
    url: str,
    headers: Optional[Mapping[str, str]] = None,
    callback: Optional[FetchCallback] = None,
    timeout: Timeout = None,
) -> None:
    """Start a GET; ``callback`` receives ``(status, body)`` on the caller's loop."""
    fetcher, _ = _tracked(callback)
    try:
        fetcher.get(url, headers, timeout)
    except BaseException:
        _in_flight.discard(fetcher)
        raise


def post(
    url: str,
    headers: Optional[Mapping[str, str]] = None,
    post_data: Optional[Data] = None,
    callback: Optional[FetchCallback] = None,
    timeout: Timeout = None,
) -> None:
    """Start a POST; ``callback`` receives ``(status, body)`` on the caller's loop."""
    fetcher, _ = _tracked(callback)
    body = None if post_data is None else _as_bytes(post_data)
    try:
        fetcher.post(url, headers, body, timeout)
    except BaseException:
        _in_flight.discard(fetcher)
        raise


def sync_get(
    url: str, headers: Optional[Mapping[str, str]] = None, timeout: Timeout = None
) -> tuple[int, bytes]:
    """Perform a GET and return ``(status, body)``."""
    return URLFetcher().sync_get(url, headers, timeout)


def sync_post(
    url: str,
    headers: Optional[Mapping[str, str]] = None,
    post_data: Optional[Data] = None,
    timeout: Timeout = None,
) -> tuple[int, bytes]:
    """Perform a POST and return ``(status, body)``."""
    body = None if post_data is None else _as_bytes(post_data)
    return URLFetcher().sync_post(url, headers, body, timeout)