"""Emit binary data as a C array declaration."""

from __future__ import annotations

from pathlib import Path

_BYTES_PER_LINE = 8


def format_binary(name: str, data: bytes) -> str:
    """Return the text of a C array named ``name`` holding ``data``."""
    if not name:
        raise ValueError("name must not be empty")
    payload = bytes(data)
    if not payload:
        raise ValueError("data must not be empty")
    lines = (
        ", ".join(f"0x{byte:02x}" for byte in payload[start:start + _BYTES_PER_LINE])
        for start in range(0, len(payload), _BYTES_PER_LINE)
    )
    body = ", \n".join(lines)
    size = len(payload)
    return (
        f"const unsigned char {name}[{size}] = {{\n"
        f"{body}\n"
        f"}};\n"
        f"const unsigned int k{name} = {size};\n"
    )


def gen_binary(path: str | Path, name: str, data: bytes) -> None:
    """Write ``data`` as a C array to ``path``, creating its directory if needed."""
    if not path:
        raise ValueError("path must not be empty")
    text = format_binary(name, data)
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text)