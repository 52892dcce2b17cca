"""JSON control messages tagged with a message type."""

from __future__ import annotations

import json
from enum import IntEnum
from typing import Any

KEY_TYPE = "type"
KEY_MESSAGE = "message"
KEY_PID = "pid"
KEY_TTY = "tty"
KEY_ID = "id"
KEY_ARGS = "Args"


class MessageType(IntEnum):
    ECHO = 0
    RUN = 1
    RM = 2
    EXEC = 3
    PS = 4


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def build_message(type_: MessageType, message: str) -> str:
    """Return a JSON object holding ``type_`` and ``message``."""
    return _dumps({KEY_TYPE: int(MessageType(type_)), KEY_MESSAGE: message})


class MessageBuild:
    """Builder for a JSON message; ``set`` calls can be chained."""

    def __init__(self, type_: MessageType) -> None:
        self.type = MessageType(type_)
        self._fields: dict[str, Any] = {KEY_TYPE: int(self.type)}

    def set(self, key: str, value: str | int | list) -> MessageBuild:
        """Store ``value`` under ``key`` and return the builder."""
        if isinstance(value, bool) or not isinstance(value, (str, int, list)):
            raise TypeError(f"unsupported value type: {type(value).__name__}")
        self._fields[key] = list(value) if isinstance(value, list) else value
        return self

    def build(self) -> str:
        """Return the message as compact JSON with sorted keys."""
        return _dumps(self._fields)