import json

import pytest

from workerkit.gen.message_build import (
    KEY_ARGS,
    KEY_PID,
    KEY_TTY,
    MessageBuild,
    MessageType,
    build_message,
)


def test_build_message_compact_sorted():
    assert build_message(MessageType.RUN, "hi") == '{"message":"hi","type":1}'


def test_build_message_round_trip():
    text = build_message(MessageType.PS, "list")
    assert json.loads(text) == {"type": int(MessageType.PS), "message": "list"}


def test_builder_holds_type():
    assert json.loads(MessageBuild(MessageType.ECHO).build()) == {"type": int(MessageType.ECHO)}


def test_builder_chaining():
    text = (
        MessageBuild(MessageType.EXEC)
        .set(KEY_PID, 42)
        .set(KEY_TTY, "pts0")
        .set(KEY_ARGS, ["ls", "-l"])
        .build()
    )
    assert json.loads(text) == {
        "type": int(MessageType.EXEC),
        "pid": 42,
        "tty": "pts0",
        "Args": ["ls", "-l"],
    }


def test_builder_overwrites_key():
    text = MessageBuild(MessageType.RM).set("id", "a").set("id", "b").build()
    assert json.loads(text)["id"] == "b"


def test_builder_keeps_non_ascii():
    text = MessageBuild(MessageType.ECHO).set("message", "héllo").build()
    assert "héllo" in text


@pytest.mark.parametrize("value", [1.5, None, True, {"a": 1}])
def test_builder_rejects_other_types(value):
    with pytest.raises(TypeError):
        MessageBuild(MessageType.ECHO).set("k", value)


def test_invalid_type_rejected():
    with pytest.raises(ValueError):
        MessageBuild(99)