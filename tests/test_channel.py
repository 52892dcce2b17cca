import asyncio

import pytest

from workerkit.rtc.channel import Channel, Connection
from workerkit.rtc.io_buffer import IOBuffer


class RecordingChannel(Channel):
    def __init__(self):
        super().__init__()
        self.messages = []
        self.closed = False

    def on_message(self, data):
        self.messages.append(data)

    def on_close(self):
        self.closed = True


class RecordingConnection(Connection):
    def __init__(self):
        self.sent = []
        self.closed = False

    def send(self, buffer):
        self.sent.append(buffer)

    def close(self):
        self.closed = True


def test_ref_count_starts_at_zero_and_counts_up():
    channel = RecordingChannel()
    assert channel.ref_count == 0
    Channel.add_ref(channel)
    assert channel.ref_count == 1


def test_release_last_reference_disposes():
    channel = RecordingChannel()
    Channel.add_ref(channel)
    Channel.add_ref(channel)
    Channel.release(channel)
    assert channel.disposed is False
    assert channel.ref_count == 1
    Channel.release(channel)
    assert channel.disposed is True


def test_release_without_reference_raises():
    channel = RecordingChannel()
    with pytest.raises(RuntimeError):
        Channel.release(channel)


@pytest.mark.asyncio
async def test_dispose_is_deferred_in_event_loop():
    channel = RecordingChannel()
    Channel.add_ref(channel)
    Channel.release(channel)
    assert channel.disposed is False
    await asyncio.sleep(0)
    assert channel.disposed is True


def test_abstract_classes_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Channel()
    with pytest.raises(TypeError):
        Connection()


def test_connection_subclass_sends():
    conn = RecordingConnection()
    buf = IOBuffer(b"data")
    conn.send(buf)
    conn.close()
    assert conn.sent == [buf]
    assert conn.closed is True