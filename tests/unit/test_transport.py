"""Unit tests for channels and the in-memory transport."""

from __future__ import annotations

import pytest

from chatroom_client.transport import (
    FILES_CHANNEL,
    MESSAGES_CHANNEL,
    Channel,
    ChannelClosedError,
    ChannelTransport,
    MemoryChannelTransport,
    QueueChannel,
    TransportState,
)


class _Recorder:
    def __init__(self) -> None:
        self.sent: list[bytes] = []

    async def __call__(self, data: bytes) -> None:
        self.sent.append(data)


class TestQueueChannel:
    """Tests for the queue-backed channel."""

    def test_implements_channel(self):
        assert isinstance(QueueChannel("x", _Recorder()), Channel)

    @pytest.mark.asyncio
    async def test_drain_sends_buffered_writes_as_one_unit(self):
        send = _Recorder()
        channel = QueueChannel("x", send)

        channel.write(b"hello ")
        channel.write(b"world\n")
        await channel.drain()
        await channel.drain()

        assert send.sent == [b"hello world\n"]

    @pytest.mark.asyncio
    async def test_read_returns_fed_bytes_in_order(self):
        channel = QueueChannel("x", _Recorder())
        channel.feed(b"a")
        channel.feed(b"b")

        assert await channel.read() == b"a"
        assert await channel.read() == b"b"

    @pytest.mark.asyncio
    async def test_end_of_stream_is_sticky(self):
        """Every read after end of stream returns b''."""
        channel = QueueChannel("x", _Recorder())
        channel.feed_eof()
        channel.feed(b"ignored")

        assert await channel.read() == b""
        assert await channel.read() == b""

    @pytest.mark.asyncio
    async def test_closed_channel_refuses_writes(self):
        channel = QueueChannel("x", _Recorder())
        channel.close()

        with pytest.raises(ChannelClosedError):
            channel.write(b"data")
        with pytest.raises(ChannelClosedError):
            await channel.drain()
        assert channel.closed
        assert await channel.read() == b""

    def test_closed_error_is_connection_error(self):
        assert issubclass(ChannelClosedError, ConnectionError)


class TestMemoryChannelTransport:
    """Tests for the in-memory transport."""

    def test_implements_transport(self):
        assert isinstance(MemoryChannelTransport(), ChannelTransport)

    @pytest.mark.asyncio
    async def test_connect_opens_both_channels(self, transport: MemoryChannelTransport):
        await transport.connect("memory://")

        assert transport.is_connected
        assert transport.channel(MESSAGES_CHANNEL).name == MESSAGES_CHANNEL
        assert transport.channel(FILES_CHANNEL).name == FILES_CHANNEL

    @pytest.mark.asyncio
    async def test_unknown_channel_raises_key_error(self, transport: MemoryChannelTransport):
        await transport.connect("memory://")

        with pytest.raises(KeyError):
            transport.channel("video")

    @pytest.mark.asyncio
    async def test_channels_are_independent(self, transport: MemoryChannelTransport):
        await transport.connect("memory://")

        transport.channel(FILES_CHANNEL).write(b"file bytes")
        await transport.channel(FILES_CHANNEL).drain()

        assert transport.written(FILES_CHANNEL) == b"file bytes"
        assert transport.written(MESSAGES_CHANNEL) == b""

    @pytest.mark.asyncio
    async def test_connect_failure(self):
        transport = MemoryChannelTransport(fail_with=OSError("refused"))

        with pytest.raises(ConnectionError, match="refused"):
            await transport.connect("memory://")
        assert transport.state == TransportState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_disconnect_ends_channels(self, transport: MemoryChannelTransport):
        await transport.connect("memory://")
        channel = transport.channel(MESSAGES_CHANNEL)

        await transport.disconnect()

        assert not transport.is_connected
        assert await channel.read() == b""

    @pytest.mark.asyncio
    async def test_disconnect_twice(self, transport: MemoryChannelTransport):
        await transport.connect("memory://")

        await transport.disconnect()
        await transport.disconnect()

        assert transport.state == TransportState.DISCONNECTED
