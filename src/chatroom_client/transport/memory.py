"""In-memory transport.

No actual I/O - channels are queues. Used by tests and for wiring the client
without a server.

Usage:
    transport = MemoryChannelTransport()
    manager = ConnectionManager(transport, notifications)
    await manager.connect("memory://")

    transport.inject("messages", b'{"type": "system", "message": "hi"}\\n')
    assert transport.written("files") == b"..."
"""

from __future__ import annotations

import logging

from .base import TransportConfig, TransportState
from .channel import QueueChannel

logger = logging.getLogger(__name__)


class MemoryChannelTransport:
    """Transport whose channels live in process memory."""

    def __init__(
        self,
        config: TransportConfig | None = None,
        fail_with: Exception | None = None,
    ):
        self.config = config or TransportConfig()
        self._fail_with = fail_with
        self._state = TransportState.DISCONNECTED
        self._channels: dict[str, QueueChannel] = {}
        self._written: dict[str, bytearray] = {}
        self.connect_calls: list[str] = []
        self.disconnect_calls = 0

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == TransportState.CONNECTED

    async def connect(self, url: str) -> None:
        self.connect_calls.append(url)
        self._state = TransportState.CONNECTING
        if self._fail_with is not None:
            self._state = TransportState.DISCONNECTED
            raise ConnectionError(f"Failed to connect: {self._fail_with}") from self._fail_with

        self._channels = {}
        self._written = {}
        for name in self.config.channels:
            self._written[name] = bytearray()
            self._channels[name] = QueueChannel(name, self._recorder(name))
        self._state = TransportState.CONNECTED
        logger.info(f"Memory transport connected to {url}")

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        if self._state in (TransportState.DISCONNECTED, TransportState.CLOSED):
            return
        self._state = TransportState.CLOSED
        for channel in self._channels.values():
            channel.close()
        self._state = TransportState.DISCONNECTED

    def channel(self, name: str) -> QueueChannel:
        return self._channels[name]

    def _recorder(self, name: str):
        async def record(data: bytes) -> None:
            self._written[name].extend(data)

        return record

    # Test helpers

    def inject(self, name: str, data: bytes) -> None:
        """Deliver bytes as if the server had sent them on a channel."""
        self._channels[name].feed(data)

    def finish(self, name: str) -> None:
        """End the server side of a channel."""
        self._channels[name].feed_eof()

    def written(self, name: str) -> bytes:
        """All bytes the client has flushed to a channel."""
        return bytes(self._written.get(name, b""))

    def clear(self) -> None:
        """Forget recorded output."""
        for buf in self._written.values():
            buf.clear()
