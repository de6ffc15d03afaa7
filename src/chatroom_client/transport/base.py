"""Transport abstraction for the chat client.

A transport carries several named logical channels over one connection.
The chat protocol uses two of them:
- "messages": chat and room traffic
- "files": file transfer traffic

Framing and protocol code depend only on the protocols below, never on a
concrete transport class.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

MESSAGES_CHANNEL = "messages"
FILES_CHANNEL = "files"
DEFAULT_CHANNELS = (MESSAGES_CHANNEL, FILES_CHANNEL)


class ChannelClosedError(ConnectionError):
    """Raised when writing to a channel that has been closed."""


class TransportState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


@dataclass
class TransportConfig:
    """Configuration shared by transports."""

    channels: tuple[str, ...] = DEFAULT_CHANNELS
    connect_timeout: float = 30.0

    # Websocket keepalive
    ping_interval: float | None = 30.0
    ping_timeout: float | None = 10.0


@runtime_checkable
class Channel(Protocol):
    """One logical duplex byte stream.

    Reads return whatever bytes are available (no message boundaries);
    an empty result means the stream has ended.
    """

    @property
    def name(self) -> str:
        """Channel name."""
        ...

    async def read(self) -> bytes:
        """Read the next available bytes; b"" at end of stream."""
        ...

    def write(self, data: bytes) -> None:
        """Buffer bytes for sending."""
        ...

    async def drain(self) -> None:
        """Flush buffered bytes to the connection.

        Raises:
            ChannelClosedError: If the channel is closed
        """
        ...

    def close(self) -> None:
        """Close the channel; pending and future reads see end of stream."""
        ...


@runtime_checkable
class ChannelTransport(Protocol):
    """A connection offering named channels.

    All transports must implement:
    - connect/disconnect: Lifecycle management
    - channel: Access to an established channel by name
    """

    @property
    def is_connected(self) -> bool:
        """Check if the transport is connected."""
        ...

    async def connect(self, url: str) -> None:
        """Connect and establish every configured channel.

        Raises:
            ConnectionError: If the connection or any channel fails
        """
        ...

    async def disconnect(self) -> None:
        """Close all channels and the connection. Safe to call twice."""
        ...

    def channel(self, name: str) -> Channel:
        """Get an established channel.

        Raises:
            KeyError: If no channel with that name is established
        """
        ...
