"""Transport abstraction layer.

Provides the channel capability interface and two implementations:
- WebSocket - one websocket carrying tagged frames for each named channel
- Memory - in-process queues, for tests and local wiring
"""

from .base import (
    DEFAULT_CHANNELS,
    FILES_CHANNEL,
    MESSAGES_CHANNEL,
    Channel,
    ChannelClosedError,
    ChannelTransport,
    TransportConfig,
    TransportState,
)
from .channel import QueueChannel
from .memory import MemoryChannelTransport
from .websocket import WebSocketChannelTransport, decode_frame, encode_frame

__all__ = [
    # Base abstractions
    "Channel",
    "ChannelClosedError",
    "ChannelTransport",
    "TransportConfig",
    "TransportState",
    "DEFAULT_CHANNELS",
    "FILES_CHANNEL",
    "MESSAGES_CHANNEL",
    # Implementations
    "QueueChannel",
    "MemoryChannelTransport",
    "WebSocketChannelTransport",
    "decode_frame",
    "encode_frame",
]
