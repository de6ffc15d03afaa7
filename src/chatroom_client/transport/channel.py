"""Queue-backed channel used by the concrete transports.

Incoming bytes are pushed by the transport (feed/feed_eof) and pulled by
readers. Outgoing bytes are buffered by write() and handed to a send
function as one unit on drain().
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .base import ChannelClosedError

logger = logging.getLogger(__name__)

SendFunc = Callable[[bytes], Awaitable[None]]

_EOF = b""


class QueueChannel:
    """A Channel whose input is an asyncio queue."""

    def __init__(self, name: str, send: SendFunc):
        self._name = name
        self._send = send
        self._incoming: asyncio.Queue[bytes] = asyncio.Queue()
        self._outgoing = bytearray()
        self._closed = False
        self._eof = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, data: bytes) -> None:
        """Deliver received bytes to readers."""
        if data and not self._eof:
            self._incoming.put_nowait(bytes(data))

    def feed_eof(self) -> None:
        """Signal end of stream to readers."""
        if not self._eof:
            self._eof = True
            self._incoming.put_nowait(_EOF)

    async def read(self) -> bytes:
        data = await self._incoming.get()
        if data == _EOF:
            # Keep the marker so every later read also sees end of stream
            self._incoming.put_nowait(_EOF)
        return data

    def write(self, data: bytes) -> None:
        if self._closed:
            raise ChannelClosedError(f"Channel '{self._name}' is closed")
        self._outgoing.extend(data)

    async def drain(self) -> None:
        if self._closed:
            raise ChannelClosedError(f"Channel '{self._name}' is closed")
        if not self._outgoing:
            return
        data = bytes(self._outgoing)
        self._outgoing.clear()
        await self._send(data)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._outgoing.clear()
        self.feed_eof()
        logger.debug(f"Channel '{self._name}' closed")
