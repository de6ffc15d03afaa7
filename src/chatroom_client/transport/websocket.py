"""WebSocket transport with named channels.

One websocket connection carries every channel. Each binary frame is tagged
with the channel it belongs to:

    [1 byte: channel id][payload bytes]

Channel id 0 is the control channel. Its payloads are JSON objects used to
open channels by name when connecting:

    client -> server: {"type": "offer", "name": "messages", "id": 1}
    server -> client: {"type": "accept", "id": 1}
    server -> client: {"type": "reject", "id": 1, "reason": "..."}
    either side:      {"type": "close", "id": 1}

The connection counts as established only after every configured channel
has been accepted. A single reader task demultiplexes incoming frames into
per-channel queues; when the websocket closes, every channel ends.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

from .base import ChannelClosedError, TransportConfig, TransportState
from .channel import QueueChannel

logger = logging.getLogger(__name__)

CONTROL_CHANNEL_ID = 0
MAX_CHANNEL_ID = 255


def encode_frame(channel_id: int, payload: bytes) -> bytes:
    """Tag a payload with its channel id."""
    if not 0 <= channel_id <= MAX_CHANNEL_ID:
        raise ValueError(f"Channel id out of range: {channel_id}")
    return bytes([channel_id]) + payload


def decode_frame(frame: bytes) -> tuple[int, bytes]:
    """Split a frame into (channel id, payload)."""
    if not frame:
        raise ValueError("Empty frame")
    return frame[0], frame[1:]


class WebSocketChannelTransport:
    """Multiplexes named channels over a single websocket.

    Example:
        transport = WebSocketChannelTransport()
        await transport.connect("ws://localhost:5106/ws")
        messages = transport.channel("messages")
        messages.write(b'{"type": "listUsers"}\\n')
        await messages.drain()
    """

    def __init__(self, config: TransportConfig | None = None):
        self.config = config or TransportConfig()
        self._state = TransportState.DISCONNECTED
        self._ws: Any = None  # websockets client connection
        self._channels: dict[str, QueueChannel] = {}
        self._ids: dict[int, QueueChannel] = {}
        self._reader_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == TransportState.CONNECTED

    async def connect(self, url: str) -> None:
        async with self._lock:
            if self._state == TransportState.CONNECTED:
                return

            self._state = TransportState.CONNECTING
            try:
                self._ws = await websockets.connect(
                    url,
                    open_timeout=self.config.connect_timeout,
                    ping_interval=self.config.ping_interval,
                    ping_timeout=self.config.ping_timeout,
                )
                await asyncio.wait_for(self._open_channels(), timeout=self.config.connect_timeout)
                self._state = TransportState.CONNECTED
                self._reader_task = asyncio.create_task(self._read_loop())
                logger.info(f"WebSocket connected to {url} ({', '.join(self._channels)})")
            except Exception as e:
                await self._teardown()
                self._state = TransportState.DISCONNECTED
                raise ConnectionError(f"Failed to connect: {e}") from e

    async def disconnect(self) -> None:
        async with self._lock:
            if self._state in (TransportState.DISCONNECTED, TransportState.CLOSED):
                return
            self._state = TransportState.CLOSED
            await self._teardown()
            self._state = TransportState.DISCONNECTED
            logger.info("WebSocket disconnected")

    def channel(self, name: str) -> QueueChannel:
        return self._channels[name]

    async def _open_channels(self) -> None:
        """Offer every configured channel and wait until all are accepted."""
        offered: dict[int, str] = {}
        for channel_id, name in enumerate(self.config.channels, start=1):
            offered[channel_id] = name
            await self._send_control({"type": "offer", "name": name, "id": channel_id})

        pending = set(offered)
        while pending:
            frame = await self._ws.recv()
            if isinstance(frame, str):
                logger.debug("Ignoring text frame during channel setup")
                continue
            channel_id, payload = decode_frame(frame)
            if channel_id != CONTROL_CHANNEL_ID:
                logger.debug(f"Dropping data for channel {channel_id} before setup finished")
                continue

            control = json.loads(payload)
            control_id = control.get("id")
            if control.get("type") == "accept" and control_id in pending:
                pending.discard(control_id)
            elif control.get("type") == "reject" and control_id in offered:
                reason = control.get("reason", "rejected")
                raise ConnectionError(f"Channel '{offered[control_id]}' refused: {reason}")

        for channel_id, name in offered.items():
            channel = QueueChannel(name, self._sender(channel_id))
            self._channels[name] = channel
            self._ids[channel_id] = channel

    async def _send_control(self, message: dict[str, Any]) -> None:
        await self._ws.send(encode_frame(CONTROL_CHANNEL_ID, json.dumps(message).encode("utf-8")))

    def _sender(self, channel_id: int):
        async def send(data: bytes) -> None:
            if self._ws is None:
                raise ChannelClosedError("WebSocket not connected")
            try:
                await self._ws.send(encode_frame(channel_id, data))
            except ConnectionClosed as e:
                raise ChannelClosedError(f"WebSocket closed: {e}") from e

        return send

    async def _read_loop(self) -> None:
        """Route incoming frames to their channels until the socket closes."""
        try:
            async for frame in self._ws:
                if isinstance(frame, str):
                    logger.debug("Ignoring text frame")
                    continue
                try:
                    channel_id, payload = decode_frame(frame)
                except ValueError:
                    continue

                if channel_id == CONTROL_CHANNEL_ID:
                    self._handle_control(payload)
                    continue

                channel = self._ids.get(channel_id)
                if channel is None:
                    logger.debug(f"Dropping frame for unknown channel {channel_id}")
                    continue
                channel.feed(payload)
        except ConnectionClosed as e:
            logger.info(f"WebSocket closed: {e}")
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"WebSocket receive error: {e}")
        finally:
            for channel in self._channels.values():
                channel.feed_eof()

    def _handle_control(self, payload: bytes) -> None:
        try:
            control = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid control message: {e}")
            return
        if control.get("type") == "close":
            channel = self._ids.get(control.get("id"))
            if channel is not None:
                logger.info(f"Server closed channel '{channel.name}'")
                channel.feed_eof()

    async def _teardown(self) -> None:
        for channel in self._channels.values():
            channel.close()

        if self._reader_task:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None

        if self._ws is not None:
            with contextlib.suppress(Exception):
                await self._ws.close()
            self._ws = None

        self._channels = {}
        self._ids = {}
