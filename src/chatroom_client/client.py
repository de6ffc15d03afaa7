"""Chat client facade.

Wires the transport, connection manager, session, chat handler, file
transfer engine and command dispatcher together, and runs one receive loop
per channel while connected.

Usage:
    client = ChatClient(ClientConfig())
    await client.connect()
    await client.handle_input("/join 3fa85f64-5717-4562-b3fc-2c963f66afa6")
    await client.handle_input("hello room")

    async for notification in client.notifications.stream():
        ...
"""

from __future__ import annotations

import asyncio
import logging

from .chat import ChatHandler
from .commands import CommandDispatcher
from .config import ClientConfig
from .connection import ConnectionManager
from .files import FileStorage, FileTransferEngine
from .notifications import NotificationQueue
from .session import ChatSession
from .transport import ChannelTransport, TransportConfig, WebSocketChannelTransport

logger = logging.getLogger(__name__)


class ChatClient:
    """One connection to a chat server and everything that uses it."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        transport: ChannelTransport | None = None,
        notifications: NotificationQueue | None = None,
    ):
        self.config = config or ClientConfig()
        self.notifications = notifications or NotificationQueue()
        self.transport = transport or WebSocketChannelTransport(
            TransportConfig(connect_timeout=self.config.connect_timeout)
        )

        self.session = ChatSession()
        self.connection = ConnectionManager(self.transport, self.notifications)
        self.storage = FileStorage(self.config.downloads_path, self.config.chunk_size)
        self.chat = ChatHandler(self.connection, self.session, self.notifications)
        self.files = FileTransferEngine(self.connection, self.storage, self.notifications, self.session)
        self.commands = CommandDispatcher(self)

        self._tasks: list[asyncio.Task[None]] = []

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    async def connect(self, url: str | None = None) -> bool:
        """Connect and start both receive loops."""
        if self.connection.is_connected:
            self.notifications.status(f"Already connected to {self.connection.url}")
            return True

        await self._stop_loops()
        if not await self.connection.connect(url or self.config.server_url):
            return False

        self._tasks = [
            asyncio.create_task(self._receive_messages(), name="chat-receive-messages"),
            asyncio.create_task(self._receive_files(), name="chat-receive-files"),
        ]
        return True

    async def disconnect(self) -> None:
        """Disconnect and stop the receive loops. Safe to call twice."""
        await self.connection.disconnect()
        await self._stop_loops()
        self.session.reset()

    async def handle_input(self, text: str) -> None:
        """Handle one console line: a /command, or chat text."""
        text = text.strip()
        if not text:
            return
        if text.startswith("/"):
            await self.commands.handle_input(text)
        elif self.session.current_room:
            await self.chat.send_room_message(self.session.current_room, text)
        else:
            await self.chat.send_message(text)

    async def _stop_loops(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # =========================================================================
    # Receive loops
    # =========================================================================

    async def _receive_messages(self) -> None:
        try:
            framer = self.chat.framer()
        except ConnectionError:
            logger.debug("Disconnected before the message loop started")
            return
        try:
            async for message in framer.messages(lambda: self.connection.is_connected):
                await self.chat.process(message)
        except Exception:
            # Ends this loop only; the file loop keeps running
            logger.exception("Message receive loop failed")
            return
        await self._on_stream_end("messages")

    async def _receive_files(self) -> None:
        try:
            framer = self.files.framer()
        except ConnectionError:
            logger.debug("Disconnected before the file loop started")
            return
        try:
            async for message in framer.messages(lambda: self.connection.is_connected):
                await self.files.process(message)
        except Exception:
            logger.exception("File receive loop failed")
            return
        await self._on_stream_end("files")

    async def _on_stream_end(self, channel: str) -> None:
        logger.debug(f"Receive loop for '{channel}' reached end of stream")
        if self.connection.is_connected:
            # Server closed the stream while we still believed we were connected
            self.notifications.status("Connection to server lost", level="error")
            await self.connection.disconnect()
            self.session.reset()
