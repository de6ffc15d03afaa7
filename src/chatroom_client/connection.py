"""Connection lifecycle.

ConnectionManager owns the transport and turns its exceptions into
status notifications plus a boolean result. `is_connected` is the local
belief: set only after every channel is up and cleared as soon as a
disconnect begins, so receive loops and senders stop promptly.
"""

from __future__ import annotations

import logging

from .notifications import NotificationQueue
from .transport import Channel, ChannelTransport

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Connects, disconnects and hands out channels."""

    def __init__(self, transport: ChannelTransport, notifications: NotificationQueue):
        self.transport = transport
        self.notifications = notifications
        self._connected = False
        self.url: str | None = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self, url: str) -> bool:
        """Connect to the server.

        Returns:
            True on success. Failures are reported as a status line, not raised.
        """
        self.notifications.status("Connecting to server...")
        try:
            await self.transport.connect(url)
        except (ConnectionError, OSError, TimeoutError) as e:
            logger.warning(f"Connection to {url} failed: {e}")
            self._connected = False
            self.notifications.status(f"Connection failed: {e}", level="error")
            return False

        self.url = url
        self._connected = True
        self.notifications.status("Connected to server")
        return True

    async def disconnect(self) -> None:
        """Tear down the connection. Calling it again is a no-op."""
        if not self._connected:
            return

        self._connected = False
        try:
            await self.transport.disconnect()
        except Exception as e:
            logger.error(f"Disconnection error: {e}")
            self.notifications.status(f"Disconnection error: {e}", level="error")
            return

        self.notifications.status("Disconnected from server")

    def channel(self, name: str) -> Channel:
        """Get an established channel by name.

        Raises:
            ConnectionError: If not connected
        """
        if not self._connected:
            raise ConnectionError("Not connected")
        return self.transport.channel(name)
