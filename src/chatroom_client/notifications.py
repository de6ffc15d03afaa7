"""Outbound notification channel.

Every component reports what happened (status lines, received chat messages,
file offers, transfer progress) by publishing a Notification here. UI or
logging layers drain the queue; nothing in the core calls back into them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from enum import Enum

from pydantic import BaseModel

from .protocol import ChatMessage, FileTransferInfo

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    """All notification kinds."""

    STATUS = "status"  # Human-readable status line
    MESSAGE = "message"  # Chat message received
    FILE_OFFER = "file_offer"  # Incoming file offer
    PROGRESS = "progress"  # File transfer progress


class Notification(BaseModel):
    """A single notification for the UI."""

    kind: NotificationKind
    text: str = ""
    level: str = "info"

    chat_message: ChatMessage | None = None
    file_info: FileTransferInfo | None = None

    # Progress
    file_id: str | None = None
    current: int | None = None
    total: int | None = None

    @property
    def percent(self) -> float | None:
        """Progress percentage, for progress notifications."""
        if self.current is None or not self.total:
            return None
        return self.current / self.total * 100


class NotificationQueue:
    """Unbounded queue of notifications.

    Publishing never blocks, so protocol code can notify from anywhere.

    Usage:
        notifications = NotificationQueue()
        notifications.status("Connected to server")

        async for n in notifications.stream():
            print(n.text)
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Notification] = asyncio.Queue()

    def publish(self, notification: Notification) -> None:
        self._queue.put_nowait(notification)

    def status(self, text: str, level: str = "info") -> None:
        """Publish a status line."""
        logger.debug(f"status: {text}")
        self.publish(Notification(kind=NotificationKind.STATUS, text=text, level=level))

    def message(self, message: ChatMessage) -> None:
        """Publish a received chat message."""
        self.publish(
            Notification(kind=NotificationKind.MESSAGE, text=message.message, chat_message=message)
        )

    def file_offer(self, info: FileTransferInfo, auto_accept: bool = False) -> None:
        """Publish an incoming file offer."""
        self.publish(
            Notification(
                kind=NotificationKind.FILE_OFFER,
                text=info.file_name,
                file_info=info,
                file_id=info.id,
                level="auto" if auto_accept else "info",
            )
        )

    def progress(self, file_id: str, current: int, total: int, text: str = "") -> None:
        """Publish transfer progress (current out of total chunks)."""
        self.publish(
            Notification(
                kind=NotificationKind.PROGRESS,
                text=text,
                file_id=file_id,
                current=current,
                total=total,
            )
        )

    def drain(self) -> list[Notification]:
        """Take everything queued right now."""
        items: list[Notification] = []
        while not self._queue.empty():
            items.append(self._queue.get_nowait())
        return items

    def statuses(self) -> list[str]:
        """Drain and return only status texts (handy for tests and logs)."""
        return [n.text for n in self.drain() if n.kind == NotificationKind.STATUS]

    async def get(self) -> Notification:
        return await self._queue.get()

    async def stream(self) -> AsyncIterator[Notification]:
        """Yield notifications as they are published."""
        while True:
            yield await self._queue.get()
