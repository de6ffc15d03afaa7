"""Newline-delimited JSON framing over a channel.

Each message is one compact JSON object followed by a single newline,
encoded as UTF-8. Reads may split a message (or a multi-byte character)
anywhere; LineBuffer keeps the partial tail until the rest arrives.
"""

from __future__ import annotations

import codecs
import logging
from collections.abc import AsyncIterator, Callable
from typing import Generic, TypeVar

from pydantic import ValidationError

from .protocol import WireModel
from .transport import Channel

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
NEWLINE = "\n"

M = TypeVar("M", bound=WireModel)


def encode_message(message: WireModel) -> bytes:
    """Serialize a message to one framed line."""
    return (message.to_wire() + NEWLINE).encode(ENCODING)


class LineBuffer:
    """Accumulates bytes and yields complete lines.

    Everything before the last newline is complete; the segment after it
    (possibly empty) is kept for the next feed. Lines are stripped and blank
    lines are skipped.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder(ENCODING)(errors="replace")
        self._pending = ""

    @property
    def pending(self) -> str:
        """The partial line waiting for its newline."""
        return self._pending

    def feed(self, data: bytes) -> list[str]:
        self._pending += self._decoder.decode(data)
        if NEWLINE not in self._pending:
            return []

        *complete, self._pending = self._pending.split(NEWLINE)
        return [line.strip() for line in complete if line.strip()]

    def reset(self) -> None:
        self._decoder.reset()
        self._pending = ""


class MessageFramer(Generic[M]):
    """Sends and receives one message type over one channel.

    Example:
        framer = MessageFramer(channel, ChatMessage)
        await framer.send(ChatMessage.create(ChatMessageType.LIST_USERS))

        async for message in framer.messages(lambda: manager.is_connected):
            handle(message)

    Only one task should send on a given framer at a time.
    """

    def __init__(self, channel: Channel, model: type[M]):
        self.channel = channel
        self.model = model
        self._buffer = LineBuffer()

    async def send(self, message: M) -> None:
        """Write one framed message and flush it."""
        self.channel.write(encode_message(message))
        await self.channel.drain()

    def feed(self, data: bytes) -> list[M]:
        """Parse every complete line in data; malformed lines are logged and dropped."""
        parsed: list[M] = []
        for line in self._buffer.feed(data):
            try:
                parsed.append(self.model.model_validate_json(line))
            except ValidationError as e:
                logger.warning(
                    f"Dropping malformed {self.model.__name__} on '{self.channel.name}': "
                    f"{e.error_count()} error(s): {line[:100]}"
                )
        return parsed

    async def messages(self, is_connected: Callable[[], bool]) -> AsyncIterator[M]:
        """Yield messages until end of stream or until is_connected() is false."""
        while is_connected():
            data = await self.channel.read()
            if not data:
                logger.debug(f"Channel '{self.channel.name}' reached end of stream")
                return
            for message in self.feed(data):
                yield message
