"""Chat protocol actions and inbound chat handling.

Each action builds one ChatMessage, sends it on the messages channel and
reports what it did. Inbound messages update session state where the
server confirms a room change, then go to the notification queue.
"""

from __future__ import annotations

import logging

from .connection import ConnectionManager
from .framing import MessageFramer
from .notifications import NotificationQueue
from .protocol import (
    ChatMessage,
    ChatMessageType,
    CreateRoomPayload,
    JoinRoomPayload,
    RoomMemberPayload,
    RoomMessagePayload,
)
from .session import ChatSession
from .transport import MESSAGES_CHANNEL

logger = logging.getLogger(__name__)

NOT_CONNECTED = "Not connected to server. Use /connect first."

_KNOWN_TYPES = {t.value for t in ChatMessageType}


def extract_room_id(text: str) -> str | None:
    """Pull the room id out of "...: <roomId>" confirmation text."""
    if ":" not in text:
        return None
    room_id = text.split(":")[1].strip()
    return room_id or None


class ChatHandler:
    """Turns chat intents into messages and handles what comes back."""

    def __init__(
        self,
        connection: ConnectionManager,
        session: ChatSession,
        notifications: NotificationQueue,
    ):
        self.connection = connection
        self.session = session
        self.notifications = notifications
        self._framer: MessageFramer[ChatMessage] | None = None

    def framer(self) -> MessageFramer[ChatMessage]:
        """Framer for the current messages channel.

        Raises:
            ConnectionError: If not connected
        """
        channel = self.connection.channel(MESSAGES_CHANNEL)
        if self._framer is None or self._framer.channel is not channel:
            self._framer = MessageFramer(channel, ChatMessage)
        return self._framer

    async def send(self, message: ChatMessage) -> bool:
        """Send one message if connected; report and return False otherwise."""
        if not self.connection.is_connected:
            self.notifications.status(NOT_CONNECTED, level="error")
            return False
        await self.framer().send(message)
        return True

    # =========================================================================
    # Messaging
    # =========================================================================

    async def send_message(self, text: str) -> None:
        """Public chat to everyone."""
        await self.send(ChatMessage.create(ChatMessageType.CHAT, text, username=self.session.username))

    async def send_private_message(self, to_username: str, text: str) -> None:
        sent = await self.send(
            ChatMessage.create(
                ChatMessageType.PRIVATE_MESSAGE,
                text,
                username=self.session.username,
                to_username=to_username,
            )
        )
        if sent:
            self.notifications.status(f"Private message sent to {to_username}")

    async def send_room_message(self, room_id: str, text: str) -> None:
        body = RoomMessagePayload(room_id=room_id, text=text).encode()
        sent = await self.send(
            ChatMessage.create(ChatMessageType.CHAT, body, username=self.session.username)
        )
        if sent:
            self.notifications.status(f"[{room_id}] {text}")

    # =========================================================================
    # Users
    # =========================================================================

    async def set_username(self, username: str) -> None:
        if await self.send(ChatMessage.create(ChatMessageType.SET_USERNAME, username)):
            self.session.set_username(username)
            self.notifications.status(f"Username set to: {username}")

    async def list_users(self) -> None:
        await self.send(ChatMessage.create(ChatMessageType.LIST_USERS))

    # =========================================================================
    # Rooms
    # =========================================================================

    async def create_room(
        self,
        room_name: str,
        description: str = "",
        is_private: bool = False,
        password: str | None = None,
    ) -> None:
        payload = CreateRoomPayload(room_name, description, is_private, password)
        if await self.send(ChatMessage.create(ChatMessageType.CREATE_ROOM, payload.encode())):
            self.notifications.status(f"Creating room '{room_name}'...")

    async def join_room(self, room_id: str, password: str | None = None) -> None:
        payload = JoinRoomPayload(room_id, password)
        if await self.send(ChatMessage.create(ChatMessageType.JOIN_ROOM, payload.encode())):
            # The server confirms with roomJoined; assume success until then
            self.session.enter_room(room_id)
            self.notifications.status(f"Joining room {room_id}...")

    async def leave_room(self, room_id: str | None = None) -> None:
        """Leave room_id, or the current room if none is given."""
        if not self.connection.is_connected:
            self.notifications.status(NOT_CONNECTED, level="error")
            return

        target = room_id or self.session.current_room
        if not target:
            self.notifications.status("You are not in a room. Specify a room id to leave.")
            return

        await self.send(ChatMessage.create(ChatMessageType.LEAVE_ROOM, target))
        self.session.leave_room(target)
        self.notifications.status(f"Left room {target}")

    async def list_rooms(self) -> None:
        await self.send(ChatMessage.create(ChatMessageType.LIST_ROOMS))

    async def list_room_members(self, room_id: str | None = None) -> None:
        if not self.connection.is_connected:
            self.notifications.status(NOT_CONNECTED, level="error")
            return

        target = room_id or self.session.current_room
        if not target:
            self.notifications.status("No room specified and you are not in a room.")
            return
        await self.send(ChatMessage.create(ChatMessageType.LIST_ROOM_MEMBERS, target))

    async def invite_to_room(self, room_id: str, username: str) -> None:
        payload = RoomMemberPayload(room_id, username)
        if await self.send(ChatMessage.create(ChatMessageType.INVITE_TO_ROOM, payload.encode())):
            self.notifications.status(f"Inviting {username} to room {room_id}...")

    async def kick_from_room(self, room_id: str, username: str) -> None:
        payload = RoomMemberPayload(room_id, username)
        if await self.send(ChatMessage.create(ChatMessageType.KICK_FROM_ROOM, payload.encode())):
            self.notifications.status(f"Kicking {username} from room {room_id}...")

    # =========================================================================
    # Inbound
    # =========================================================================

    async def process(self, message: ChatMessage) -> None:
        """Handle one message from the server."""
        if message.type == ChatMessageType.ROOM_JOINED.value:
            room_id = extract_room_id(message.message)
            if room_id:
                self.session.enter_room(room_id)
                self.notifications.status(f"Joined room {room_id}")
        elif message.type == ChatMessageType.ROOM_LEFT.value:
            room_id = extract_room_id(message.message)
            if room_id and self.session.leave_room(room_id):
                self.notifications.status(f"Left room {room_id}")
        elif message.type not in _KNOWN_TYPES:
            logger.debug(f"Unknown chat message type: {message.type}")

        self.notifications.message(message)
