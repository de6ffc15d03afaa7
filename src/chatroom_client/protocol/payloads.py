"""Typed forms of the pipe-delimited composite message bodies.

Room commands carry their arguments inside the generic `message` field:

    createRoom:                roomName|description|isPrivate|password
    joinRoom:                  roomId|password
    inviteToRoom/kickFromRoom: roomId|username
    chat (room send):          roomMessage <roomId> <text>

Fields are order-significant and absent optional fields are empty strings.
These are parsed once, here, so no other code re-splits message strings.
"""

from __future__ import annotations

from dataclasses import dataclass

from .messages import ChatMessageType

SEPARATOR = "|"
ROOM_MESSAGE_COMMAND = "roomMessage"


def _split(text: str, count: int) -> list[str]:
    """Split into exactly `count` fields, padding missing ones with ''."""
    parts = text.split(SEPARATOR, count - 1)
    return parts + [""] * (count - len(parts))


@dataclass(frozen=True)
class CreateRoomPayload:
    room_name: str
    description: str = ""
    is_private: bool = False
    password: str | None = None

    def encode(self) -> str:
        # Booleans are written the way the server formats them
        return SEPARATOR.join(
            [
                self.room_name,
                self.description,
                "True" if self.is_private else "False",
                self.password or "",
            ]
        )

    @classmethod
    def parse(cls, text: str) -> CreateRoomPayload:
        name, description, is_private, password = _split(text, 4)
        return cls(
            room_name=name,
            description=description,
            is_private=is_private.strip().lower() == "true",
            password=password or None,
        )


@dataclass(frozen=True)
class JoinRoomPayload:
    room_id: str
    password: str | None = None

    def encode(self) -> str:
        return f"{self.room_id}{SEPARATOR}{self.password or ''}"

    @classmethod
    def parse(cls, text: str) -> JoinRoomPayload:
        room_id, password = _split(text, 2)
        return cls(room_id=room_id, password=password or None)


@dataclass(frozen=True)
class RoomMemberPayload:
    """Arguments of inviteToRoom and kickFromRoom."""

    room_id: str
    username: str

    def encode(self) -> str:
        return f"{self.room_id}{SEPARATOR}{self.username}"

    @classmethod
    def parse(cls, text: str) -> RoomMemberPayload:
        room_id, username = _split(text, 2)
        return cls(room_id=room_id, username=username)


@dataclass(frozen=True)
class RoomMessagePayload:
    """A chat message body addressed to a room."""

    room_id: str
    text: str

    def encode(self) -> str:
        return f"{ROOM_MESSAGE_COMMAND} {self.room_id} {self.text}"

    @classmethod
    def parse(cls, text: str) -> RoomMessagePayload | None:
        """Parse a room send, or return None for ordinary chat text."""
        parts = text.split(" ", 2)
        if len(parts) < 2 or parts[0] != ROOM_MESSAGE_COMMAND or not parts[1]:
            return None
        return cls(room_id=parts[1], text=parts[2] if len(parts) > 2 else "")


Payload = CreateRoomPayload | JoinRoomPayload | RoomMemberPayload | RoomMessagePayload


def parse_payload(message_type: str, text: str) -> Payload | None:
    """Return the typed payload for a message type, or None if it has none."""
    if message_type == ChatMessageType.CREATE_ROOM.value:
        return CreateRoomPayload.parse(text)
    if message_type == ChatMessageType.JOIN_ROOM.value:
        return JoinRoomPayload.parse(text)
    if message_type in (
        ChatMessageType.INVITE_TO_ROOM.value,
        ChatMessageType.KICK_FROM_ROOM.value,
    ):
        return RoomMemberPayload.parse(text)
    if message_type == ChatMessageType.CHAT.value:
        return RoomMessagePayload.parse(text)
    return None
