"""Protocol layer: wire models for both channels and composite payloads.

Usage:
    from chatroom_client.protocol import ChatMessage, ChatMessageType

    msg = ChatMessage.create(ChatMessageType.CHAT, "hello")
    line = msg.to_wire()
"""

from .messages import (
    ROOM_PREFIX,
    ChatMessage,
    ChatMessageType,
    FileMessageType,
    FileTransferInfo,
    FileTransferMessage,
    WireModel,
    format_target,
    is_room_target,
)
from .payloads import (
    CreateRoomPayload,
    JoinRoomPayload,
    Payload,
    RoomMemberPayload,
    RoomMessagePayload,
    parse_payload,
)

__all__ = [
    # Messages
    "ChatMessage",
    "ChatMessageType",
    "FileMessageType",
    "FileTransferInfo",
    "FileTransferMessage",
    "WireModel",
    # Addressing
    "ROOM_PREFIX",
    "format_target",
    "is_room_target",
    # Payloads
    "CreateRoomPayload",
    "JoinRoomPayload",
    "Payload",
    "RoomMemberPayload",
    "RoomMessagePayload",
    "parse_payload",
]
