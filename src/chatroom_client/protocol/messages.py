"""Wire message definitions for the chat protocol.

Two message families travel over the connection, one per channel:
- ChatMessage on the "messages" channel (chat, private, room lifecycle, lists)
- FileTransferMessage on the "files" channel (upload, offer, accept, data, ...)

Both are serialized as one JSON object per line with camelCase field names.
The `type` field is kept as a plain string so that messages with a type this
client does not know still parse; handlers decide what to do with them.
"""

from __future__ import annotations

import base64
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from .payloads import Payload

# Prefix on toUsername marking a room target instead of a user
ROOM_PREFIX = "room:"


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_target(to_username: str | None = None, room_id: str | None = None) -> str:
    """Build the toUsername value for a user, a room, or a broadcast.

    A room id wins over a username. An empty string means "everyone".
    """
    if room_id:
        return f"{ROOM_PREFIX}{room_id}"
    return to_username or ""


def is_room_target(to_username: str | None) -> bool:
    """Check if a toUsername value addresses a room."""
    return to_username is not None and to_username.startswith(ROOM_PREFIX)


class ChatMessageType(str, Enum):
    """All chat message types."""

    # Client -> server
    CHAT = "chat"
    PRIVATE_MESSAGE = "privateMessage"
    SET_USERNAME = "setUsername"
    LIST_USERS = "listUsers"
    CREATE_ROOM = "createRoom"
    JOIN_ROOM = "joinRoom"
    LEAVE_ROOM = "leaveRoom"
    LIST_ROOMS = "listRooms"
    LIST_ROOM_MEMBERS = "listRoomMembers"
    INVITE_TO_ROOM = "inviteToRoom"
    KICK_FROM_ROOM = "kickFromRoom"

    # Server -> client
    SYSTEM = "system"
    ROOM_MESSAGE = "roomMessage"
    ROOM_JOINED = "roomJoined"
    ROOM_LEFT = "roomLeft"
    ROOM_CREATED = "roomCreated"
    USER_LIST = "userList"
    ROOM_LIST = "roomList"
    ROOM_MEMBERS = "roomMembers"


class FileMessageType(str, Enum):
    """All file transfer message types."""

    # Sender side
    FILE_UPLOAD = "fileUpload"
    FILE_UPLOAD_COMPLETE = "fileUploadComplete"
    FILE_OFFER = "fileOffer"
    FILE_OFFER_AUTO = "fileOfferAuto"

    # Either side
    FILE_ACCEPT = "fileAccept"
    FILE_REJECT = "fileReject"
    FILE_ERROR = "fileError"

    # Receiver side (server push)
    FILE_DATA = "fileData"
    FILE_COMPLETE = "fileComplete"


class WireModel(BaseModel):
    """Base for everything that goes on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> str:
        """Serialize to compact JSON using wire field names."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class ChatMessage(WireModel):
    """A message on the messages channel.

    Example:
        {
            "type": "joinRoom",
            "username": "",
            "message": "3fa85f64-5717-4562-b3fc-2c963f66afa6|",
            "timestamp": "2024-01-15T10:30:00Z"
        }

    `message` is free text for chat types and a pipe-delimited composite for
    room commands; use `payload()` to get the typed form.
    """

    type: str
    username: str = ""
    to_username: str | None = None
    room_id: str | None = None
    message: str = ""
    timestamp: datetime = Field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        message_type: str | ChatMessageType,
        message: str = "",
        **fields: Any,
    ) -> ChatMessage:
        """Factory method for creating chat messages."""
        return cls(
            type=message_type.value if isinstance(message_type, ChatMessageType) else message_type,
            message=message,
            **fields,
        )

    def payload(self) -> Payload | None:
        """Parse the composite message body into its typed variant, if it has one."""
        from .payloads import parse_payload

        return parse_payload(self.type, self.message)


class FileTransferInfo(WireModel):
    """Describes a file independent of how its bytes travel."""

    id: str
    file_name: str
    file_size: int
    content_type: str = "application/octet-stream"
    to_username: str = ""
    from_username: str | None = None


class FileTransferMessage(WireModel):
    """A message on the files channel.

    `data` holds raw bytes in Python and standard base64 text on the wire.
    """

    type: str
    file_id: str
    file_info: FileTransferInfo | None = None
    data: bytes | None = None
    chunk_index: int = 0
    total_chunks: int = 0
    from_username: str | None = None
    to_username: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("data", mode="before")
    @classmethod
    def _decode_data(cls, value: Any) -> Any:
        if isinstance(value, str):
            return base64.b64decode(value)
        return value

    @field_serializer("data", when_used="json-unless-none")
    def _encode_data(self, value: bytes) -> str:
        return base64.b64encode(value).decode("ascii")

    @classmethod
    def create(
        cls,
        message_type: str | FileMessageType,
        file_id: str,
        **fields: Any,
    ) -> FileTransferMessage:
        """Factory method for creating file transfer messages."""
        return cls(
            type=message_type.value if isinstance(message_type, FileMessageType) else message_type,
            file_id=file_id,
            **fields,
        )

    def is_final_chunk(self) -> bool:
        """Check if this is the last chunk of an upload sequence."""
        return self.total_chunks > 0 and self.chunk_index + 1 == self.total_chunks
