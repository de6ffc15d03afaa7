"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from chatroom_client.config import ClientConfig
from chatroom_client.notifications import NotificationQueue
from chatroom_client.protocol import ChatMessage, FileTransferMessage
from chatroom_client.session import ChatSession
from chatroom_client.transport import FILES_CHANNEL, MESSAGES_CHANNEL, MemoryChannelTransport

ROOM_ID = "3fa85f64-5717-4562-b3fc-2c963f66afa6"


@pytest.fixture
def notifications() -> NotificationQueue:
    return NotificationQueue()


@pytest.fixture
def session() -> ChatSession:
    return ChatSession(username="alice")


@pytest.fixture
def transport() -> MemoryChannelTransport:
    return MemoryChannelTransport()


@pytest.fixture
def downloads(tmp_path: Path) -> Path:
    return tmp_path / "downloads"


@pytest.fixture
def config(downloads: Path) -> ClientConfig:
    return ClientConfig(server_url="memory://test", downloads_dir=str(downloads))


def sent_chat_messages(transport: MemoryChannelTransport) -> list[ChatMessage]:
    """Every ChatMessage the client flushed to the messages channel."""
    lines = transport.written(MESSAGES_CHANNEL).decode("utf-8").splitlines()
    return [ChatMessage.model_validate_json(line) for line in lines]


def sent_file_messages(transport: MemoryChannelTransport) -> list[FileTransferMessage]:
    """Every FileTransferMessage the client flushed to the files channel."""
    lines = transport.written(FILES_CHANNEL).decode("utf-8").splitlines()
    return [FileTransferMessage.model_validate_json(line) for line in lines]
