"""Unit tests for FileTransferEngine."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from conftest import ROOM_ID, sent_file_messages

from chatroom_client.connection import ConnectionManager
from chatroom_client.files import FileStorage, FileTransferEngine
from chatroom_client.notifications import NotificationKind, NotificationQueue
from chatroom_client.protocol import FileMessageType, FileTransferInfo, FileTransferMessage
from chatroom_client.session import ChatSession
from chatroom_client.transport import MemoryChannelTransport


async def make_engine(
    transport: MemoryChannelTransport,
    notifications: NotificationQueue,
    downloads: Path,
    connect: bool = True,
) -> FileTransferEngine:
    connection = ConnectionManager(transport, notifications)
    if connect:
        await connection.connect("memory://")
    notifications.drain()
    return FileTransferEngine(connection, FileStorage(downloads), notifications, ChatSession("alice"))


def _info(file_id: str = "f1", name: str = "x.txt", size: int = 5, sender: str | None = "bob"):
    return FileTransferInfo(id=file_id, file_name=name, file_size=size, from_username=sender)


def _data(file_id: str, data: bytes, index: int = 0, total: int = 1, info=None) -> FileTransferMessage:
    return FileTransferMessage.create(
        FileMessageType.FILE_DATA,
        file_id,
        file_info=info,
        data=data,
        chunk_index=index,
        total_chunks=total,
    )


# =============================================================================
# Sending
# =============================================================================


class TestSendFile:
    """Tests for the upload, complete, offer sequence."""

    @pytest.mark.asyncio
    async def test_ten_thousand_bytes_in_three_chunks(self, transport, notifications, downloads, tmp_path):
        """A 10000-byte file goes out as 4096 + 4096 + 1808, then complete, then offer."""
        path = tmp_path / "report.pdf"
        path.write_bytes(bytes(i % 256 for i in range(10000)))
        engine = await make_engine(transport, notifications, downloads)

        assert await engine.send_file(path, to_username="bob") is True

        sent = sent_file_messages(transport)
        assert [m.type for m in sent] == [
            "fileUpload",
            "fileUpload",
            "fileUpload",
            "fileUploadComplete",
            "fileOffer",
        ]
        chunks = sent[:3]
        assert [len(m.data) for m in chunks] == [4096, 4096, 1808]
        assert [m.chunk_index for m in chunks] == [0, 1, 2]
        assert all(m.total_chunks == 3 for m in chunks)
        assert b"".join(m.data for m in chunks) == path.read_bytes()
        assert len({m.file_id for m in sent}) == 1

        offer = sent[-1]
        assert offer.to_username == "bob"
        assert offer.file_info.to_username == "bob"
        assert offer.file_info.file_size == 10000
        assert offer.file_info.content_type == "application/pdf"

    @pytest.mark.asyncio
    async def test_progress_after_each_chunk(self, transport, notifications, downloads, tmp_path):
        path = tmp_path / "a.bin"
        path.write_bytes(b"z" * 10000)
        engine = await make_engine(transport, notifications, downloads)

        await engine.send_file(path)

        progress = [n for n in notifications.drain() if n.kind == NotificationKind.PROGRESS]
        assert [(n.current, n.total) for n in progress] == [(1, 3), (2, 3), (3, 3)]
        assert progress[-1].text.endswith("100.0%")

    @pytest.mark.asyncio
    async def test_room_target_and_auto_accept(self, transport, notifications, downloads, tmp_path):
        path = tmp_path / "a.txt"
        path.write_bytes(b"hi")
        engine = await make_engine(transport, notifications, downloads)

        await engine.send_file(path, auto_accept=True, room_id=ROOM_ID)

        offer = sent_file_messages(transport)[-1]
        assert offer.type == "fileOfferAuto"
        assert offer.to_username == f"room:{ROOM_ID}"

    @pytest.mark.asyncio
    async def test_broadcast_target_is_empty(self, transport, notifications, downloads, tmp_path):
        path = tmp_path / "a.txt"
        path.write_bytes(b"hi")
        engine = await make_engine(transport, notifications, downloads)

        await engine.send_file(path)

        assert sent_file_messages(transport)[-1].to_username == ""

    @pytest.mark.asyncio
    async def test_not_connected(self, transport, notifications, downloads, tmp_path):
        path = tmp_path / "a.txt"
        path.write_bytes(b"hi")
        engine = await make_engine(transport, notifications, downloads, connect=False)

        assert await engine.send_file(path) is False

        assert notifications.statuses() == ["Not connected to server. Use /connect first."]

    @pytest.mark.asyncio
    async def test_missing_file(self, transport, notifications, downloads, tmp_path):
        """One notification, nothing sent."""
        engine = await make_engine(transport, notifications, downloads)
        missing = tmp_path / "missing.txt"

        assert await engine.send_file(missing) is False

        assert notifications.statuses() == [f"File not found: {missing}"]
        assert sent_file_messages(transport) == []

    @pytest.mark.asyncio
    async def test_access_denied(self, transport, notifications, downloads):
        engine = await make_engine(transport, notifications, downloads)
        engine.storage.upload_file = AsyncMock(side_effect=PermissionError("denied"))

        assert await engine.send_file("secret.txt") is False

        assert notifications.statuses() == ["Access denied: secret.txt"]

    @pytest.mark.asyncio
    async def test_accept_and_reject_send_messages(self, transport, notifications, downloads):
        engine = await make_engine(transport, notifications, downloads)

        await engine.accept("f1")
        await engine.reject("f2")

        sent = sent_file_messages(transport)
        assert [(m.type, m.file_id) for m in sent] == [("fileAccept", "f1"), ("fileReject", "f2")]


# =============================================================================
# Receiving
# =============================================================================


class TestReceiveOffers:
    """Tests for offers, accepts, rejects and errors."""

    @pytest.mark.asyncio
    async def test_offer_registers_and_notifies(self, transport, notifications, downloads):
        engine = await make_engine(transport, notifications, downloads)

        await engine.process(
            FileTransferMessage.create(FileMessageType.FILE_OFFER, "f1", file_info=_info())
        )

        assert engine.registry["f1"].file_name == "x.txt"
        offers = [n for n in notifications.drain() if n.kind == NotificationKind.FILE_OFFER]
        assert len(offers) == 1
        assert offers[0].file_id == "f1"
        assert offers[0].level == "info"

    @pytest.mark.asyncio
    async def test_auto_offer_registers(self, transport, notifications, downloads):
        engine = await make_engine(transport, notifications, downloads)

        await engine.process(
            FileTransferMessage.create(FileMessageType.FILE_OFFER_AUTO, "f1", file_info=_info())
        )

        assert "f1" in engine.registry
        offers = [n for n in notifications.drain() if n.kind == NotificationKind.FILE_OFFER]
        assert offers[0].level == "auto"

    @pytest.mark.asyncio
    async def test_accept_for_untracked_file_is_reported(self, transport, notifications, downloads):
        engine = await make_engine(transport, notifications, downloads)

        await engine.process(
            FileTransferMessage.create(FileMessageType.FILE_ACCEPT, "unknown", from_username="bob")
        )
        await engine.process(
            FileTransferMessage.create(FileMessageType.FILE_REJECT, "unknown", from_username="carol")
        )

        assert notifications.statuses() == ["File accepted by bob", "File rejected by carol"]
        assert len(engine.registry) == 0

    @pytest.mark.asyncio
    async def test_error_removes_entry(self, transport, notifications, downloads):
        engine = await make_engine(transport, notifications, downloads)
        await engine.process(FileTransferMessage.create(FileMessageType.FILE_OFFER, "f1", file_info=_info()))
        notifications.drain()

        await engine.process(FileTransferMessage.create(FileMessageType.FILE_ERROR, "f1"))

        assert "f1" not in engine.registry
        assert notifications.statuses() == ["File transfer error: x.txt"]

    @pytest.mark.asyncio
    async def test_unknown_type_is_logged(self, transport, notifications, downloads, caplog):
        engine = await make_engine(transport, notifications, downloads)

        with caplog.at_level(logging.WARNING):
            await engine.process(FileTransferMessage.create("fileTeleport", "f1"))

        assert "fileTeleport" in caplog.text
        assert notifications.drain() == []


class TestReceiveData:
    """Tests for incoming chunks."""

    @pytest.mark.asyncio
    async def test_data_before_offer_auto_downloads(self, transport, notifications, downloads):
        """Data for an untracked id registers it from the embedded info."""
        engine = await make_engine(transport, notifications, downloads)

        await engine.process(_data("f9", b"hello", info=_info("f9", "x.txt", 5, "alice")))

        assert engine.registry["f9"].file_name == "x.txt"
        statuses = notifications.statuses()
        assert any("auto-downloading" in s.lower() and "x.txt" in s for s in statuses)
        assert (downloads / "alice" / "x.txt").read_bytes() == b"hello"

    @pytest.mark.asyncio
    async def test_chunks_append_and_report_progress(self, transport, notifications, downloads):
        engine = await make_engine(transport, notifications, downloads)
        await engine.process(FileTransferMessage.create(FileMessageType.FILE_OFFER, "f1", file_info=_info()))
        notifications.drain()

        await engine.process(_data("f1", b"abc", index=0, total=2))
        await engine.process(_data("f1", b"de", index=1, total=2))

        assert (downloads / "bob" / "x.txt").read_bytes() == b"abcde"
        progress = [n for n in notifications.drain() if n.kind == NotificationKind.PROGRESS]
        assert [(n.current, n.total) for n in progress] == [(1, 2), (2, 2)]
        assert progress[0].text == "Chunk 1/2 saved"

    @pytest.mark.asyncio
    async def test_first_chunk_replaces_stale_file(self, transport, notifications, downloads):
        (downloads / "bob").mkdir(parents=True)
        (downloads / "bob" / "x.txt").write_bytes(b"stale data from an old transfer")
        engine = await make_engine(transport, notifications, downloads)

        await engine.process(_data("f1", b"fresh", info=_info()))

        assert (downloads / "bob" / "x.txt").read_bytes() == b"fresh"

    @pytest.mark.asyncio
    async def test_data_for_unknown_file_without_info(self, transport, notifications, downloads):
        engine = await make_engine(transport, notifications, downloads)

        await engine.process(_data("ghost", b"data"))

        assert "ghost" not in engine.registry
        assert not downloads.exists()

    @pytest.mark.asyncio
    async def test_storage_failure_is_reported(self, transport, notifications, downloads):
        """A failing write is reported and does not raise out of process()."""
        engine = await make_engine(transport, notifications, downloads)
        engine.storage.save_file = AsyncMock(side_effect=OSError("disk full"))

        await engine.process(_data("f1", b"data", info=_info()))

        statuses = notifications.statuses()
        assert statuses[-1] == "Error processing file transfer: disk full"


class TestReceiveComplete:
    """Tests for completion and size verification."""

    @pytest.mark.asyncio
    async def test_size_mismatch_warns(self, transport, notifications, downloads):
        """On-disk 1807 bytes against a declared 1808 gives a warning, not a crash."""
        engine = await make_engine(transport, notifications, downloads)
        info = _info("f1", "x.txt", 1808)
        await engine.process(_data("f1", b"a" * 1807, info=info))
        notifications.drain()

        await engine.process(FileTransferMessage.create(FileMessageType.FILE_COMPLETE, "f1", file_info=info))

        warnings = [n for n in notifications.drain() if n.level == "warning"]
        assert len(warnings) == 1
        assert "Size mismatch" in warnings[0].text
        assert "1,808" in warnings[0].text
        assert "1,807" in warnings[0].text
        assert "f1" not in engine.registry

    @pytest.mark.asyncio
    async def test_matching_size_is_verified(self, transport, notifications, downloads):
        engine = await make_engine(transport, notifications, downloads)
        await engine.process(_data("f1", b"hello", info=_info("f1", "x.txt", 5)))
        notifications.drain()

        await engine.process(FileTransferMessage.create(FileMessageType.FILE_COMPLETE, "f1"))

        statuses = notifications.statuses()
        assert any("integrity verified" in s for s in statuses)
        assert "f1" not in engine.registry

    @pytest.mark.asyncio
    async def test_missing_file_on_complete(self, transport, notifications, downloads):
        engine = await make_engine(transport, notifications, downloads)
        await engine.process(FileTransferMessage.create(FileMessageType.FILE_OFFER, "f1", file_info=_info()))
        notifications.drain()

        await engine.process(FileTransferMessage.create(FileMessageType.FILE_COMPLETE, "f1"))

        warnings = [n for n in notifications.drain() if n.level == "warning"]
        assert len(warnings) == 1
        assert "missing" in warnings[0].text
        assert "f1" not in engine.registry

    @pytest.mark.asyncio
    async def test_complete_for_untracked_file_is_ignored(self, transport, notifications, downloads):
        engine = await make_engine(transport, notifications, downloads)

        await engine.process(FileTransferMessage.create(FileMessageType.FILE_COMPLETE, "nope"))

        assert notifications.drain() == []

    @pytest.mark.asyncio
    async def test_registry_is_read_only(self, transport, notifications, downloads):
        engine = await make_engine(transport, notifications, downloads)

        with pytest.raises(TypeError):
            engine.registry["x"] = _info()  # type: ignore[index]
