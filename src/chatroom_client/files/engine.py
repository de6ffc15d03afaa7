"""File transfer engine.

Sender side, per file id, one message per step and strictly in order:

    fileUpload (chunk 0..N-1) -> fileUploadComplete -> fileOffer | fileOfferAuto

Receiver side:

    fileOffer / fileOfferAuto   register the file, report the offer
    fileAccept / fileReject     report only (they name the remote user)
    fileData                    register from the embedded info if unseen,
                                write the chunk, report progress
    fileComplete                verify size on disk, always unregister
    fileError                   unregister, report

The incoming registry is touched only by `process`, which runs on the files
receive loop.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from types import MappingProxyType

from ..connection import ConnectionManager
from ..framing import MessageFramer
from ..notifications import NotificationQueue
from ..protocol import (
    FileMessageType,
    FileTransferInfo,
    FileTransferMessage,
    format_target,
)
from ..session import ChatSession
from ..transport import FILES_CHANNEL
from .storage import FileStorage, FileUploadResult

logger = logging.getLogger(__name__)

NOT_CONNECTED = "Not connected to server. Use /connect first."


class FileTransferEngine:
    """Sends files in chunks and reassembles the ones pushed to us."""

    def __init__(
        self,
        connection: ConnectionManager,
        storage: FileStorage,
        notifications: NotificationQueue,
        session: ChatSession | None = None,
    ):
        self.connection = connection
        self.storage = storage
        self.notifications = notifications
        self.session = session or ChatSession()
        self._incoming: dict[str, FileTransferInfo] = {}
        self._framer: MessageFramer[FileTransferMessage] | None = None
        self._handlers: dict[str, Callable[[FileTransferMessage], Awaitable[None]]] = {
            FileMessageType.FILE_OFFER.value: self._handle_offer,
            FileMessageType.FILE_OFFER_AUTO.value: self._handle_offer,
            FileMessageType.FILE_ACCEPT.value: self._handle_accept,
            FileMessageType.FILE_REJECT.value: self._handle_reject,
            FileMessageType.FILE_ERROR.value: self._handle_error,
            FileMessageType.FILE_DATA.value: self._handle_data,
            FileMessageType.FILE_COMPLETE.value: self._handle_complete,
        }

    @property
    def registry(self) -> Mapping[str, FileTransferInfo]:
        """Incoming transfers in flight, by file id (read-only view)."""
        return MappingProxyType(self._incoming)

    def framer(self) -> MessageFramer[FileTransferMessage]:
        """Framer for the current files channel.

        Raises:
            ConnectionError: If not connected
        """
        channel = self.connection.channel(FILES_CHANNEL)
        if self._framer is None or self._framer.channel is not channel:
            self._framer = MessageFramer(channel, FileTransferMessage)
        return self._framer

    async def send(self, message: FileTransferMessage) -> None:
        await self.framer().send(message)

    # =========================================================================
    # Sending
    # =========================================================================

    async def send_file(
        self,
        path: str | Path,
        to_username: str | None = None,
        auto_accept: bool = False,
        room_id: str | None = None,
    ) -> bool:
        """Upload a file and offer it to a user, a room, or everyone.

        Local file problems are reported as notifications and return False.
        Transport failures propagate.
        """
        if not self.connection.is_connected:
            self.notifications.status(NOT_CONNECTED, level="error")
            return False

        try:
            upload = await self.storage.upload_file(path)
        except FileNotFoundError:
            logger.error(f"File not found when sending file: {path}")
            self.notifications.status(f"File not found: {path}", level="error")
            return False
        except PermissionError:
            logger.error(f"Access denied when reading file: {path}")
            self.notifications.status(f"Access denied: {path}", level="error")
            return False
        except (OSError, ValueError) as e:
            logger.exception(f"Error sending file: {path}")
            self.notifications.status(f"Error sending file: {e}", level="error")
            return False

        target = format_target(to_username, room_id)
        await self._upload(upload, target)
        await self._offer(upload, target, auto_accept)

        if room_id:
            described = f"room '{room_id}'"
        elif to_username:
            described = f"user '{to_username}'"
        else:
            described = "everyone"
        prefix = "Auto-accept " if auto_accept else ""
        self.notifications.status(f"{prefix}File offer sent to {described}: {upload.file_name}")
        self.notifications.status(f"File ID: {upload.file_id}")
        return True

    async def _upload(self, upload: FileUploadResult, target: str) -> None:
        info = self._info_for(upload, target)
        self.notifications.status(f"Uploading {upload.file_name} (ID: {upload.file_id})...")

        total = upload.total_chunks
        for index, chunk in enumerate(upload.chunks):
            await self.send(
                FileTransferMessage.create(
                    FileMessageType.FILE_UPLOAD,
                    upload.file_id,
                    file_info=info,
                    data=chunk,
                    chunk_index=index,
                    total_chunks=total,
                )
            )
            percent = (index + 1) / total * 100
            self.notifications.progress(
                upload.file_id,
                index + 1,
                total,
                text=f"Uploading {upload.file_name}: {percent:.1f}%",
            )

        await self.send(
            FileTransferMessage.create(
                FileMessageType.FILE_UPLOAD_COMPLETE,
                upload.file_id,
                file_info=info,
            )
        )
        self.notifications.status(f"Upload complete: {upload.file_name} (ID: {upload.file_id})")

    async def _offer(self, upload: FileUploadResult, target: str, auto_accept: bool) -> None:
        message_type = FileMessageType.FILE_OFFER_AUTO if auto_accept else FileMessageType.FILE_OFFER
        await self.send(
            FileTransferMessage.create(
                message_type,
                upload.file_id,
                file_info=self._info_for(upload, target),
                from_username=self.session.username or None,
                to_username=target,
            )
        )

    @staticmethod
    def _info_for(upload: FileUploadResult, target: str) -> FileTransferInfo:
        return FileTransferInfo(
            id=upload.file_id,
            file_name=upload.file_name,
            file_size=upload.file_size,
            content_type=upload.content_type,
            to_username=target,
        )

    async def accept(self, file_id: str) -> None:
        """Accept an offered file; the server then pushes its data."""
        if not self.connection.is_connected:
            self.notifications.status(NOT_CONNECTED, level="error")
            return
        await self.send(FileTransferMessage.create(FileMessageType.FILE_ACCEPT, file_id))
        self.notifications.status(f"Accepted file: {file_id}")

    async def reject(self, file_id: str) -> None:
        """Decline an offered file."""
        if not self.connection.is_connected:
            self.notifications.status(NOT_CONNECTED, level="error")
            return
        await self.send(FileTransferMessage.create(FileMessageType.FILE_REJECT, file_id))
        self.notifications.status(f"Rejected file: {file_id}")

    # =========================================================================
    # Receiving
    # =========================================================================

    async def process(self, message: FileTransferMessage) -> None:
        """Handle one inbound message. Errors are reported, never raised."""
        logger.debug(f"Processing file message: {message.type} for file {message.file_id}")

        handler = self._handlers.get(message.type)
        if handler is None:
            logger.warning(f"Unknown file transfer message type: {message.type}")
            return

        try:
            await handler(message)
        except Exception as e:
            logger.exception("Error processing file transfer message")
            self.notifications.status(f"Error processing file transfer: {e}", level="error")

    async def _handle_offer(self, message: FileTransferMessage) -> None:
        if message.file_info is None:
            logger.debug(f"Ignoring offer without file info: {message.file_id}")
            return

        info = self._with_sender(message.file_info, message.from_username)
        self._incoming[message.file_id] = info

        auto_accept = message.type == FileMessageType.FILE_OFFER_AUTO.value
        sender = info.from_username or "unknown"
        if auto_accept:
            self.notifications.status(f"Incoming file (auto-accepted): {info.file_name} from {sender}")
        else:
            self.notifications.status(f"File offer received: {info.file_name} from {sender}")
        self.notifications.file_offer(info, auto_accept=auto_accept)

    async def _handle_accept(self, message: FileTransferMessage) -> None:
        self.notifications.status(f"File accepted by {message.from_username}")

    async def _handle_reject(self, message: FileTransferMessage) -> None:
        self.notifications.status(f"File rejected by {message.from_username}")

    async def _handle_error(self, message: FileTransferMessage) -> None:
        info = self._incoming.pop(message.file_id, None)
        name = info.file_name if info else message.file_id
        self.notifications.status(f"File transfer error: {name}", level="error")

    async def _handle_data(self, message: FileTransferMessage) -> None:
        info = self._incoming.get(message.file_id)
        if info is None:
            if message.file_info is None:
                logger.warning(f"Dropping data for unknown file {message.file_id}")
                return
            # Data can arrive before (or without) an offer
            info = self._with_sender(message.file_info, message.from_username)
            self._incoming[message.file_id] = info
            self.notifications.status(
                f"Auto-downloading: {info.file_name} from {info.from_username or 'unknown'}"
            )
        elif message.from_username and info.from_username != message.from_username:
            info = info.model_copy(update={"from_username": message.from_username})
            self._incoming[message.file_id] = info

        if message.data is None:
            return

        await self.storage.save_file(
            info.file_name,
            message.data,
            info.from_username,
            append=message.chunk_index > 0,
        )
        self.notifications.progress(
            message.file_id,
            message.chunk_index + 1,
            message.total_chunks,
            text=f"Chunk {message.chunk_index + 1}/{message.total_chunks} saved",
        )

    async def _handle_complete(self, message: FileTransferMessage) -> None:
        info = self._incoming.get(message.file_id)
        if info is None:
            logger.debug(f"Completion for untracked file {message.file_id}")
            return

        try:
            if message.file_info is not None:
                info = self._with_sender(message.file_info, info.from_username)
            info = self._with_sender(info, message.from_username)
            self._verify(info)
        finally:
            self._incoming.pop(message.file_id, None)

    def _verify(self, info: FileTransferInfo) -> None:
        sender = info.from_username or "unknown"
        file_path = self.storage.get_file_path(info.file_name, info.from_username).resolve()

        if not file_path.is_file():
            self.notifications.status(
                f"WARNING: {info.file_name} from {sender} completed but {file_path} is missing",
                level="warning",
            )
            return

        actual = file_path.stat().st_size
        self.notifications.status(f"File download completed: {info.file_name} from {sender} -> {file_path}")
        if actual == info.file_size:
            self.notifications.status(f"File integrity verified ({actual:,} bytes)")
        else:
            self.notifications.status(
                f"WARNING: Size mismatch for {info.file_name}! Expected {info.file_size:,}, got {actual:,}",
                level="warning",
            )

    @staticmethod
    def _with_sender(info: FileTransferInfo, sender: str | None) -> FileTransferInfo:
        if sender and not info.from_username:
            return info.model_copy(update={"from_username": sender})
        return info
