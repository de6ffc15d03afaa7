"""Local file storage for uploads and downloads.

Uploads are read whole and split into fixed-size chunks. Downloads land in
one folder per sender under the downloads directory:

    downloads/
        alice/report.pdf
        unknown/notes.txt      # sender not known

Disk access runs in the default executor so the event loop never blocks.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 4096
UNKNOWN_SENDER = "unknown"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES = {
    ".txt": "text/plain",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

_INVALID_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_file_name(name: str) -> str:
    """Replace characters that are not safe in a single path component."""
    cleaned = _INVALID_NAME_CHARS.sub("_", name)
    if cleaned in ("", ".", ".."):
        return "_"
    return cleaned


def content_type_for(path: str | Path) -> str:
    return CONTENT_TYPES.get(Path(path).suffix.lower(), DEFAULT_CONTENT_TYPE)


def split_chunks(data: bytes, chunk_size: int) -> list[bytes]:
    """Split data into chunks of chunk_size; the last one may be shorter."""
    if chunk_size <= 0:
        raise ValueError(f"Chunk size must be positive: {chunk_size}")
    return [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)]


@dataclass
class FileUploadResult:
    """A file read for sending, already split into chunks."""

    file_id: str
    file_name: str
    file_size: int
    content_type: str
    chunks: list[bytes] = field(default_factory=list)

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)


class FileStorage:
    """Reads files to upload and writes received chunks."""

    def __init__(self, downloads_dir: str | Path = "downloads", chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive: {chunk_size}")
        self.downloads_dir = Path(downloads_dir)
        self.chunk_size = chunk_size

    async def upload_file(self, path: str | Path) -> FileUploadResult:
        """Read a file and split it for sending.

        Raises:
            FileNotFoundError: If the file does not exist
            PermissionError: If the file cannot be read
        """
        file_path = Path(path)
        if not file_path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")

        data = await self._run(file_path.read_bytes)
        result = FileUploadResult(
            file_id=str(uuid.uuid4()),
            file_name=file_path.name,
            file_size=len(data),
            content_type=content_type_for(file_path),
            chunks=split_chunks(data, self.chunk_size),
        )
        logger.debug(
            f"Prepared upload {result.file_id}: {result.file_name} "
            f"({result.file_size} bytes, {result.total_chunks} chunks)"
        )
        return result

    def get_download_path(self, sender: str | None = None) -> Path:
        """Folder that receives files from sender."""
        folder = sanitize_file_name(sender) if sender else UNKNOWN_SENDER
        return self.downloads_dir / folder

    def get_file_path(self, file_name: str, sender: str | None = None) -> Path:
        return self.get_download_path(sender) / sanitize_file_name(file_name)

    async def save_file(
        self,
        file_name: str,
        data: bytes,
        sender: str | None = None,
        append: bool = True,
    ) -> Path:
        """Write a chunk to the sender's folder.

        Args:
            file_name: Name as announced by the sender (sanitized here)
            data: Chunk bytes
            sender: Sending username; None files it under "unknown"
            append: Append to an existing file, or start it fresh

        Returns:
            Path of the written file
        """
        file_path = self.get_file_path(file_name, sender)
        await self._run(partial(self._write, file_path, data, append))
        logger.debug(f"File chunk saved: {file_path} ({len(data)} bytes)")
        return file_path

    @staticmethod
    def _write(file_path: Path, data: bytes, append: bool) -> None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "ab" if append else "wb") as f:
            f.write(data)

    @staticmethod
    async def _run(func):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)
