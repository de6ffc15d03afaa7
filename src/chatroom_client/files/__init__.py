"""Chunked file transfer: local storage and the offer/accept/download engine."""

from .engine import FileTransferEngine
from .storage import (
    CONTENT_TYPES,
    DEFAULT_CHUNK_SIZE,
    FileStorage,
    FileUploadResult,
    content_type_for,
    sanitize_file_name,
    split_chunks,
)

__all__ = [
    "FileTransferEngine",
    "FileStorage",
    "FileUploadResult",
    "CONTENT_TYPES",
    "DEFAULT_CHUNK_SIZE",
    "content_type_for",
    "sanitize_file_name",
    "split_chunks",
]
