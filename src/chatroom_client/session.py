"""Per-connection session state.

Holds the username and current room. The command path changes them when the
user acts, inbound message handling changes them when the server confirms.
Both go through the methods here; last write wins.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class ChatSession:
    """Username and current room for one client."""

    def __init__(self, username: str = "") -> None:
        self._username = username
        self._current_room: str | None = None

    @property
    def username(self) -> str:
        return self._username

    @property
    def current_room(self) -> str | None:
        return self._current_room

    def set_username(self, username: str) -> None:
        self._username = username

    def enter_room(self, room_id: str) -> None:
        """Make room_id the current room."""
        if self._current_room != room_id:
            logger.info(f"Current room changed from '{self._current_room}' to '{room_id}'")
            self._current_room = room_id

    def leave_room(self, room_id: str | None = None) -> bool:
        """Clear the current room if it is room_id (or unconditionally if None).

        Returns:
            True if the current room was cleared
        """
        if self._current_room is None:
            return False
        if room_id is not None and room_id != self._current_room:
            return False
        logger.info(f"Left current room '{self._current_room}'")
        self._current_room = None
        return True

    def reset(self) -> None:
        """Forget the current room (on disconnect)."""
        self._current_room = None
