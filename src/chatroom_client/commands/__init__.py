"""Slash command parsing and dispatch."""

from .dispatcher import COMMANDS, CommandDispatcher, CommandRegistry, CommandSpec, is_room_id
from .parser import CommandParser, ParsedCommand, split_words

__all__ = [
    "COMMANDS",
    "CommandDispatcher",
    "CommandParser",
    "CommandRegistry",
    "CommandSpec",
    "ParsedCommand",
    "is_room_id",
    "split_words",
]
