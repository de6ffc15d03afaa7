"""Command dispatcher.

Maps a ParsedCommand to one protocol action. Commands are looked up by
lowercase name or alias and routed to a `_handle_<name>` method. Each
handler checks its own arguments; on a usage mistake it publishes the usage
lines and sends nothing.

User mistakes never raise. Transport failures (ConnectionError, OSError)
propagate to the caller.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .parser import CommandParser, ParsedCommand

if TYPE_CHECKING:
    from ..client import ChatClient

logger = logging.getLogger(__name__)


def is_room_id(value: str) -> bool:
    """Room ids are UUIDs; anything else is taken as a username.

    A username that happens to look like a UUID is treated as a room.
    """
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


# =============================================================================
# Command Registry
# =============================================================================


@dataclass(frozen=True)
class CommandSpec:
    """A registered command with its help text."""

    name: str
    description: str
    usage: tuple[str, ...] = ()
    aliases: tuple[str, ...] = field(default=())


COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec("connect", "Connect to the server", ("Usage: /connect [url]",)),
    CommandSpec("disconnect", "Disconnect from the server"),
    CommandSpec("username", "Set your username", ("Usage: /username <name>",)),
    CommandSpec("users", "List connected users"),
    CommandSpec("help", "Show available commands", aliases=("?",)),
    CommandSpec(
        "send",
        "Send a file to everyone, a user, or a room",
        (
            "Usage: /send [-a] <file path> [username|roomId]",
            "Examples:",
            "  /send report.pdf                 offer to everyone",
            "  /send report.pdf alice           offer to alice",
            "  /send report.pdf <roomId>        offer to a room",
            "  /send -a report.pdf alice        auto-accept offer",
        ),
    ),
    CommandSpec("accept", "Accept a file offer", ("Usage: /accept <fileId>",)),
    CommandSpec("reject", "Reject a file offer", ("Usage: /reject <fileId>",)),
    CommandSpec(
        "msg",
        "Send a private message",
        (
            "Usage: /msg <username> <message>",
            "Example: /msg alice Hello there!",
            "Aliases: /pm, /private, /privatemessage",
        ),
        aliases=("pm", "private", "privatemessage"),
    ),
    CommandSpec(
        "create",
        "Create a room",
        (
            "Usage: /create <room name> [description] [-private|-p] [-password <password>]",
            'Example: /create "Study Group" "Weekly sync" -private -password secret',
        ),
        aliases=("createroom",),
    ),
    CommandSpec(
        "join",
        "Join a room",
        (
            "Usage: /join <roomId> [password]",
            "Example: /join 3fa85f64-5717-4562-b3fc-2c963f66afa6",
        ),
        aliases=("joinroom",),
    ),
    CommandSpec("leave", "Leave a room (default: current room)", aliases=("leaveroom",)),
    CommandSpec("rooms", "List rooms", aliases=("listrooms",)),
    CommandSpec("members", "List room members (default: current room)", aliases=("roommembers",)),
    CommandSpec("invite", "Invite a user to a room", ("Usage: /invite <roomId> <username>",)),
    CommandSpec("kick", "Kick a user from a room", ("Usage: /kick <roomId> <username>",)),
    CommandSpec(
        "room",
        "Send a message to a room",
        (
            "Usage: /room <roomId> <message>",
            "   or: /room <message>   (current room)",
            "Example: /room 3fa85f64-5717-4562-b3fc-2c963f66afa6 Hello room!",
        ),
    ),
)


class CommandRegistry:
    """Lookup of commands by name or alias."""

    def __init__(self, commands: tuple[CommandSpec, ...] = COMMANDS):
        self.commands = commands
        self._by_name: dict[str, CommandSpec] = {}
        for spec in commands:
            self._by_name[spec.name] = spec
            for alias in spec.aliases:
                self._by_name[alias] = spec

    def get(self, name: str) -> CommandSpec | None:
        return self._by_name.get(name.lower())

    def help_lines(self) -> list[str]:
        lines = ["Available commands:"]
        for spec in self.commands:
            names = "/" + ", /".join((spec.name, *spec.aliases))
            lines.append(f"  {names} - {spec.description}")
        lines.append("Plain text is sent to the current room, or to everyone if you are not in one.")
        return lines


# =============================================================================
# Command Dispatcher
# =============================================================================


class CommandDispatcher:
    """Routes parsed commands to client actions."""

    def __init__(
        self,
        client: ChatClient,
        parser: CommandParser | None = None,
        registry: CommandRegistry | None = None,
    ):
        self.client = client
        self.parser = parser or CommandParser()
        self.registry = registry or CommandRegistry()

    @property
    def notifications(self):
        return self.client.notifications

    async def handle_input(self, text: str) -> None:
        """Parse and dispatch one line of console input."""
        parsed = self.parser.parse(text)
        if not parsed.is_valid:
            self.notifications.status(f"Invalid command: {parsed.error_message}")
            return
        await self.dispatch(parsed)

    async def dispatch(self, command: ParsedCommand) -> None:
        spec = self.registry.get(command.command)
        if spec is None:
            self.notifications.status(
                f"Unknown command: /{command.command}. Type /help for available commands."
            )
            return

        logger.debug(f"Dispatching /{spec.name} ({len(command.arguments)} args)")
        handler = getattr(self, f"_handle_{spec.name}")
        await handler(command, spec)

    def _usage(self, spec: CommandSpec) -> None:
        for line in spec.usage:
            self.notifications.status(line)

    # -------------------------------------------------------------------------
    # Connection and users
    # -------------------------------------------------------------------------

    async def _handle_connect(self, command: ParsedCommand, spec: CommandSpec) -> None:
        url = command.arguments[0] if command.arguments else self.client.config.server_url
        await self.client.connect(url)

    async def _handle_disconnect(self, command: ParsedCommand, spec: CommandSpec) -> None:
        await self.client.disconnect()

    async def _handle_username(self, command: ParsedCommand, spec: CommandSpec) -> None:
        if not command.arguments:
            self._usage(spec)
            return
        await self.client.chat.set_username(" ".join(command.arguments))

    async def _handle_users(self, command: ParsedCommand, spec: CommandSpec) -> None:
        await self.client.chat.list_users()

    async def _handle_help(self, command: ParsedCommand, spec: CommandSpec) -> None:
        for line in self.registry.help_lines():
            self.notifications.status(line)

    # -------------------------------------------------------------------------
    # Files
    # -------------------------------------------------------------------------

    async def _handle_send(self, command: ParsedCommand, spec: CommandSpec) -> None:
        if not command.arguments:
            self._usage(spec)
            return

        path = command.arguments[0]
        to_username: str | None = None
        room_id: str | None = None
        if len(command.arguments) > 1:
            target = command.arguments[1]
            if is_room_id(target):
                room_id = target
            else:
                to_username = target

        await self.client.files.send_file(
            path,
            to_username=to_username,
            auto_accept=command.has_option("a"),
            room_id=room_id,
        )

    async def _handle_accept(self, command: ParsedCommand, spec: CommandSpec) -> None:
        if not command.arguments:
            self._usage(spec)
            return
        await self.client.files.accept(command.arguments[0])

    async def _handle_reject(self, command: ParsedCommand, spec: CommandSpec) -> None:
        if not command.arguments:
            self._usage(spec)
            return
        await self.client.files.reject(command.arguments[0])

    # -------------------------------------------------------------------------
    # Messages and rooms
    # -------------------------------------------------------------------------

    async def _handle_msg(self, command: ParsedCommand, spec: CommandSpec) -> None:
        if len(command.arguments) < 2:
            self._usage(spec)
            return
        to_username, *words = command.arguments
        await self.client.chat.send_private_message(to_username, " ".join(words))

    async def _handle_create(self, command: ParsedCommand, spec: CommandSpec) -> None:
        if not command.arguments:
            self._usage(spec)
            return
        await self.client.chat.create_room(
            command.arguments[0],
            description=command.arguments[1] if len(command.arguments) > 1 else "",
            is_private=command.has_option("private", "p"),
            password=command.option_value("password"),
        )

    async def _handle_join(self, command: ParsedCommand, spec: CommandSpec) -> None:
        if not command.arguments:
            self._usage(spec)
            return
        password = command.arguments[1] if len(command.arguments) > 1 else None
        await self.client.chat.join_room(command.arguments[0], password)

    async def _handle_leave(self, command: ParsedCommand, spec: CommandSpec) -> None:
        room_id = command.arguments[0] if command.arguments else None
        await self.client.chat.leave_room(room_id)

    async def _handle_rooms(self, command: ParsedCommand, spec: CommandSpec) -> None:
        await self.client.chat.list_rooms()

    async def _handle_members(self, command: ParsedCommand, spec: CommandSpec) -> None:
        room_id = command.arguments[0] if command.arguments else None
        await self.client.chat.list_room_members(room_id)

    async def _handle_invite(self, command: ParsedCommand, spec: CommandSpec) -> None:
        if len(command.arguments) < 2:
            self._usage(spec)
            return
        await self.client.chat.invite_to_room(command.arguments[0], command.arguments[1])

    async def _handle_kick(self, command: ParsedCommand, spec: CommandSpec) -> None:
        if len(command.arguments) < 2:
            self._usage(spec)
            return
        await self.client.chat.kick_from_room(command.arguments[0], command.arguments[1])

    async def _handle_room(self, command: ParsedCommand, spec: CommandSpec) -> None:
        current = self.client.session.current_room
        if len(command.arguments) >= 2:
            room_id, *words = command.arguments
            await self.client.chat.send_room_message(room_id, " ".join(words))
        elif len(command.arguments) == 1 and current:
            await self.client.chat.send_room_message(current, command.arguments[0])
        else:
            self._usage(spec)
            if current:
                self.notifications.status(f"Current room: {current}")
