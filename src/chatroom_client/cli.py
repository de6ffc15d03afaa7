"""Chatroom console client.

Usage:
    chatroom-client                              # Connect to ws://localhost:5106/ws
    chatroom-client --url ws://host:5106/ws      # Custom server
    chatroom-client --config chatroom.yaml       # Settings from YAML
    chatroom-client --no-connect                 # Start offline, use /connect

Lines starting with "/" are commands (/help lists them). Any other line is
sent to the current room, or to everyone when not in a room. /quit exits.

Logging goes to stderr so it never mixes with chat output on stdout.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import threading
from typing import TextIO

import click

from .client import ChatClient
from .config import ConfigError, load_config
from .notifications import Notification, NotificationKind
from .protocol import ChatMessage, ChatMessageType

logger = logging.getLogger(__name__)

QUIT_COMMANDS = frozenset({"/quit", "/exit"})

_LEVEL_COLORS = {
    "error": "red",
    "warning": "yellow",
    "auto": "cyan",
}


def format_notification(notification: Notification) -> str:
    """Render a notification as one console line."""
    if notification.kind == NotificationKind.MESSAGE and notification.chat_message is not None:
        return _format_chat(notification.chat_message)

    if notification.kind == NotificationKind.FILE_OFFER and notification.file_info is not None:
        info = notification.file_info
        sender = info.from_username or "unknown"
        if notification.level == "auto":
            return f"Receiving {info.file_name} ({info.file_size:,} bytes) from {sender}"
        return (
            f"{sender} offers {info.file_name} ({info.file_size:,} bytes). "
            f"Use /accept {info.id} or /reject {info.id}"
        )

    if notification.kind == NotificationKind.PROGRESS and notification.percent is not None:
        return f"{notification.text} [{notification.percent:.1f}%]"

    return notification.text


def _format_chat(message: ChatMessage) -> str:
    time = message.timestamp.astimezone().strftime("%H:%M:%S")

    if message.type == ChatMessageType.SYSTEM.value:
        return f"[{time}] * {message.message}"
    if message.type == ChatMessageType.PRIVATE_MESSAGE.value:
        return f"[{time}] (private) {message.username}: {message.message}"
    if message.room_id:
        return f"[{time}] [{message.room_id}] {message.username}: {message.message}"
    if message.username:
        return f"[{time}] {message.username}: {message.message}"
    return f"[{time}] {message.message}"


async def render_notifications(client: ChatClient) -> None:
    """Print notifications as they arrive."""
    async for notification in client.notifications.stream():
        line = format_notification(notification)
        if not line:
            continue
        color = _LEVEL_COLORS.get(notification.level)
        click.echo(click.style(line, fg=color) if color else line)


class StdinReader:
    """Reads console lines on a daemon thread and hands them to the event loop.

    A pending readline on a daemon thread does not hold up interpreter exit,
    so Ctrl-C shuts down without waiting for Enter.
    """

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream or sys.stdin
        self._lines: asyncio.Queue[str | None] = asyncio.Queue()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._thread = threading.Thread(target=self._run, args=(loop,), name="stdin-reader", daemon=True)
        self._thread.start()

    async def readline(self) -> str | None:
        """Next line, or None at end of input."""
        return await self._lines.get()

    def _run(self, loop: asyncio.AbstractEventLoop) -> None:
        while True:
            try:
                line = self._stream.readline()
            except ValueError:
                # Stream closed underneath us
                line = ""
            try:
                loop.call_soon_threadsafe(self._lines.put_nowait, line or None)
            except RuntimeError:
                # Event loop already closed
                return
            if not line:
                return


async def run_console(client: ChatClient, connect: bool = True) -> None:
    """Run the interactive console until /quit or end of input."""
    renderer = asyncio.create_task(render_notifications(client))
    reader = StdinReader()
    reader.start()
    try:
        if connect:
            await client.connect()
        else:
            client.notifications.status("Not connected. Use /connect [url] to connect.")

        while True:
            line = await reader.readline()
            if line is None:
                break
            line = line.strip()
            if line.lower() in QUIT_COMMANDS:
                break
            try:
                await client.handle_input(line)
            except (ConnectionError, OSError) as e:
                logger.error(f"Send failed: {e}")
                client.notifications.status(f"Send failed: {e}", level="error")
    finally:
        await client.disconnect()
        # Let the renderer print what is still queued
        await asyncio.sleep(0)
        for notification in client.notifications.drain():
            click.echo(format_notification(notification))
        renderer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await renderer


@click.command()
@click.option("--url", help="Server websocket URL (default: ws://localhost:5106/ws)")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a YAML config file",
)
@click.option("--downloads", "downloads_dir", help="Directory for received files")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level for stderr output",
)
@click.option("--no-connect", is_flag=True, help="Start without connecting")
def main(
    url: str | None,
    config_path: str | None,
    downloads_dir: str | None,
    log_level: str | None,
    no_connect: bool,
) -> None:
    """Chatroom client - group chat and file transfer from the terminal."""
    try:
        config = load_config(config_path).merged(
            server_url=url,
            downloads_dir=downloads_dir,
            log_level=log_level,
        )
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    logger.info(f"Starting client for {config.server_url}")

    client = ChatClient(config)
    try:
        asyncio.run(run_console(client, connect=not no_connect))
    except KeyboardInterrupt:
        click.echo("\nShutting down...", err=True)


if __name__ == "__main__":
    main()
