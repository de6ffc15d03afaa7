"""Slash command parsing.

    /send -a "my report.pdf" alice
      -> command="send", arguments=["my report.pdf", "alice"], options={"a": True}

Rules:
- Input must start with "/"; the command name is lowercased.
- Double quotes group words; the quotes themselves are dropped.
- "-key" is a boolean flag, except "-password <value>" which takes a value.
"""

from __future__ import annotations

from dataclasses import dataclass, field

COMMAND_PREFIX = "/"
OPTION_PREFIX = "-"

# Options that consume the following word as their value
VALUE_OPTIONS = frozenset({"password"})


@dataclass
class ParsedCommand:
    """A parsed slash command from user input."""

    command: str = ""
    arguments: list[str] = field(default_factory=list)
    options: dict[str, bool | str] = field(default_factory=dict)
    is_valid: bool = True
    error_message: str = ""

    @classmethod
    def invalid(cls, error_message: str) -> ParsedCommand:
        return cls(is_valid=False, error_message=error_message)

    def has_option(self, *names: str) -> bool:
        return any(name in self.options for name in names)

    def option_value(self, name: str) -> str | None:
        value = self.options.get(name)
        return value if isinstance(value, str) else None


def split_words(text: str) -> list[str]:
    """Split on spaces, keeping double-quoted runs together."""
    words: list[str] = []
    current: list[str] = []
    in_quotes = False

    for char in text:
        if char == '"':
            in_quotes = not in_quotes
        elif char == " " and not in_quotes:
            if current:
                words.append("".join(current))
                current = []
        else:
            current.append(char)

    if current:
        words.append("".join(current))
    return words


class CommandParser:
    """Parses console input into ParsedCommand."""

    def parse(self, text: str) -> ParsedCommand:
        if not text or not text.strip() or not text.startswith(COMMAND_PREFIX):
            return ParsedCommand.invalid(f"Commands must start with '{COMMAND_PREFIX}'.")

        words = split_words(text[len(COMMAND_PREFIX) :])
        if not words:
            return ParsedCommand.invalid("Empty command.")

        arguments: list[str] = []
        options: dict[str, bool | str] = {}

        i = 1
        while i < len(words):
            word = words[i]
            if word.startswith(OPTION_PREFIX):
                key = word.lstrip(OPTION_PREFIX)
                has_value = i + 1 < len(words) and not words[i + 1].startswith(OPTION_PREFIX)
                if has_value and key.lower() in VALUE_OPTIONS:
                    options[key.lower()] = words[i + 1]
                    i += 1
                else:
                    options[key] = True
            else:
                arguments.append(word)
            i += 1

        return ParsedCommand(command=words[0].lower(), arguments=arguments, options=options)
