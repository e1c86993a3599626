"""Slash-command invocation parsing.

Syntax: ``/<name> [positional...] [key=value...]``. Tokens are separated by
whitespace, double quotes preserve embedded whitespace and a backslash escapes
the next character inside or outside quotes. A token is named when it
contains an ``=`` that is neither quoted nor escaped and the text before it
is a valid argument name.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from deepcmd.commands.types import is_valid_name
from deepcmd.errors import InvocationSyntaxError

COMMAND_MARKER = "/"


@dataclass(frozen=True)
class CommandInvocation:
    """Parsed representation of one user-typed command line."""

    command_name: str
    """Command name without the leading slash."""

    named_args: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    """``key=value`` arguments; for repeated keys the last value wins."""

    positional_args: tuple[str, ...] = ()
    """Remaining arguments, in order."""

    raw_text: str = ""
    """The original input."""


@dataclass
class _Token:
    text: str = ""
    separator: int | None = None
    """Index of the first literal ``=`` in ``text``, if any."""


def is_slash_command(text: str) -> bool:
    """Check whether text looks like a slash-command invocation."""
    stripped = text.strip()
    return len(stripped) > 1 and stripped.startswith(COMMAND_MARKER) and not stripped[1].isspace()


def tokenize(text: str, source: str | None = None) -> list[_Token]:
    tokens: list[_Token] = []
    current: list[str] = []
    separator: int | None = None
    in_quotes = False
    escape_next = False
    started = False

    for ch in text:
        if escape_next:
            current.append(ch)
            escape_next = False
        elif ch == "\\":
            escape_next = True
            started = True
        elif ch == '"':
            in_quotes = not in_quotes
            started = True
        elif ch.isspace() and not in_quotes:
            if started:
                tokens.append(_Token("".join(current), separator))
                current, separator, started = [], None, False
        else:
            if ch == "=" and not in_quotes and separator is None:
                separator = len(current)
            current.append(ch)
            started = True

    if in_quotes:
        raise InvocationSyntaxError("Unclosed quotes in command", source or text)
    if escape_next:
        raise InvocationSyntaxError("Trailing escape character", source or text)
    if started:
        tokens.append(_Token("".join(current), separator))
    return tokens


def parse_invocation(text: str) -> CommandInvocation:
    """Parse raw slash-command text into a CommandInvocation.

    Args:
        text: Raw input such as ``/greet Alice greeting="good morning"``.

    Returns:
        The parsed invocation.

    Raises:
        InvocationSyntaxError: If the marker or name is missing or invalid, a
            quote is left open, or the input ends with an escape.
    """
    stripped = text.strip()
    if not stripped.startswith(COMMAND_MARKER):
        raise InvocationSyntaxError(f"Command must start with '{COMMAND_MARKER}'", text)

    tokens = tokenize(stripped[len(COMMAND_MARKER) :], source=text)
    if not tokens or not tokens[0].text:
        raise InvocationSyntaxError("Command name cannot be empty", text)

    command_name = tokens[0].text
    if tokens[0].separator is not None or not is_valid_name(command_name):
        raise InvocationSyntaxError(
            f"Invalid command name '{command_name}': must contain only alphanumeric characters, '-', or '_'",
            text,
        )

    named: dict[str, str] = {}
    positional: list[str] = []
    for token in tokens[1:]:
        if token.separator is not None:
            key = token.text[: token.separator]
            if is_valid_name(key):
                named[key] = token.text[token.separator + 1 :]
                continue
        positional.append(token.text)

    return CommandInvocation(
        command_name=command_name,
        named_args=MappingProxyType(named),
        positional_args=tuple(positional),
        raw_text=text,
    )
