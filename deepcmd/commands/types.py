"""Type definitions for slash commands.

This module defines the immutable descriptor produced by the parser and the
small enumerations used to classify commands, arguments and their origin.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def is_valid_name(name: str) -> bool:
    """Check that a command, alias or argument name uses only letters, digits, '-' and '_'."""
    return bool(name) and NAME_PATTERN.match(name) is not None


class CommandCategory(str, Enum):
    """Closed set of command categories."""

    ANALYSIS = "analysis"
    REFACTORING = "refactoring"
    DOCUMENTATION = "documentation"
    TESTING = "testing"
    AGENTS = "agents"
    CUSTOM = "custom"
    """Fallback bucket for any free-form category."""

    @classmethod
    def normalize(cls, value: str) -> CommandCategory:
        """Map a free-form category string onto the closed set.

        Args:
            value: Category as written in the definition file.

        Returns:
            The matching category, or ``CUSTOM`` when nothing matches.
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.CUSTOM


class ArgumentType(str, Enum):
    """Declared type hint for a command argument."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    FILE = "file"


class CommandKind(str, Enum):
    """How the executor handles a command."""

    TEMPLATE = "template"
    """Pure template expansion into a prompt."""

    AGENT_PINNED = "agent_pinned"
    """Dispatched to the agent named by ``agent_id``."""

    AGENT_ROUTED = "agent_routed"
    """Dispatched to the best-scoring registered agent."""


class CommandSource(str, Enum):
    """Where a command descriptor came from."""

    BUILTIN = "builtin"
    USER = "user"


@dataclass(frozen=True)
class ArgumentSpec:
    """Declared parameter of a command."""

    name: str
    """Argument name, used as ``args.<name>`` in templates."""

    required: bool = False
    """Whether the invocation must supply a value."""

    default: str | None = None
    """Value used when the invocation leaves the argument unset."""

    type_hint: ArgumentType = ArgumentType.STRING
    """Declared type; values are validated against it during mapping."""

    description: str = ""
    """Human-readable description for help output."""


@dataclass(frozen=True)
class CommandPermissions:
    """Capabilities a command allows the agent it dispatches to."""

    read_files: bool = False
    write_files: bool = False
    execute_shell: bool = False
    network: bool = False


@dataclass(frozen=True)
class CommandDescriptor:
    """Validated, immutable in-memory representation of a command definition."""

    name: str
    """Unique key (used as /name)."""

    description: str
    """What the command does."""

    category: CommandCategory
    """Category from the closed set."""

    template_body: str
    """Raw template text, rendered by the expander."""

    arguments: tuple[ArgumentSpec, ...] = ()
    """Declared arguments, in declaration order."""

    permissions: CommandPermissions = field(default_factory=CommandPermissions)
    """Capabilities granted to an agent run on behalf of this command."""

    agent_id: str | None = None
    """Agent this command is pinned to, if any."""

    agent: bool = False
    """Whether the command is agent-backed even without a pinned id."""

    activation_hints: tuple[str, ...] = ()
    """Keywords added to the task intent when scoring agents."""

    aliases: tuple[str, ...] = ()
    """Alternative names resolving to this command."""

    source: CommandSource = CommandSource.USER
    """Whether the command is built in or loaded from a file."""

    path: Path | None = None
    """Definition file, for user commands."""

    @property
    def kind(self) -> CommandKind:
        """Classify the command for the executor."""
        if self.agent_id:
            return CommandKind.AGENT_PINNED
        if self.agent:
            return CommandKind.AGENT_ROUTED
        return CommandKind.TEMPLATE

    @property
    def is_agent_backed(self) -> bool:
        return self.kind is not CommandKind.TEMPLATE

    def get_argument(self, name: str) -> ArgumentSpec | None:
        """Return the declared argument called ``name``, if any."""
        for spec in self.arguments:
            if spec.name == name:
                return spec
        return None

    def summary(self) -> CommandSummary:
        """Build the listing entry shown to consumers."""
        return CommandSummary(
            name=self.name,
            description=self.description,
            category=self.category,
            is_agent_backed=self.is_agent_backed,
            source=self.source,
        )


@dataclass(frozen=True)
class CommandSummary:
    """Metadata returned by ``list_commands`` for palette-style consumers."""

    name: str
    description: str
    category: CommandCategory
    is_agent_backed: bool
    source: CommandSource
