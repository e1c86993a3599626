"""Permission model for agents.

Agents declare the capabilities they need; a command that dispatches to an
agent can only narrow them further. Every side-effecting toolkit operation is
checked against the resulting ``AgentPermissions`` first.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from fnmatch import fnmatchcase
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from deepcmd.commands.types import CommandPermissions


class FileAccess(str, Enum):
    """File access mode, from most to least restrictive."""

    NONE = "none"
    READ_ONLY = "read_only"
    READ_WRITE = "read_write"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {FileAccess.NONE: 0, FileAccess.READ_ONLY: 1, FileAccess.READ_WRITE: 2}


def matches_pattern(path: str, pattern: str) -> bool:
    """Match a workspace-relative POSIX path against a glob pattern.

    ``*`` also matches ``/``; a leading ``**/`` additionally matches paths at
    the workspace root, so ``**/*.py`` matches both ``a.py`` and ``pkg/a.py``.
    """
    if fnmatchcase(path, pattern):
        return True
    return pattern.startswith("**/") and fnmatchcase(path, pattern[3:])


@dataclass(frozen=True)
class AgentPermissions:
    """Capability set attached to an agent."""

    file_access: FileAccess = FileAccess.NONE
    """File access mode."""

    allow_patterns: tuple[str, ...] = ("*",)
    """Paths an agent with read-write access may write to."""

    deny_patterns: tuple[str, ...] = ()
    """Paths that may never be read or written."""

    shell_execution: bool = False
    """Whether the agent may run commands."""

    network_access: bool = False
    """Whether the agent may use the network."""

    max_iterations: int = 5
    """Number of toolkit operations allowed in one execution."""

    can_delegate: bool = False
    """Whether the agent may hand work to other agents."""

    def __post_init__(self) -> None:
        if self.max_iterations < 0:
            raise ValueError("max_iterations must not be negative")

    @classmethod
    def read_only(cls, **overrides: object) -> AgentPermissions:
        return cls(file_access=FileAccess.READ_ONLY, **overrides)  # type: ignore[arg-type]

    def _denied(self, path: str) -> bool:
        return any(matches_pattern(path, pattern) for pattern in self.deny_patterns)

    def can_read_file(self, path: str | PurePosixPath) -> bool:
        """Check whether a workspace-relative path may be read."""
        if self.file_access is FileAccess.NONE:
            return False
        return not self._denied(str(PurePosixPath(path)))

    def can_write_file(self, path: str | PurePosixPath) -> bool:
        """Check whether a workspace-relative path may be written."""
        if self.file_access is not FileAccess.READ_WRITE:
            return False
        posix = str(PurePosixPath(path))
        if self._denied(posix):
            return False
        return any(matches_pattern(posix, pattern) for pattern in self.allow_patterns)

    def narrow(self, command_permissions: CommandPermissions) -> AgentPermissions:
        """Intersect these permissions with the ones a command grants.

        Args:
            command_permissions: Permissions declared by the invoking command.

        Returns:
            Permissions that are no broader than either side.
        """
        if command_permissions.write_files:
            granted = FileAccess.READ_WRITE
        elif command_permissions.read_files:
            granted = FileAccess.READ_ONLY
        else:
            granted = FileAccess.NONE
        file_access = granted if granted.rank < self.file_access.rank else self.file_access

        return replace(
            self,
            file_access=file_access,
            shell_execution=self.shell_execution and command_permissions.execute_shell,
            network_access=self.network_access and command_permissions.network,
        )
