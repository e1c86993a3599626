"""Execution context passed to templates and agents.

An ``ExecutionContext`` is built fresh for every execution. Environment
variables are always filtered through an explicit allow-list, so a template
can never see the full process environment.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from deepcmd.config import DEFAULT_ENV_ALLOWLIST

if TYPE_CHECKING:
    from deepcmd.config import Settings

logger = logging.getLogger(__name__)


def collect_safe_env_vars(
    allowlist: Iterable[str], environ: Mapping[str, str] | None = None
) -> dict[str, str]:
    """Filter an environment down to the allow-listed variable names.

    Args:
        allowlist: Variable names that may be exposed.
        environ: Environment to read from. Defaults to ``os.environ``.

    Returns:
        Mapping containing only allow-listed names that are set.
    """
    source = os.environ if environ is None else environ
    return {name: source[name] for name in allowlist if name in source}


@dataclass(frozen=True)
class MessageSummary:
    """One message of a conversation snapshot."""

    role: str
    content: str
    timestamp: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}


@dataclass(frozen=True)
class ConversationSnapshot:
    """Read-only view of the conversation, supplied by the caller."""

    messages: tuple[MessageSummary, ...] = ()
    """Messages in chronological order."""

    conversation_id: str | None = None
    """Identifier of the conversation, if the caller has one."""

    @classmethod
    def from_messages(
        cls, messages: Iterable[MessageSummary | Mapping[str, Any]], conversation_id: str | None = None
    ) -> ConversationSnapshot:
        """Build a snapshot from message objects or ``{role, content, timestamp}`` mappings."""
        converted = tuple(
            message
            if isinstance(message, MessageSummary)
            else MessageSummary(
                role=str(message["role"]),
                content=str(message["content"]),
                timestamp=message.get("timestamp"),
            )
            for message in messages
        )
        return cls(messages=converted, conversation_id=conversation_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "messages": [message.to_dict() for message in self.messages],
        }


@dataclass(frozen=True)
class ExecutionContext:
    """Environmental and conversational data available during one execution."""

    workspace_root: Path
    """Root directory of the workspace."""

    git_diff: str | None = None
    """Diff of the working tree, when available."""

    current_files: tuple[str, ...] = ()
    """Paths the caller considers in focus, in order."""

    conversation: ConversationSnapshot | None = None
    """Conversation snapshot, when the caller supplies one."""

    environment_variables: Mapping[str, str] = field(default_factory=dict)
    """Environment variables visible to templates (always allow-list filtered)."""

    env_allowlist: tuple[str, ...] = DEFAULT_ENV_ALLOWLIST
    """Names permitted in ``environment_variables``."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "workspace_root", Path(self.workspace_root))
        object.__setattr__(self, "current_files", tuple(str(f) for f in self.current_files))
        object.__setattr__(self, "env_allowlist", tuple(self.env_allowlist))
        filtered = collect_safe_env_vars(self.env_allowlist, self.environment_variables)
        object.__setattr__(self, "environment_variables", MappingProxyType(filtered))

    @classmethod
    def from_environment(
        cls,
        workspace_root: Path | None = None,
        *,
        settings: Settings | None = None,
        allowlist: Iterable[str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> ExecutionContext:
        """Build a context from the process environment.

        Args:
            workspace_root: Workspace directory. Defaults to the settings' workspace or cwd.
            settings: Settings providing the workspace and the env allow-list.
            allowlist: Explicit allow-list, overriding the settings.
            environ: Environment to read from. Defaults to ``os.environ``.

        Returns:
            A new ExecutionContext.
        """
        if workspace_root is None:
            workspace_root = settings.workspace_root if settings is not None else Path.cwd()
        if allowlist is None:
            allowlist = settings.env_allowlist if settings is not None else DEFAULT_ENV_ALLOWLIST
        allowlist = tuple(allowlist)
        return cls(
            workspace_root=Path(workspace_root),
            environment_variables=collect_safe_env_vars(allowlist, environ),
            env_allowlist=allowlist,
        )

    def with_git_diff(self, diff: str | None) -> ExecutionContext:
        return replace(self, git_diff=diff)

    def with_files(self, files: Iterable[str | Path]) -> ExecutionContext:
        return replace(self, current_files=tuple(str(f) for f in files))

    def with_conversation(self, conversation: ConversationSnapshot | None) -> ExecutionContext:
        return replace(self, conversation=conversation)

    def with_env(self, environ: Mapping[str, str]) -> ExecutionContext:
        """Return a copy whose variables come from ``environ``, filtered by the allow-list."""
        return replace(self, environment_variables=dict(environ))

    def template_namespace(self, args: Mapping[str, str]) -> dict[str, Any]:
        """Build the variable namespace seen by templates.

        Args:
            args: Mapped command arguments.

        Returns:
            Mapping with ``args``, ``env``, ``git_diff``, ``workspace_root``,
            ``files`` and, when a snapshot was supplied, ``conversation``.
        """
        namespace: dict[str, Any] = {
            "args": dict(args),
            "env": dict(self.environment_variables),
            "git_diff": self.git_diff,
            "workspace_root": str(self.workspace_root),
            "files": list(self.current_files),
        }
        if self.conversation is not None:
            namespace["conversation"] = self.conversation.to_dict()
        return namespace


async def _run_git(workspace_root: Path, *args: str) -> tuple[int, str]:
    process = await asyncio.create_subprocess_exec(
        "git",
        *args,
        cwd=str(workspace_root),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    stdout, _ = await process.communicate()
    return process.returncode if process.returncode is not None else -1, stdout.decode("utf-8", "replace")


async def get_git_diff(workspace_root: Path | None = None) -> tuple[bool, str]:
    """Get the diff of tracked changes in a workspace.

    Args:
        workspace_root: Directory to run git in. Defaults to cwd.

    Returns:
        Tuple of (is_git_repo, diff). ``(False, "")`` outside a repository or
        when git is not installed.

    Raises:
        OSError: If git is installed but ``git diff`` fails unexpectedly.
    """
    root = Path(workspace_root) if workspace_root is not None else Path.cwd()
    try:
        code, _ = await _run_git(root, "rev-parse", "--is-inside-work-tree")
    except FileNotFoundError:
        logger.debug("git executable not found, skipping diff")
        return False, ""
    if code != 0:
        return False, ""

    code, diff = await _run_git(root, "diff")
    # git diff exits 1 when differences are present with --exit-code style configs
    if code not in (0, 1):
        raise OSError(f"git diff failed with exit code {code}")
    return True, diff
