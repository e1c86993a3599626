"""Error taxonomy for the command system.

File-level and watch-level errors (``DefinitionError``, ``RegistryError``) are
recovered locally by the registry and watcher: they are logged and the last
good snapshot keeps serving. Every other error is request-level and always
reaches the caller.
"""

from __future__ import annotations

from pathlib import Path


class CommandError(Exception):
    """Base class for every error raised by deepcmd."""


class DefinitionError(CommandError, ValueError):
    """A command definition file is malformed or fails validation."""

    def __init__(self, message: str, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else None
        self.reason = message
        if self.path is not None:
            message = f"{self.path}: {message}"
        super().__init__(message)

    def with_path(self, path: str | Path) -> DefinitionError:
        """Return a copy of this error attributed to ``path``."""
        return DefinitionError(self.reason, path=path)


class RegistryError(CommandError):
    """The command directory itself could not be scanned."""

    def __init__(self, message: str, directory: str | Path | None = None) -> None:
        self.directory = Path(directory) if directory is not None else None
        super().__init__(message)


class InvocationSyntaxError(CommandError, ValueError):
    """Raw slash-command text could not be tokenized."""

    def __init__(self, message: str, input_text: str) -> None:
        self.input_text = input_text
        super().__init__(f"{message}: {input_text!r}")


class CommandNotFoundError(CommandError, LookupError):
    """No command is registered under the requested name."""

    def __init__(self, command_name: str) -> None:
        self.command_name = command_name
        super().__init__(
            f"Command '/{command_name}' not found. "
            "List available commands to see what can be invoked."
        )


class ArgumentError(CommandError, ValueError):
    """Invocation arguments do not match the command's declared parameters."""

    def __init__(self, message: str, argument: str | None = None, command_name: str | None = None) -> None:
        self.argument = argument
        self.command_name = command_name
        super().__init__(message)


class ExpansionError(CommandError):
    """The template engine failed while rendering a command body."""

    def __init__(self, message: str, command_name: str | None = None) -> None:
        self.command_name = command_name
        if command_name:
            message = f"Failed to expand template for '/{command_name}': {message}"
        super().__init__(message)


class RoutingError(CommandError):
    """No agent is suitable for the task, or a pinned agent is unknown."""

    def __init__(self, message: str = "No suitable handler found for this task", agent_id: str | None = None) -> None:
        self.agent_id = agent_id
        super().__init__(message)


class ToolkitPermissionError(CommandError, PermissionError):
    """A toolkit operation exceeds the invoking agent's declared permissions."""

    def __init__(self, operation: str, detail: str, agent_id: str | None = None) -> None:
        self.operation = operation
        self.agent_id = agent_id
        who = f"agent '{agent_id}'" if agent_id else "agent"
        super().__init__(f"Permission denied for {who}: {operation} ({detail})")


class AgentExecutionError(CommandError):
    """An agent failed while executing a task."""

    def __init__(self, message: str, agent_id: str | None = None) -> None:
        self.agent_id = agent_id
        super().__init__(message)


class IterationLimitExceeded(AgentExecutionError):
    """An agent used more toolkit operations than ``max_iterations`` allows."""

    def __init__(self, limit: int, agent_id: str | None = None) -> None:
        self.limit = limit
        super().__init__(f"Agent exceeded its iteration limit of {limit}", agent_id=agent_id)


class AgentTimeoutError(AgentExecutionError):
    """An agent did not finish within the caller-imposed timeout."""

    def __init__(self, timeout: float, agent_id: str | None = None) -> None:
        self.timeout = timeout
        super().__init__(f"Agent did not finish within {timeout:g}s", agent_id=agent_id)
