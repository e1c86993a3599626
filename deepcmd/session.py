"""Command session: the owning object that wires registry, watcher and agents.

A session loads the commands directory, optionally watches it for changes,
registers the available agents, and executes slash-command text against an
execution context. Closing the session stops the watcher; the registry keeps
whatever snapshot it last published.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from types import TracebackType

from deepcmd.agents.builtin import builtin_agents
from deepcmd.agents.router import AgentRouter
from deepcmd.agents.types import Agent
from deepcmd.commands.context import ConversationSnapshot, ExecutionContext, get_git_diff
from deepcmd.commands.executor import AgentOutcome, CommandExecutor, ExecutionOutcome
from deepcmd.commands.formatter import OutputFormat, format_result
from deepcmd.commands.registry import CommandRegistry
from deepcmd.commands.types import CommandCategory, CommandDescriptor, CommandSource, CommandSummary
from deepcmd.commands.watcher import CommandWatcher
from deepcmd.config import Settings
from deepcmd.errors import CommandNotFoundError, RegistryError

logger = logging.getLogger(__name__)


def _get_source_label(source: CommandSource) -> str:
    labels = {
        CommandSource.BUILTIN: "built-in command",
        CommandSource.USER: "user command",
    }
    return labels.get(source, source.value)


def get_command_help(descriptor: CommandDescriptor) -> str:
    """Generate help text for a command.

    Args:
        descriptor: Command to describe.

    Returns:
        Formatted help text string.
    """
    lines = [f"/{descriptor.name} - {descriptor.description}"]

    if descriptor.aliases:
        lines.append(f"  Aliases: {', '.join('/' + alias for alias in descriptor.aliases)}")

    if descriptor.arguments:
        lines.append("  Arguments:")
        for arg in descriptor.arguments:
            required = "required" if arg.required else "optional"
            details = f"{arg.type_hint.value}, {required}"
            if arg.default:
                details += f", default: {arg.default}"
            description = f"{arg.description} " if arg.description else ""
            lines.append(f"    {arg.name}: {description}({details})")

    if descriptor.is_agent_backed:
        lines.append(f"  Agent: {descriptor.agent_id or 'routed by task'}")

    lines.append(f"  Category: {descriptor.category.value}")
    lines.append(f"  Source: {_get_source_label(descriptor.source)}")
    if descriptor.path is not None:
        lines.append(f"  Location: {descriptor.path}")

    return "\n".join(lines)


class CommandSession:
    """Owns the command system for one host process.

    Args:
        settings: Configuration; detected from the environment when omitted.
        agents: Agents to register, in routing order. Defaults to the built-in agents.
        watch: Whether to watch the commands directory for changes.

    Example:
        ```python
        async with CommandSession() as session:
            outcome = await session.execute("/review file=src/app.py")
            print(session.render(outcome))
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        agents: Iterable[Agent] | None = None,
        *,
        watch: bool = True,
    ) -> None:
        self.settings = settings or Settings.from_environment()
        self.registry = CommandRegistry(self.settings.commands_dir, recursive=self.settings.recursive_scan)
        self.router = AgentRouter()
        for agent in builtin_agents() if agents is None else agents:
            self.router.register(agent)
        self.executor = CommandExecutor(self.registry, self.router, agent_timeout=self.settings.agent_timeout)
        self.watcher: CommandWatcher | None = None
        self._watch = watch
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    def start(self) -> None:
        """Load the commands directory and start watching it.

        A directory that cannot be created or read leaves the session serving
        built-in commands only.
        """
        if self._started:
            return
        try:
            self.settings.ensure_commands_dir()
            self.registry.reload()
        except (OSError, RegistryError):
            logger.exception("Cannot load commands from %s", self.settings.commands_dir)
        else:
            if self._watch:
                self.watcher = CommandWatcher(self.registry, debounce_ms=self.settings.debounce_ms)
                self.watcher.start()
        self._started = True
        logger.info("Command session started with %d command(s)", len(self.registry))

    def close(self) -> None:
        """Stop the watcher. Safe to call more than once."""
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None
        self._started = False

    def __enter__(self) -> CommandSession:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    async def __aenter__(self) -> CommandSession:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def list_commands(self, category: CommandCategory | str | None = None) -> list[CommandSummary]:
        """Summaries of every available command, sorted by name."""
        if category is None:
            descriptors = self.registry.list()
        else:
            descriptors = self.registry.filter_by_category(category)
        return [descriptor.summary() for descriptor in descriptors]

    def get_command_help(self, name: str) -> str:
        """Help text for a command or alias.

        Raises:
            CommandNotFoundError: If the command is unknown.
        """
        descriptor = self.registry.resolve(name.lstrip("/"))
        if descriptor is None:
            raise CommandNotFoundError(name.lstrip("/"))
        return get_command_help(descriptor)

    async def build_context(
        self,
        *,
        files: Iterable[str | Path] = (),
        conversation: ConversationSnapshot | None = None,
        include_git_diff: bool = False,
    ) -> ExecutionContext:
        """Build an execution context from the environment and caller data.

        Args:
            files: Paths in focus.
            conversation: Conversation snapshot supplied by the host.
            include_git_diff: Whether to collect the working-tree diff.

        Returns:
            The context.
        """
        context = ExecutionContext.from_environment(settings=self.settings).with_files(files)
        if conversation is not None:
            context = context.with_conversation(conversation)
        if include_git_diff:
            available, diff = await get_git_diff(context.workspace_root)
            if available:
                context = context.with_git_diff(diff)
        return context

    async def execute(self, raw_text: str, context: ExecutionContext | None = None) -> ExecutionOutcome:
        """Execute slash-command text.

        Args:
            raw_text: Text such as ``/review file=src/app.py``.
            context: Execution context. Built from the environment when omitted.

        Returns:
            The prompt or agent result.
        """
        if context is None:
            context = await self.build_context()
        return await self.executor.execute_text(raw_text, context)

    @staticmethod
    def render(outcome: ExecutionOutcome, fmt: OutputFormat | str = OutputFormat.MARKDOWN) -> str:
        """Render an outcome as text. Prompts are returned unchanged."""
        if isinstance(outcome, AgentOutcome):
            return format_result(outcome.result, fmt)
        return outcome.prompt
