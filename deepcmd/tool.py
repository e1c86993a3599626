"""LangChain tool for invoking slash commands programmatically.

This tool lets a model discover commands, read their usage, and execute them.
Template commands return their expanded prompt; agent commands return the
agent's formatted result.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from langchain_core.tools import BaseTool
from pydantic import BaseModel, Field

from deepcmd.commands.formatter import OutputFormat
from deepcmd.commands.invocation import CommandInvocation
from deepcmd.commands.types import is_valid_name
from deepcmd.errors import CommandError

if TYPE_CHECKING:
    from deepcmd.commands.context import ExecutionContext
    from deepcmd.session import CommandSession


class SlashCommandInput(BaseModel):
    """Input schema for the SlashCommand tool."""

    command: str = Field(
        description="The slash command to execute (without leading slash), or 'list' / 'info'. "
        "For example: 'review', 'explain', 'list'"
    )
    args: list[str] = Field(
        default_factory=list,
        description="Arguments to pass to the command. Plain values are positional, "
        "'name=value' values are named. For example: ['src/main.py', 'function=parse']",
    )


def build_invocation(command: str, args: list[str]) -> CommandInvocation:
    """Build an invocation from a command name and a list of raw arguments.

    Each argument is used as-is, so no quoting is needed. An argument of the
    form ``name=value`` with a valid name is a named argument.
    """
    command_name = command.strip().lstrip("/")
    named: dict[str, str] = {}
    positional: list[str] = []
    for arg in args:
        key, sep, value = arg.partition("=")
        if sep and is_valid_name(key):
            named[key] = value
        else:
            positional.append(arg)
    raw_text = " ".join(["/" + command_name, *args])
    return CommandInvocation(
        command_name=command_name,
        named_args=MappingProxyType(named),
        positional_args=tuple(positional),
        raw_text=raw_text,
    )


class SlashCommandTool(BaseTool):
    """Tool for executing slash commands.

    This tool allows the model to:
    1. List available commands
    2. Show usage for one command
    3. Execute a command with arguments

    Errors from lookup, argument mapping or execution are returned as text so
    the model can correct its call.
    """

    name: str = "slash_command"
    description: str = (
        "Execute a slash command. Template commands expand into full prompts; agent "
        "commands run an analysis agent and return its report. First use with "
        "command='list' to see available commands, command='info' with args=['name'] "
        "for usage, then execute specific commands with their arguments."
    )
    args_schema: type[BaseModel] = SlashCommandInput

    # Internal attributes (not part of Pydantic schema)
    _session: "CommandSession | None" = None
    _context: "ExecutionContext | None" = None
    _output_format: OutputFormat = OutputFormat.MARKDOWN

    def __init__(
        self,
        session: "CommandSession | None" = None,
        context: "ExecutionContext | None" = None,
        output_format: OutputFormat | str = OutputFormat.MARKDOWN,
        **kwargs: Any,
    ) -> None:
        """Initialize the SlashCommand tool.

        Args:
            session: Session providing the registry and executor.
            context: Execution context; built from the session's settings per call when omitted.
            output_format: Format for agent results.
            **kwargs: Additional arguments passed to BaseTool.
        """
        super().__init__(**kwargs)
        object.__setattr__(self, "_session", session)
        object.__setattr__(self, "_context", context)
        object.__setattr__(self, "_output_format", OutputFormat(output_format))

    def _run(self, command: str, args: list[str] | None = None) -> str:
        """Synchronous entry point.

        Listing and help need no I/O and are answered directly. Execution runs
        on a fresh event loop, in a worker thread when the calling thread
        already has a running loop.
        """
        if args is None:
            args = []

        if command.lower() == "list":
            return self._list_commands()

        if command.lower() == "info" and args:
            return self._get_command_info(args[0])

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self._execute_command(command, args))

        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(asyncio.run, self._execute_command(command, args))
            return future.result()

    async def _arun(self, command: str, args: list[str] | None = None) -> str:
        """Execute the slash command.

        Args:
            command: Command name (without leading slash), 'list' or 'info'.
            args: Optional arguments for the command.

        Returns:
            For 'list': the available commands.
            For 'info': usage of the named command.
            For other commands: the expanded prompt or the formatted agent result.
        """
        if args is None:
            args = []

        if command.lower() == "list":
            return self._list_commands()

        if command.lower() == "info" and args:
            return self._get_command_info(args[0])

        return await self._execute_command(command, args)

    def _list_commands(self) -> str:
        if self._session is None:
            return "No command session available. Slash commands are not configured."

        summaries = self._session.list_commands()
        if not summaries:
            return "No commands found."

        lines = ["Available commands:\n"]
        for summary in summaries:
            marker = " [agent]" if summary.is_agent_backed else ""
            lines.append(f"  /{summary.name} - {summary.description}{marker}")

        lines.append("\nUse slash_command with command='info' and args=['command_name'] for details.")
        return "\n".join(lines)

    def _get_command_info(self, command_name: str) -> str:
        if self._session is None:
            return "No command session available."
        try:
            return self._session.get_command_help(command_name)
        except CommandError as exc:
            return f"{exc} Use command='list' to see available commands."

    async def _execute_command(self, command_name: str, args: list[str]) -> str:
        if self._session is None:
            return "No command session available. Cannot execute commands."

        context = self._context
        if context is None:
            context = await self._session.build_context()

        try:
            invocation = build_invocation(command_name, args)
            outcome = await self._session.executor.execute(invocation, context)
        except CommandError as exc:
            return f"Error: {exc}\n\nUse command='info' with args=['{command_name}'] for full usage."

        return self._session.render(outcome, self._output_format)


def create_slash_command_tool(
    session: "CommandSession | None" = None,
    context: "ExecutionContext | None" = None,
    output_format: OutputFormat | str = OutputFormat.MARKDOWN,
) -> SlashCommandTool:
    """Factory function to create a SlashCommandTool.

    Args:
        session: Session providing the registry and executor.
        context: Fixed execution context, if any.
        output_format: Format for agent results.

    Returns:
        Configured SlashCommandTool instance.
    """
    return SlashCommandTool(session=session, context=context, output_format=output_format)


__all__ = [
    "SlashCommandInput",
    "SlashCommandTool",
    "build_invocation",
    "create_slash_command_tool",
]
