"""deepcmd: slash commands backed by templates and permission-bounded agents."""

from deepcmd.agents import AgentPermissions, AgentRouter, FileAccess
from deepcmd.commands import (
    AgentOutcome,
    CommandExecutor,
    CommandInvocation,
    CommandRegistry,
    CommandWatcher,
    ExecutionContext,
    OutputFormat,
    PromptOutcome,
    format_result,
    parse_invocation,
)
from deepcmd.config import Settings, configure_logging
from deepcmd.errors import CommandError
from deepcmd.session import CommandSession
from deepcmd.tool import SlashCommandTool, create_slash_command_tool

__version__ = "0.1.0"

__all__ = [
    "AgentOutcome",
    "AgentPermissions",
    "AgentRouter",
    "CommandError",
    "CommandExecutor",
    "CommandInvocation",
    "CommandRegistry",
    "CommandSession",
    "CommandWatcher",
    "ExecutionContext",
    "FileAccess",
    "OutputFormat",
    "PromptOutcome",
    "Settings",
    "SlashCommandTool",
    "configure_logging",
    "create_slash_command_tool",
    "format_result",
    "parse_invocation",
]
