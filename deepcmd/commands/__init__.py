"""Slash commands: definition files, registry, invocation and execution.

Commands are markdown files with a YAML front-matter header followed by a
Jinja2 template body. They are loaded from a commands directory, kept in a
registry that can be reloaded while in use, and invoked as ``/name args``.

Example command file:
```markdown
---
name: greet
description: Greet someone by name
category: custom
args:
  - name: who
    required: true
---

Hello {{ args.who }}!
```
"""

from deepcmd.commands.args import ArgumentMapper, coerce_value
from deepcmd.commands.builtin import builtin_commands
from deepcmd.commands.context import (
    ConversationSnapshot,
    ExecutionContext,
    MessageSummary,
    collect_safe_env_vars,
    get_git_diff,
)
from deepcmd.commands.executor import (
    AgentOutcome,
    CommandExecutor,
    ExecutionOutcome,
    PromptOutcome,
)
from deepcmd.commands.expander import TemplateExpander
from deepcmd.commands.formatter import OutputFormat, format_result, parse_result
from deepcmd.commands.invocation import CommandInvocation, is_slash_command, parse_invocation
from deepcmd.commands.load import list_command_files, load_commands_from_dir, read_command_file
from deepcmd.commands.parser import parse_command
from deepcmd.commands.registry import CommandRegistry, RegistrySnapshot
from deepcmd.commands.types import (
    ArgumentSpec,
    ArgumentType,
    CommandCategory,
    CommandDescriptor,
    CommandKind,
    CommandPermissions,
    CommandSource,
    CommandSummary,
)
from deepcmd.commands.watcher import CommandWatcher, Debouncer

__all__ = [
    # Types
    "ArgumentSpec",
    "ArgumentType",
    "CommandCategory",
    "CommandDescriptor",
    "CommandKind",
    "CommandPermissions",
    "CommandSource",
    "CommandSummary",
    # Load
    "parse_command",
    "read_command_file",
    "list_command_files",
    "load_commands_from_dir",
    "builtin_commands",
    # Registry
    "CommandRegistry",
    "RegistrySnapshot",
    "CommandWatcher",
    "Debouncer",
    # Invocation
    "CommandInvocation",
    "is_slash_command",
    "parse_invocation",
    "ArgumentMapper",
    "coerce_value",
    # Execution
    "ConversationSnapshot",
    "ExecutionContext",
    "MessageSummary",
    "collect_safe_env_vars",
    "get_git_diff",
    "TemplateExpander",
    "CommandExecutor",
    "ExecutionOutcome",
    "PromptOutcome",
    "AgentOutcome",
    # Output
    "OutputFormat",
    "format_result",
    "parse_result",
]
