"""Runtime execution of slash commands.

A command either expands into a prompt for the surrounding conversation, or it
hands a task to an agent and returns the agent's structured result. The
executor does the lookup, maps arguments, and branches on the command kind.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Union

from deepcmd.agents.router import AgentRouter
from deepcmd.agents.types import AgentResult, GitContext, Task, TaskContext
from deepcmd.commands.args import ArgumentMapper
from deepcmd.commands.context import ExecutionContext
from deepcmd.commands.expander import TemplateExpander
from deepcmd.commands.invocation import CommandInvocation, parse_invocation
from deepcmd.commands.registry import CommandRegistry
from deepcmd.commands.types import ArgumentType, CommandDescriptor, CommandKind
from deepcmd.errors import CommandNotFoundError, RoutingError

logger = logging.getLogger(__name__)

_FILE_LIKE = re.compile(r"^[\w.\-]+\.[A-Za-z0-9]{1,10}$")
_DIFF_FILE = re.compile(r"^diff --git a/(\S+) b/(\S+)$", re.MULTILINE)


@dataclass(frozen=True)
class PromptOutcome:
    """A template command expanded into a prompt."""

    command_name: str
    prompt: str


@dataclass(frozen=True)
class AgentOutcome:
    """An agent command's structured result."""

    command_name: str
    agent_id: str
    result: AgentResult


ExecutionOutcome = Union[PromptOutcome, AgentOutcome]


def _looks_like_path(value: str) -> bool:
    value = value.strip()
    if not value or any(char.isspace() for char in value):
        return False
    return "/" in value or "\\" in value or bool(_FILE_LIKE.match(value))


def _changed_files(diff: str) -> tuple[str, ...]:
    return tuple(dict.fromkeys(match.group(2) for match in _DIFF_FILE.finditer(diff)))


def collect_file_paths(
    descriptor: CommandDescriptor, args: dict[str, str], context: ExecutionContext
) -> tuple[str, ...]:
    """Gather the files an agent task should look at.

    The context's open files come first, followed by every ``file`` argument
    and every untyped string argument whose value looks like a path.
    Duplicates are dropped, order is kept.
    """
    paths = list(context.current_files)
    for spec in descriptor.arguments:
        value = args.get(spec.name, "")
        if not value:
            continue
        if spec.type_hint is ArgumentType.FILE:
            paths.append(value)
        elif spec.type_hint is ArgumentType.STRING and _looks_like_path(value):
            paths.append(value)
    return tuple(dict.fromkeys(paths))


class CommandExecutor:
    """Executes parsed invocations against a registry and an agent router.

    Args:
        registry: Command registry used for lookup.
        router: Agent router for agent-backed commands. Template commands work
            without one.
        expander: Template expander. A fresh one is created when omitted.
        agent_timeout: Wall-clock limit in seconds for agent execution.
    """

    def __init__(
        self,
        registry: CommandRegistry,
        router: AgentRouter | None = None,
        expander: TemplateExpander | None = None,
        *,
        agent_timeout: float | None = None,
    ) -> None:
        self.registry = registry
        self.router = router
        self.expander = expander or TemplateExpander()
        self.agent_timeout = agent_timeout

    def lookup(self, command_name: str) -> CommandDescriptor:
        """Resolve a command name or alias.

        Raises:
            CommandNotFoundError: If nothing is registered under the name.
        """
        descriptor = self.registry.resolve(command_name)
        if descriptor is None:
            raise CommandNotFoundError(command_name)
        return descriptor

    async def execute(self, invocation: CommandInvocation, context: ExecutionContext) -> ExecutionOutcome:
        """Execute a parsed invocation.

        Args:
            invocation: Parsed slash command.
            context: Ambient execution context.

        Returns:
            A ``PromptOutcome`` for template commands, an ``AgentOutcome`` for
            agent-backed ones.

        Raises:
            CommandNotFoundError: If the command is unknown.
            ArgumentError: If the arguments do not fit the command.
            ExpansionError: If the template fails to render.
            RoutingError: If an agent command cannot be routed.
            AgentExecutionError: If the agent fails.
        """
        descriptor = self.lookup(invocation.command_name)
        args = ArgumentMapper.map_arguments(invocation, descriptor)
        logger.debug("Executing /%s (%s) with %s", descriptor.name, descriptor.kind.value, sorted(args))

        if descriptor.kind is CommandKind.TEMPLATE:
            prompt = self.expander.expand(descriptor.template_body, context, args, command_name=descriptor.name)
            return PromptOutcome(command_name=descriptor.name, prompt=prompt)

        return await self._execute_agent(descriptor, args, context)

    async def execute_text(self, raw_text: str, context: ExecutionContext) -> ExecutionOutcome:
        """Parse raw slash-command text and execute it.

        Raises:
            InvocationSyntaxError: If the text is not a well-formed invocation.
        """
        return await self.execute(parse_invocation(raw_text), context)

    def build_task(
        self, descriptor: CommandDescriptor, args: dict[str, str], context: ExecutionContext
    ) -> Task:
        """Build the agent task for an agent-backed command.

        The rendered template becomes the user intent, with the command's
        activation hints appended so routing can score on them.
        """
        intent = self.expander.expand(descriptor.template_body, context, args, command_name=descriptor.name)
        if descriptor.activation_hints:
            intent = f"{intent}\n\n{' '.join(descriptor.activation_hints)}".strip()

        git_context = None
        if context.git_diff:
            git_context = GitContext(diff=context.git_diff, changed_files=_changed_files(context.git_diff))

        return Task(
            context=TaskContext(
                user_intent=intent,
                file_paths=collect_file_paths(descriptor, args, context),
                git_context=git_context,
            ),
            command_name=descriptor.name,
        )

    async def _execute_agent(
        self, descriptor: CommandDescriptor, args: dict[str, str], context: ExecutionContext
    ) -> AgentOutcome:
        if self.router is None:
            raise RoutingError(
                f"Command '/{descriptor.name}' requires agent support, but no agent router is configured",
                agent_id=descriptor.agent_id,
            )

        task = self.build_task(descriptor, args, context)
        dispatched = await self.router.dispatch(
            task,
            descriptor.agent_id,
            workspace_root=context.workspace_root,
            command_permissions=descriptor.permissions,
            timeout=self.agent_timeout,
        )
        logger.info(
            "Agent '%s' finished /%s using %d operation(s)",
            dispatched.agent_id,
            descriptor.name,
            dispatched.iterations_used,
        )
        return AgentOutcome(command_name=descriptor.name, agent_id=dispatched.agent_id, result=dispatched.result)
