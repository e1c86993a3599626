"""Tests for deepcmd.commands.executor."""

from __future__ import annotations

import pytest

from deepcmd.agents.permissions import AgentPermissions, FileAccess
from deepcmd.agents.router import AgentRouter
from deepcmd.agents.toolkit import AgentToolkit
from deepcmd.agents.types import ActivationScore, Agent, AgentResult, Analysis, Task, TaskContext
from deepcmd.commands.executor import AgentOutcome, CommandExecutor, PromptOutcome, collect_file_paths
from deepcmd.commands.invocation import parse_invocation
from deepcmd.commands.registry import CommandRegistry
from deepcmd.commands.types import ArgumentSpec, ArgumentType, CommandCategory, CommandDescriptor
from deepcmd.errors import ArgumentError, CommandNotFoundError, InvocationSyntaxError, RoutingError

DIFF = """\
diff --git a/src/app.py b/src/app.py
index 1111111..2222222 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1 +1 @@
-x = 1
+x = 2
diff --git a/README.md b/README.md
"""


class RecordingAgent(Agent):
    """Agent that records the task and toolkit it was given."""

    def __init__(self, agent_id: str, keyword: str = "") -> None:
        self._id = agent_id
        self._keyword = keyword
        self.task: Task | None = None
        self.toolkit: AgentToolkit | None = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return self._id.title()

    @property
    def description(self) -> str:
        return "Records tasks"

    @property
    def permissions(self) -> AgentPermissions:
        return AgentPermissions(file_access=FileAccess.READ_WRITE, shell_execution=True)

    def score(self, context: TaskContext) -> ActivationScore:
        if self._keyword and self._keyword in context.user_intent:
            return ActivationScore(0.9)
        return ActivationScore(0.0)

    async def execute(self, task: Task, toolkit: AgentToolkit) -> AgentResult:
        self.task = task
        self.toolkit = toolkit
        return Analysis(summary=f"{self._id}: {task.context.user_intent}")


@pytest.fixture
def registry(commands_dir, greet_command, write_command):
    write_command(
        "audit.md",
        """
        ---
        name: audit
        description: Audit a file
        category: analysis
        agent_id: auditor
        aliases: [au]
        args:
          - name: target
            type: file
            required: true
        permissions:
          read_files: true
        ---

        Audit {{ args.target }}
        """,
    )
    write_command(
        "scan.md",
        """
        ---
        name: scan
        description: Scan with whichever agent fits
        category: analysis
        agent: true
        activation_hints: [security, secrets]
        ---

        Scan the workspace
        """,
    )
    return CommandRegistry.load(commands_dir)


@pytest.fixture
def agents():
    return {"auditor": RecordingAgent("auditor"), "scanner": RecordingAgent("scanner", keyword="secrets")}


@pytest.fixture
def executor(registry, agents):
    router = AgentRouter()
    for agent in agents.values():
        router.register(agent)
    return CommandExecutor(registry, router)


class TestTemplateCommands:
    """Test prompt expansion."""

    @pytest.mark.asyncio
    async def test_expands_prompt(self, executor, context):
        """Test expands prompt."""
        outcome = await executor.execute(parse_invocation("/greet Alice"), context)
        assert outcome == PromptOutcome(command_name="greet", prompt="Hello Alice!")

    @pytest.mark.asyncio
    async def test_execute_text(self, executor, context):
        """Test execute text."""
        outcome = await executor.execute_text("/greet who=Bob", context)
        assert outcome.prompt == "Hello Bob!"

    @pytest.mark.asyncio
    async def test_syntax_error(self, executor, context):
        """Test syntax error."""
        with pytest.raises(InvocationSyntaxError):
            await executor.execute_text('/greet "Alice', context)

    @pytest.mark.asyncio
    async def test_unknown_command(self, executor, context):
        """Test unknown command."""
        with pytest.raises(CommandNotFoundError) as exc_info:
            await executor.execute_text("/nope", context)
        assert exc_info.value.command_name == "nope"

    @pytest.mark.asyncio
    async def test_missing_argument(self, executor, context):
        """Test missing argument."""
        with pytest.raises(ArgumentError, match="who"):
            await executor.execute_text("/greet", context)

    @pytest.mark.asyncio
    async def test_builtin_without_router(self, registry, context):
        """Test builtin without router."""
        executor = CommandExecutor(registry)
        outcome = await executor.execute_text("/review file=src/app.py", context)
        assert "File: src/app.py" in outcome.prompt


class TestAgentCommands:
    """Test dispatch of agent-backed commands."""

    @pytest.mark.asyncio
    async def test_pinned_agent(self, executor, agents, context):
        """Test dispatch to the agent named by the command."""
        outcome = await executor.execute_text("/audit src/app.py", context)

        assert isinstance(outcome, AgentOutcome)
        assert outcome.command_name == "audit"
        assert outcome.agent_id == "auditor"
        assert outcome.result == Analysis(summary="auditor: Audit src/app.py")
        assert agents["auditor"].task.command_name == "audit"
        assert agents["auditor"].task.context.file_paths == ("src/app.py",)

    @pytest.mark.asyncio
    async def test_alias(self, executor, context):
        """Test that aliases dispatch like the primary name."""
        outcome = await executor.execute_text("/au target=lib.rs", context)
        assert outcome.agent_id == "auditor"

    @pytest.mark.asyncio
    async def test_permissions_are_narrowed_to_the_command(self, executor, agents, context):
        """Test permissions are narrowed to the command."""
        await executor.execute_text("/audit src/app.py", context)

        toolkit = agents["auditor"].toolkit
        assert toolkit.permissions.file_access is FileAccess.READ_ONLY
        assert not toolkit.permissions.shell_execution
        assert toolkit.workspace_root == context.workspace_root.resolve()

    @pytest.mark.asyncio
    async def test_routed_agent_uses_activation_hints(self, executor, agents, context):
        """Test routed agent uses activation hints."""
        outcome = await executor.execute_text("/scan", context)

        assert outcome.agent_id == "scanner"
        assert agents["scanner"].task.context.user_intent == "Scan the workspace\n\nsecurity secrets"
        assert agents["scanner"].toolkit.permissions.file_access is FileAccess.NONE

    @pytest.mark.asyncio
    async def test_unknown_pinned_agent(self, registry, context):
        """Test unknown pinned agent."""
        executor = CommandExecutor(registry, AgentRouter())
        with pytest.raises(RoutingError) as exc_info:
            await executor.execute_text("/audit a.py", context)
        assert exc_info.value.agent_id == "auditor"

    @pytest.mark.asyncio
    async def test_no_router(self, registry, context):
        """Test agent commands fail without a router."""
        executor = CommandExecutor(registry)
        with pytest.raises(RoutingError, match="no agent router is configured"):
            await executor.execute_text("/audit a.py", context)

    @pytest.mark.asyncio
    async def test_git_context(self, executor, agents, context):
        """Test that changed files are parsed from the diff."""
        await executor.execute_text("/audit src/app.py", context.with_git_diff(DIFF))

        git_context = agents["auditor"].task.context.git_context
        assert git_context.diff == DIFF
        assert git_context.changed_files == ("src/app.py", "README.md")

    @pytest.mark.asyncio
    async def test_timeout_is_passed_through(self, registry, agents, context):
        """Test timeout is passed through."""
        router = AgentRouter()
        router.register(agents["auditor"])
        executor = CommandExecutor(registry, router, agent_timeout=30.0)
        outcome = await executor.execute_text("/audit a.py", context)
        assert outcome.agent_id == "auditor"


class TestCollectFilePaths:
    """Test which files end up in an agent task."""

    def _descriptor(self, *arguments: ArgumentSpec) -> CommandDescriptor:
        return CommandDescriptor(
            name="x", description="x", category=CommandCategory.CUSTOM, template_body="", arguments=arguments
        )

    def test_context_files_first_then_arguments(self, context):
        """Test context files first then arguments."""
        descriptor = self._descriptor(
            ArgumentSpec("target", type_hint=ArgumentType.FILE),
            ArgumentSpec("other"),
        )
        paths = collect_file_paths(
            descriptor,
            {"target": "b.py", "other": "docs/guide.md"},
            context.with_files(["a.py", "b.py"]),
        )
        assert paths == ("a.py", "b.py", "docs/guide.md")

    @pytest.mark.parametrize(
        ("value", "included"),
        [
            ("main.rs", True),
            ("src\\main.rs", True),
            ("hello world.py", False),
            ("parse", False),
            ("", False),
        ],
    )
    def test_string_values_that_look_like_paths(self, context, value, included):
        """Test string values that look like paths."""
        descriptor = self._descriptor(ArgumentSpec("value"))
        paths = collect_file_paths(descriptor, {"value": value}, context)
        assert (value in paths) is included

    def test_number_arguments_ignored(self, context):
        """Test number arguments ignored."""
        descriptor = self._descriptor(ArgumentSpec("count", type_hint=ArgumentType.NUMBER))
        assert collect_file_paths(descriptor, {"count": "1.5"}, context) == ()
