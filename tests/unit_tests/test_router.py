"""Tests for deepcmd.agents.router."""

from __future__ import annotations

import asyncio

import pytest

from deepcmd.agents.permissions import AgentPermissions, FileAccess
from deepcmd.agents.router import AgentRouter
from deepcmd.agents.toolkit import AgentToolkit
from deepcmd.agents.types import ActivationScore, Agent, AgentResult, Analysis, Task, TaskContext
from deepcmd.commands.types import CommandPermissions
from deepcmd.errors import (
    AgentExecutionError,
    AgentTimeoutError,
    IterationLimitExceeded,
    RoutingError,
    ToolkitPermissionError,
)


class MockAgent(Agent):
    """Mock agent for testing."""

    def __init__(
        self,
        agent_id: str,
        score: float = 0.0,
        permissions: AgentPermissions | None = None,
        behavior=None,
    ) -> None:
        """Initialize mock agent."""
        self._id = agent_id
        self._score = score
        self._permissions = permissions or AgentPermissions.read_only()
        self._behavior = behavior
        self.seen_toolkit: AgentToolkit | None = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return f"Mock {self._id}"

    @property
    def description(self) -> str:
        return "Mock agent"

    @property
    def permissions(self) -> AgentPermissions:
        return self._permissions

    def score(self, context: TaskContext) -> ActivationScore:
        return ActivationScore(self._score)

    async def execute(self, task: Task, toolkit: AgentToolkit) -> AgentResult:
        self.seen_toolkit = toolkit
        if self._behavior is not None:
            return await self._behavior(task, toolkit)
        return Analysis(summary=f"{self._id} handled {task.context.user_intent}")


def _task(intent: str = "do something") -> Task:
    return Task(context=TaskContext(user_intent=intent))


class TestActivationScore:
    """Test score normalization."""

    def test_clamps(self):
        """Test that scores are clamped to the unit interval."""
        assert ActivationScore(1.7).value == 1.0
        assert ActivationScore(-0.3).value == 0.0
        assert float(ActivationScore(0.4)) == 0.4

    def test_rejects_nan(self):
        """Test rejects nan."""
        with pytest.raises(ValueError):
            ActivationScore(float("nan"))

    def test_ordering(self):
        """Test that scores compare by value."""
        assert ActivationScore(0.2) < ActivationScore(0.5)


class TestRegistration:
    """Test agent registration."""

    def test_register_and_lookup(self):
        """Test register and lookup."""
        router = AgentRouter()
        agent = MockAgent("a")
        router.register(agent)
        assert "a" in router
        assert router.get("a") is agent
        assert len(router) == 1

    def test_duplicate_rejected(self):
        """Test duplicate rejected."""
        router = AgentRouter()
        router.register(MockAgent("a"))
        with pytest.raises(ValueError, match="already registered"):
            router.register(MockAgent("a"))

    def test_unregister(self):
        """Test unregistering removes the agent and rejects unknown ids."""
        router = AgentRouter()
        router.register(MockAgent("a"))
        router.unregister("a")
        assert "a" not in router
        with pytest.raises(KeyError):
            router.unregister("a")

    def test_agents_in_registration_order(self):
        """Test agents in registration order."""
        router = AgentRouter()
        for agent_id in ("c", "a", "b"):
            router.register(MockAgent(agent_id))
        assert [agent.id for agent in router.agents()] == ["c", "a", "b"]


class TestSelection:
    """Test open routing."""

    def test_highest_score_wins(self):
        """Test highest score wins."""
        router = AgentRouter()
        router.register(MockAgent("low", 0.2))
        router.register(MockAgent("high", 0.9))
        assert router.select(TaskContext()).id == "high"

    def test_ties_go_to_first_registered(self):
        """Test ties go to first registered."""
        router = AgentRouter()
        router.register(MockAgent("first", 0.5))
        router.register(MockAgent("second", 0.5))
        assert router.select(TaskContext()).id == "first"

    def test_all_zero_is_routing_error(self):
        """Test all zero is routing error."""
        router = AgentRouter()
        router.register(MockAgent("a", 0.0))
        with pytest.raises(RoutingError, match="No suitable handler"):
            router.select(TaskContext())

    def test_empty_router(self):
        """Test empty router."""
        with pytest.raises(RoutingError):
            AgentRouter().select(TaskContext())

    def test_threshold(self):
        """Test that a score must exceed the activation threshold."""
        router = AgentRouter(activation_threshold=0.5)
        router.register(MockAgent("a", 0.5))
        with pytest.raises(RoutingError):
            router.select(TaskContext())
        router.activation_threshold = 0.4
        assert router.select(TaskContext()).id == "a"

    def test_suggest(self):
        """Test ranked suggestions for an intent."""
        router = AgentRouter()
        router.register(MockAgent("a", 0.3))
        router.register(MockAgent("b", 0.8))
        router.register(MockAgent("c", 0.3))
        suggestions = router.suggest(TaskContext(), top_k=2)
        assert [(s.agent_id, s.score) for s in suggestions] == [("b", 0.8), ("a", 0.3)]

    def test_resolve_pinned(self):
        """Test resolve pinned."""
        router = AgentRouter()
        router.register(MockAgent("a", 0.0))
        assert router.resolve(TaskContext(), "a").id == "a"
        with pytest.raises(RoutingError, match="'missing'") as exc_info:
            router.resolve(TaskContext(), "missing")
        assert exc_info.value.agent_id == "missing"


class TestDispatch:
    """Test dispatching tasks."""

    @pytest.mark.asyncio
    async def test_dispatch_open(self, workspace):
        """Test dispatch open."""
        router = AgentRouter()
        router.register(MockAgent("a", 0.6))
        dispatched = await router.dispatch(_task("review it"), workspace_root=workspace)
        assert dispatched.agent_id == "a"
        assert dispatched.result == Analysis(summary="a handled review it")
        assert dispatched.iterations_used == 0

    @pytest.mark.asyncio
    async def test_pinned_ignores_score(self, workspace):
        """Test pinned ignores score."""
        router = AgentRouter()
        router.register(MockAgent("zero", 0.0))
        dispatched = await router.dispatch(_task(), "zero", workspace_root=workspace)
        assert dispatched.agent_id == "zero"

    @pytest.mark.asyncio
    async def test_permissions_are_narrowed(self, workspace):
        """Test permissions are narrowed."""
        agent = MockAgent("a", 0.5, AgentPermissions(file_access=FileAccess.READ_WRITE, shell_execution=True))
        router = AgentRouter()
        router.register(agent)

        await router.dispatch(
            _task(), "a", workspace_root=workspace, command_permissions=CommandPermissions(read_files=True)
        )

        assert agent.seen_toolkit is not None
        assert agent.seen_toolkit.permissions.file_access is FileAccess.READ_ONLY
        assert not agent.seen_toolkit.permissions.shell_execution
        assert agent.seen_toolkit.workspace_root == workspace.resolve()

    @pytest.mark.asyncio
    async def test_permission_error_propagates(self, workspace):
        """Test permission error propagates."""
        async def shell(task, toolkit):
            await toolkit.run_command("echo", "hi")

        router = AgentRouter()
        router.register(MockAgent("a", 0.5, behavior=shell))
        with pytest.raises(ToolkitPermissionError):
            await router.dispatch(_task(), workspace_root=workspace)

    @pytest.mark.asyncio
    async def test_iteration_limit_is_recoverable_error(self, workspace):
        """Test iteration limit is recoverable error."""
        (workspace / "a.py").write_text("x")

        async def greedy(task, toolkit):
            while True:
                await toolkit.read_file("a.py")

        router = AgentRouter()
        router.register(MockAgent("a", 0.5, AgentPermissions.read_only(max_iterations=3), behavior=greedy))
        with pytest.raises(IterationLimitExceeded):
            await router.dispatch(_task(), workspace_root=workspace)

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_wrapped(self, workspace):
        """Test unexpected failure is wrapped."""
        async def broken(task, toolkit):
            raise RuntimeError("kaboom")

        router = AgentRouter()
        router.register(MockAgent("a", 0.5, behavior=broken))
        with pytest.raises(AgentExecutionError, match="kaboom") as exc_info:
            await router.dispatch(_task(), workspace_root=workspace)
        assert exc_info.value.agent_id == "a"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_timeout(self, workspace):
        """Test that slow agents raise AgentTimeoutError."""
        async def slow(task, toolkit):
            await asyncio.sleep(5)

        router = AgentRouter()
        router.register(MockAgent("a", 0.5, behavior=slow))
        with pytest.raises(AgentTimeoutError) as exc_info:
            await router.dispatch(_task(), workspace_root=workspace, timeout=0.05)
        assert exc_info.value.timeout == 0.05
