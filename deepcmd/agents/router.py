"""Agent router for selecting and dispatching agents.

Agents are registered explicitly, in order. Open routing scores every agent
against the task context and picks the highest score; ties go to the agent
registered first. Pinned routing skips scoring and uses the named agent.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from deepcmd.agents.toolkit import AgentToolkit
from deepcmd.agents.types import ActivationScore, Agent, AgentResult, Task, TaskContext
from deepcmd.errors import AgentExecutionError, AgentTimeoutError, CommandError, RoutingError

if TYPE_CHECKING:
    from deepcmd.commands.types import CommandPermissions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentSuggestion:
    """A ranked candidate returned by ``AgentRouter.suggest``."""

    agent_id: str
    name: str
    description: str
    score: float


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of running one agent."""

    agent_id: str
    result: AgentResult
    iterations_used: int


class AgentRouter:
    """Registry and dispatcher for agents.

    Example:
        ```python
        router = AgentRouter()
        router.register(ReviewAgent())
        router.register(SecurityAgent())

        outcome = await router.dispatch(task, workspace_root=Path.cwd())
        ```
    """

    def __init__(self, activation_threshold: float = 0.0) -> None:
        """Initialize an empty router.

        Args:
            activation_threshold: Open routing only selects an agent scoring
                strictly above this value.
        """
        self._agents: dict[str, Agent] = {}
        self.activation_threshold = activation_threshold

    @property
    def activation_threshold(self) -> float:
        return self._activation_threshold

    @activation_threshold.setter
    def activation_threshold(self, threshold: float) -> None:
        self._activation_threshold = ActivationScore(threshold).value

    def register(self, agent: Agent) -> None:
        """Register an agent.

        Args:
            agent: The agent instance to register.

        Raises:
            ValueError: If an agent with the same id is already registered.
        """
        if agent.id in self._agents:
            msg = f"Agent with id '{agent.id}' is already registered"
            raise ValueError(msg)
        self._agents[agent.id] = agent
        logger.debug("Registered agent '%s'", agent.id)

    def unregister(self, agent_id: str) -> None:
        """Unregister an agent by id.

        Raises:
            KeyError: If no agent with that id is registered.
        """
        if agent_id not in self._agents:
            msg = f"No agent registered with id '{agent_id}'"
            raise KeyError(msg)
        del self._agents[agent_id]

    def get(self, agent_id: str) -> Agent | None:
        return self._agents.get(agent_id)

    def agents(self) -> list[Agent]:
        """Return registered agents in registration order."""
        return list(self._agents.values())

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def _scored(self, context: TaskContext) -> list[tuple[Agent, ActivationScore]]:
        return [(agent, agent.score(context)) for agent in self._agents.values()]

    def select(self, context: TaskContext) -> Agent:
        """Pick the best-scoring agent for a task.

        Args:
            context: Task context to score against.

        Returns:
            The agent with the highest score; the first registered wins ties.

        Raises:
            RoutingError: If no agent scores above the activation threshold.
        """
        best: tuple[Agent, ActivationScore] | None = None
        for agent, score in self._scored(context):
            if best is None or score.value > best[1].value:
                best = (agent, score)

        if best is None or best[1].value <= self.activation_threshold:
            logger.info("No agent scored above %.2f for intent %r", self.activation_threshold, context.user_intent)
            raise RoutingError()

        logger.debug("Selected agent '%s' with score %.2f", best[0].id, best[1].value)
        return best[0]

    def suggest(self, context: TaskContext, top_k: int = 3) -> list[AgentSuggestion]:
        """Rank registered agents for a task.

        Args:
            context: Task context to score against.
            top_k: Maximum number of suggestions.

        Returns:
            Suggestions ordered by descending score, registration order within ties.
        """
        ranked = sorted(self._scored(context), key=lambda pair: -pair[1].value)
        return [
            AgentSuggestion(agent_id=agent.id, name=agent.name, description=agent.description, score=score.value)
            for agent, score in ranked[: max(0, top_k)]
        ]

    def resolve(self, context: TaskContext, agent_id: str | None = None) -> Agent:
        """Return the pinned agent, or select one when no id is given.

        Raises:
            RoutingError: If the pinned id is unknown or no agent is suitable.
        """
        if agent_id is None:
            return self.select(context)
        agent = self._agents.get(agent_id)
        if agent is None:
            raise RoutingError(f"No agent registered with id '{agent_id}'", agent_id=agent_id)
        return agent

    async def dispatch(
        self,
        task: Task,
        agent_id: str | None = None,
        *,
        workspace_root: Path | None = None,
        command_permissions: CommandPermissions | None = None,
        timeout: float | None = None,
    ) -> DispatchResult:
        """Run a task on a pinned or selected agent.

        Args:
            task: Task to run.
            agent_id: Pinned agent id; when None the best-scoring agent is used.
            workspace_root: Root the toolkit is confined to. Defaults to cwd.
            command_permissions: Permissions of the invoking command, used to
                narrow the agent's own permissions.
            timeout: Wall-clock limit in seconds.

        Returns:
            The agent id, its result and the number of toolkit operations used.

        Raises:
            RoutingError: If no agent can be chosen.
            ToolkitPermissionError: If the agent attempts a forbidden operation.
            AgentTimeoutError: If the agent exceeds ``timeout``.
            AgentExecutionError: If the agent fails or exceeds its iteration budget.
        """
        agent = self.resolve(task.context, agent_id)
        permissions = agent.permissions
        if command_permissions is not None:
            permissions = permissions.narrow(command_permissions)
        toolkit = AgentToolkit(agent.id, permissions, workspace_root or Path.cwd())

        logger.info("Dispatching task to agent '%s'", agent.id)
        try:
            result = await asyncio.wait_for(agent.execute(task, toolkit), timeout)
        except asyncio.TimeoutError as exc:
            raise AgentTimeoutError(timeout or 0.0, agent_id=agent.id) from exc
        except CommandError:
            raise
        except Exception as exc:
            logger.exception("Agent '%s' failed", agent.id)
            raise AgentExecutionError(f"Agent '{agent.id}' failed: {exc}", agent_id=agent.id) from exc

        return DispatchResult(agent_id=agent.id, result=result, iterations_used=toolkit.iterations_used)
