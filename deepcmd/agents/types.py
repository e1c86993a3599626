"""Type definitions for the agent system.

This module defines the agent protocol, the task handed to an agent, the
activation score used for routing, and the structured results agents return.
"""

from __future__ import annotations

import abc
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Union

if TYPE_CHECKING:
    from deepcmd.agents.permissions import AgentPermissions
    from deepcmd.agents.toolkit import AgentToolkit


@dataclass(frozen=True, order=True)
class ActivationScore:
    """Relevance of an agent to a task, clamped to [0.0, 1.0]."""

    value: float = 0.0

    def __post_init__(self) -> None:
        value = float(self.value)
        if math.isnan(value):
            raise ValueError("ActivationScore cannot be NaN")
        object.__setattr__(self, "value", min(1.0, max(0.0, value)))

    def __float__(self) -> float:
        return self.value


class ExecutionMode(str, Enum):
    """Whether a user is present to review the agent's output."""

    INTERACTIVE = "interactive"
    AUTOMATED = "automated"


@dataclass(frozen=True)
class GitContext:
    """Repository state relevant to a task."""

    diff: str = ""
    branch: str = ""
    changed_files: tuple[str, ...] = ()


@dataclass(frozen=True)
class TaskContext:
    """What an agent is asked to look at, used for both scoring and execution."""

    user_intent: str = ""
    """Natural-language description of the task."""

    file_paths: tuple[str, ...] = ()
    """Files the task concerns, relative to the workspace or absolute."""

    git_context: GitContext | None = None
    """Repository state, when available."""

    execution_mode: ExecutionMode = ExecutionMode.INTERACTIVE


@dataclass(frozen=True)
class Task:
    """A unit of work dispatched to an agent."""

    context: TaskContext
    additional_instructions: str | None = None
    command_name: str | None = None
    """Command that produced the task, if any."""


class Severity(str, Enum):
    """Severity of a review finding."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class Finding:
    """A single code review finding."""

    severity: Severity
    message: str
    file: str | None = None
    line: int | None = None
    category: str | None = None


@dataclass(frozen=True)
class Suggestion:
    """A proposed improvement, optionally with example code."""

    title: str
    rationale: str
    code_snippet: str | None = None


@dataclass(frozen=True)
class Analysis:
    """Free-form analysis: a summary plus named details."""

    type: ClassVar[str] = "analysis"

    summary: str
    details: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CodeReview:
    """Review result made of ordered findings."""

    type: ClassVar[str] = "code_review"

    findings: tuple[Finding, ...] = ()


@dataclass(frozen=True)
class Suggestions:
    """A list of suggested improvements."""

    type: ClassVar[str] = "suggestions"

    items: tuple[Suggestion, ...] = ()


AgentResult = Union[Analysis, CodeReview, Suggestions]


class Agent(abc.ABC):
    """Protocol that all agents must implement.

    Agents are registered explicitly with an ``AgentRouter``. The router uses
    ``score`` to choose among them and hands the chosen agent a toolkit
    bounded by its ``permissions``.
    """

    @property
    @abc.abstractmethod
    def id(self) -> str:
        """Stable identifier used for pinning and registration."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Human-readable name."""

    @property
    @abc.abstractmethod
    def description(self) -> str:
        """What the agent does."""

    @property
    @abc.abstractmethod
    def permissions(self) -> AgentPermissions:
        """Capabilities the agent needs."""

    @abc.abstractmethod
    def score(self, context: TaskContext) -> ActivationScore:
        """Estimate how relevant this agent is to a task.

        Args:
            context: Task context to evaluate.

        Returns:
            Score in [0.0, 1.0]; zero means the agent cannot help.
        """

    @abc.abstractmethod
    async def execute(self, task: Task, toolkit: AgentToolkit) -> AgentResult:
        """Execute a task.

        Args:
            task: Task to perform.
            toolkit: Permission-checked access to files and commands.

        Returns:
            Structured result.
        """

