"""Shared plumbing for the built-in file-scanning agents."""

from __future__ import annotations

import abc
import logging
from collections.abc import Sequence
from pathlib import PurePath

from deepcmd.agents.permissions import AgentPermissions
from deepcmd.agents.toolkit import AgentToolkit
from deepcmd.agents.types import ActivationScore, Agent, AgentResult, CodeReview, Finding, Severity, Task, TaskContext
from deepcmd.errors import AgentExecutionError, IterationLimitExceeded

logger = logging.getLogger(__name__)


class FileScanningAgent(Agent):
    """Agent that reads each task file through the toolkit and inspects its text.

    Subclasses set the class attributes and implement ``wants_file`` and
    ``scan``. Files that cannot be read are logged and skipped; once the
    iteration budget runs out the remaining files are reported in an
    informational finding instead of failing the whole run.
    """

    agent_id: str = ""
    agent_name: str = ""
    agent_description: str = ""
    keywords: Sequence[str] = ()
    keyword_weight: float = 0.25
    default_permissions: AgentPermissions = AgentPermissions.read_only()

    def __init__(self, permissions: AgentPermissions | None = None) -> None:
        self._permissions = permissions or self.default_permissions

    @property
    def id(self) -> str:
        return self.agent_id

    @property
    def name(self) -> str:
        return self.agent_name

    @property
    def description(self) -> str:
        return self.agent_description

    @property
    def permissions(self) -> AgentPermissions:
        return self._permissions

    def score(self, context: TaskContext) -> ActivationScore:
        """Score by counting keywords present in the task intent."""
        intent = context.user_intent.lower()
        matches = sum(1 for keyword in self.keywords if keyword in intent)
        return ActivationScore(matches * self.keyword_weight)

    @abc.abstractmethod
    def wants_file(self, path: PurePath) -> bool:
        """Whether a file should be inspected at all."""

    @abc.abstractmethod
    def scan(self, content: str, path: str) -> list[Finding]:
        """Inspect one file's content."""

    async def execute(self, task: Task, toolkit: AgentToolkit) -> AgentResult:
        findings: list[Finding] = []
        candidates = [path for path in task.context.file_paths if self.wants_file(PurePath(path))]

        for index, path in enumerate(candidates):
            if toolkit.remaining_iterations == 0:
                skipped = len(candidates) - index
                findings.append(
                    Finding(
                        severity=Severity.INFO,
                        message=f"{skipped} file(s) not inspected: iteration limit of "
                        f"{toolkit.permissions.max_iterations} reached",
                        category="Coverage",
                    )
                )
                break
            try:
                content = await toolkit.read_file(path)
            except IterationLimitExceeded:
                raise
            except AgentExecutionError as exc:
                logger.debug("Agent '%s' skipping %s: %s", self.id, path, exc)
                continue
            findings.extend(self.scan(content, toolkit.relative_path(path)))

        return CodeReview(findings=tuple(findings))
