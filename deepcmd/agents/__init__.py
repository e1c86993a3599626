"""Agents: permission-bounded units of structured automation.

This package provides the agent protocol, the permission model, the toolkit
through which agents perform side effects, and the router that scores and
dispatches them.
"""

from deepcmd.agents.permissions import AgentPermissions, FileAccess
from deepcmd.agents.router import AgentRouter, AgentSuggestion, DispatchResult
from deepcmd.agents.toolkit import AgentToolkit, CommandOutput
from deepcmd.agents.types import (
    ActivationScore,
    Agent,
    AgentResult,
    Analysis,
    CodeReview,
    ExecutionMode,
    Finding,
    GitContext,
    Severity,
    Suggestion,
    Suggestions,
    Task,
    TaskContext,
)

__all__ = [
    "ActivationScore",
    "Agent",
    "AgentPermissions",
    "AgentResult",
    "AgentRouter",
    "AgentSuggestion",
    "AgentToolkit",
    "Analysis",
    "CodeReview",
    "CommandOutput",
    "DispatchResult",
    "ExecutionMode",
    "FileAccess",
    "Finding",
    "GitContext",
    "Severity",
    "Suggestion",
    "Suggestions",
    "Task",
    "TaskContext",
]
