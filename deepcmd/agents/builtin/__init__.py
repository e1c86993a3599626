"""Built-in agents available by default."""

from deepcmd.agents.builtin.review import ReviewAgent
from deepcmd.agents.builtin.security import SecurityAgent
from deepcmd.agents.types import Agent


def builtin_agents() -> list[Agent]:
    """Return fresh instances of the built-in agents, in registration order."""
    return [ReviewAgent(), SecurityAgent()]


__all__ = ["ReviewAgent", "SecurityAgent", "builtin_agents"]
