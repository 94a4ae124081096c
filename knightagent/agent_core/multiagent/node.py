from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..agent import Agent


@dataclass
class AgentNode:
    """An ``Agent`` registered in a ``MultiAgentSystem``.

    Attributes:
        name: Unique node name used for routing.
        agent: The agent that does the work.
        description: What the agent is good at; shown to supervisors and
            added to the agent's system prompt.
        tags: Free-form capability labels.
        can_return_result: Whether this node's reply may end the run when it
            does not ask for a handoff.
        priority: Lower runs first when several nodes fit.
        enabled: Disabled nodes are never routed to.
    """

    name: str
    agent: Agent
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    can_return_result: bool = True
    priority: int = 100
    enabled: bool = True

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def can_handle(self, tags: Optional[Iterable[str]]) -> bool:
        """True when either side is untagged or the tag sets overlap."""
        wanted = list(tags or ())
        if not self.tags or not wanted:
            return True
        return any(t in self.tags for t in wanted)
