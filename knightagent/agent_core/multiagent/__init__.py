"""Teams of agents that hand work to each other.

- ``AgentNode``: an ``Agent`` plus its routing metadata.
- ``AgentHandoff``: a transfer of control, parsed from an agent's output.
- ``HandoffStrategy``: decides the next node; ``DirectiveStrategy`` follows
  the agents' own directives, ``SupervisorStrategy`` asks a chat model.
- ``MultiAgentSystem``: runs the handoff loop.
"""

from .handoff import FINAL, AgentHandoff
from .node import AgentNode
from .strategies import DirectiveStrategy, HandoffStrategy, SupervisorStrategy
from .system import MultiAgentSystem

__all__ = [
    "FINAL",
    "AgentHandoff",
    "AgentNode",
    "DirectiveStrategy",
    "HandoffStrategy",
    "MultiAgentSystem",
    "SupervisorStrategy",
]
