"""LangGraph-based execution runtime for agent calls.

The runtime takes one ``AgentContext`` and drives the ReAct loop over it:
model calls, gated tool execution, suspension on interrupts and finalization
with checkpointing. The main entry point is ``ReActStrategy``; its
collaborators are bundled in ``ExecutionDeps``.
"""

from .engine import INTERRUPT_TAG, ReActStrategy, unanswered_tool_calls
from .models import ExecutionDeps

__all__ = [
    "INTERRUPT_TAG",
    "ReActStrategy",
    "unanswered_tool_calls",
    "ExecutionDeps",
]
