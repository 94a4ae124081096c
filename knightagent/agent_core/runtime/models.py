from __future__ import annotations

"""Runtime dependency bundle and LangGraph state types.

- ``ExecutionDeps`` collects what the ReAct loop needs from its agent: the
  model, the tool invoker, an optional checkpointer, the middleware chain and
  the agent configuration.
- ``_LoopState`` is the state passed between LangGraph nodes for one call.

The mutable ``AgentContext`` rides along in the graph state by reference;
nodes update it in place and return only the routing keys they change.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, NotRequired, Optional, Required, TypedDict

from ..checkpoint.interfaces import Checkpointer
from ..middleware.chain import MiddlewareChain
from ..middleware.context import AgentContext
from ..model.base import ChatModel
from ..model.streaming import StreamCallback
from ..schemas.config import AgentConfig
from ..schemas.messages import ToolCall
from ..schemas.state import AgentState
from ..tools.registry import ToolInvoker


@dataclass(frozen=True)
class ExecutionDeps:
    """Dependency bundle for ``ReActStrategy``.

    Built once per ``Agent`` and shared by all of its calls. ``checkpointer``
    may be ``None``; calls then never load or persist state.
    """

    model: ChatModel
    tools: ToolInvoker
    chain: MiddlewareChain
    config: AgentConfig
    checkpointer: Optional[Checkpointer] = None


class _LoopState(TypedDict):
    """LangGraph state for a single invoke/resume call.

    Required keys:

    - ``ctx``: the call's ``AgentContext``.
    - ``initial_state``: state the call started from, handed to the reducer.
    - ``base_message_count``: transcript length before this call added
      anything; later messages belong to this call.
    - ``pending_calls``: tool calls still to process, in model order.
    - ``started_at``: ``time.perf_counter()`` at call start.
    - ``start_time``: wall-clock start reported on the response.

    Optional keys:

    - ``stream``: sink for streamed output.
    - ``_next``: routing decision of the last node.
    """

    ctx: Required[AgentContext]
    initial_state: Required[AgentState]
    base_message_count: Required[int]
    pending_calls: Required[List[ToolCall]]
    started_at: Required[float]
    start_time: Required[datetime]
    stream: NotRequired[Optional[StreamCallback]]
    _next: NotRequired[str]
