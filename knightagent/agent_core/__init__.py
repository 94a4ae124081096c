"""Core agent runtime: state, tools, middleware, checkpoints and the loop.

Design overview
---------------

An ``Agent`` answers a request by running the ReAct loop over a thread's
``AgentState``:

- The state is an immutable, versioned transcript plus a data map. Every
  change produces a new state; only reducers and summarizers replace the
  transcript wholesale.
- Each iteration sends ``[system prompt] + transcript`` to the ``ChatModel``.
  Tool calls in the reply run sequentially through the ``ToolInvoker``,
  whose failures come back as error tool messages instead of exceptions.
- Middlewares observe and steer the loop. A ``before_tool_call`` hook may
  interrupt the run (operator approval, rate limits); the loop then
  checkpoints the state and returns the interrupt with the checkpoint id.
- ``Agent.resume`` continues from that checkpoint with the operator's
  decision (allow, reject or edit the arguments).

Typical usage
-------------

1. Build an agent with ``AgentBuilder`` or ``build_agent``.
2. ``await agent.invoke(AgentRequest(input=..., thread_id=...))``.
3. If ``response.requires_approval``, decide on ``response.approval_request``
   and ``await agent.resume(response.checkpoint_id, approval)``.
"""

from .agent import Agent
from .cancellation import CancellationToken
from .checkpoint import Checkpointer, InMemoryCheckpointer, SqlCheckpointer
from .errors import (
    AgentErrorCode,
    AgentExecutionError,
    CheckpointError,
    CheckpointErrorKind,
    KnightAgentError,
    MiddlewareError,
    ModelError,
    ModelErrorCode,
    ToolExecutionError,
)
from .factory import AgentBuilder, build_agent, build_sql_checkpointer
from .middleware import (
    AgentContext,
    ContinueExecution,
    InterruptExecution,
    Middleware,
    MiddlewareChain,
    StopExecution,
)
from .model import ChatModel, ModelCapabilities, PydanticAIChatModel, StreamCallback
from .multiagent import AgentHandoff, AgentNode, MultiAgentSystem, SupervisorStrategy
from .reducers import compose, identity, limit_messages
from .schemas import (
    AgentConfig,
    AgentRequest,
    AgentResponse,
    AgentState,
    AgentStatus,
    AIMessage,
    ApprovalDecision,
    ApprovalRequest,
    ChatOptions,
    HumanMessage,
    SystemMessage,
    ToolCall,
    ToolMessage,
    ToolResult,
)
from .tools import BaseTool, FunctionTool, Tool, ToolInvoker, tool

__all__ = [
    "Agent",
    "AgentBuilder",
    "build_agent",
    "build_sql_checkpointer",
    "CancellationToken",
    "Checkpointer",
    "InMemoryCheckpointer",
    "SqlCheckpointer",
    "AgentErrorCode",
    "AgentExecutionError",
    "CheckpointError",
    "CheckpointErrorKind",
    "KnightAgentError",
    "MiddlewareError",
    "ModelError",
    "ModelErrorCode",
    "ToolExecutionError",
    "AgentContext",
    "ContinueExecution",
    "InterruptExecution",
    "Middleware",
    "MiddlewareChain",
    "StopExecution",
    "ChatModel",
    "ModelCapabilities",
    "PydanticAIChatModel",
    "StreamCallback",
    "AgentHandoff",
    "AgentNode",
    "MultiAgentSystem",
    "SupervisorStrategy",
    "compose",
    "identity",
    "limit_messages",
    "AgentConfig",
    "AgentRequest",
    "AgentResponse",
    "AgentState",
    "AgentStatus",
    "AIMessage",
    "ApprovalDecision",
    "ApprovalRequest",
    "ChatOptions",
    "HumanMessage",
    "SystemMessage",
    "ToolCall",
    "ToolMessage",
    "ToolResult",
    "BaseTool",
    "FunctionTool",
    "Tool",
    "ToolInvoker",
    "tool",
]
