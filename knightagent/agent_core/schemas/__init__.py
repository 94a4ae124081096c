"""Pydantic models shared across the agent runtime.

- ``messages``: the transcript model (system/human/ai/tool) and tool calls.
- ``approval``: operator decisions on gated tool calls.
- ``interrupts``: pause reasons and the commands that resume them.
- ``domain``: requests, responses, checkpoint metadata and status.
- ``state``: the immutable, versioned conversation state.
- ``config``: agent and model call configuration, tool descriptors.
"""

from .approval import ApprovalDecision, ApprovalRequest
from .config import AgentConfig, ChatOptions, ToolDescriptor
from .domain import AgentRequest, AgentResponse, AgentStatus, CheckpointInfo
from .interrupts import (
    ApprovalInterruptCommand,
    Interrupt,
    InterruptCommand,
    RateLimitInterrupt,
    RateLimitWaitCommand,
    ToolApprovalInterrupt,
)
from .messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    Message,
    SystemMessage,
    ToolCall,
    ToolMessage,
    ToolResult,
)
from .state import AgentState

__all__ = [
    "AIMessage",
    "AgentConfig",
    "AgentRequest",
    "AgentResponse",
    "AgentState",
    "AgentStatus",
    "ApprovalDecision",
    "ApprovalInterruptCommand",
    "ApprovalRequest",
    "BaseMessage",
    "ChatOptions",
    "CheckpointInfo",
    "HumanMessage",
    "Interrupt",
    "InterruptCommand",
    "Message",
    "RateLimitInterrupt",
    "RateLimitWaitCommand",
    "SystemMessage",
    "ToolApprovalInterrupt",
    "ToolCall",
    "ToolMessage",
    "ToolResult",
    "ToolDescriptor",
]
