"""Domain models exchanged with callers of the agent runtime.

- ``AgentRequest`` is one unit of work for ``Agent.invoke``/``stream``.
- ``AgentResponse`` is what every terminal return produces, including
  interrupted returns. A response that carries ``approval_request`` (or any
  ``interrupt``) is a successful outcome, not an error: callers must check
  ``requires_approval``/``is_interrupted`` before treating it as final.
- ``CheckpointInfo`` describes one stored checkpoint without its payload.
- ``AgentStatus`` is the machine-readable execution phase kept on the
  context while a call runs.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from .approval import ApprovalRequest
from .base import BaseSchema, _utc_now
from .interrupts import Interrupt
from .messages import AIMessage, Message, ToolCall
from .state import AgentState


class AgentStatus(str, Enum):
    idle = "idle"
    ready = "ready"
    running = "running"
    waiting_for_tool = "waiting_for_tool"
    waiting_for_approval = "waiting_for_approval"
    waiting_for_rate_limit = "waiting_for_rate_limit"
    error = "error"
    stopped = "stopped"


class CheckpointInfo(BaseSchema):
    """Metadata of a stored checkpoint."""

    checkpoint_id: str
    thread_id: str
    sequence: int = Field(ge=1)
    version: int
    created_at: datetime = Field(default_factory=_utc_now)
    tag: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def has_tag(self, tag: Optional[str] = None) -> bool:
        if tag is None:
            return self.tag is not None
        return self.tag == tag


class AgentRequest(BaseSchema):
    """One unit of work for the agent."""

    input: str = ""
    thread_id: Optional[str] = None
    system_prompt: Optional[str] = None
    max_iterations: Optional[int] = Field(default=None, ge=1)
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    stream_enabled: Optional[bool] = None

    @property
    def has_input(self) -> bool:
        return bool(self.input and self.input.strip())


class AgentResponse(BaseSchema):
    """Result of an invoke, stream or resume call."""

    output: str = ""
    messages: List[Message] = Field(default_factory=list)
    tool_calls: List[ToolCall] = Field(default_factory=list)
    state: Optional[AgentState] = None
    thread_id: Optional[str] = None
    checkpoint_id: Optional[str] = None
    approval_request: Optional[ApprovalRequest] = None
    interrupt: Optional[Interrupt] = None
    status: AgentStatus = AgentStatus.idle
    duration_ms: float = 0.0
    tokens_used: Optional[int] = None
    start_time: datetime = Field(default_factory=_utc_now)
    end_time: datetime = Field(default_factory=_utc_now)
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def requires_approval(self) -> bool:
        return self.approval_request is not None

    @property
    def is_interrupted(self) -> bool:
        return self.interrupt is not None

    @property
    def final_message(self) -> Optional[AIMessage]:
        for message in reversed(self.messages):
            if isinstance(message, AIMessage):
                return message
        return None
