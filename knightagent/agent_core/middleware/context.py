"""Mutable execution context shared by the loop and its middlewares.

One ``AgentContext`` lives for exactly one ``invoke``/``stream``/``resume``
call. It carries:

- ``request``: the current ``AgentRequest``. ``before_invoke`` hooks may
  replace it (e.g. to rewrite the system prompt).
- ``state``: the latest ``AgentState`` the loop produced.
- ``iteration``: number of model calls made so far in this logical run.
- ``status``: the current ``AgentStatus``.
- ``pending_interrupt``: set by a ``before_tool_call`` hook to pause the run.
- ``data``: free-form scratch space for middlewares.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from ..cancellation import CancellationToken
from ..schemas.approval import ApprovalRequest
from ..schemas.config import AgentConfig
from ..schemas.domain import AgentRequest, AgentResponse, AgentStatus
from ..schemas.interrupts import RateLimitInterrupt, ToolApprovalInterrupt
from ..schemas.state import AgentState


@dataclass
class AgentContext:
    request: AgentRequest
    state: AgentState
    config: AgentConfig = field(default_factory=AgentConfig)
    thread_id: Optional[str] = None
    status: AgentStatus = AgentStatus.idle
    iteration: int = 0
    response: Optional[AgentResponse] = None
    data: Dict[str, Any] = field(default_factory=dict)
    pending_interrupt: Optional[Union[ToolApprovalInterrupt, RateLimitInterrupt]] = None
    cancellation: Optional[CancellationToken] = None
    stop_reason: Optional[str] = None

    # ------------------------------------------------------------------
    # Scratch data
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def contains(self, key: str) -> bool:
        return key in self.data

    # ------------------------------------------------------------------
    # Stop / cancellation
    # ------------------------------------------------------------------

    def request_stop(self, reason: Optional[str] = None) -> None:
        self.stop_reason = reason or "stopped"

    @property
    def is_stopped(self) -> bool:
        if self.stop_reason is not None:
            return True
        return self.cancellation is not None and self.cancellation.is_cancelled

    # ------------------------------------------------------------------
    # Interrupt slot
    # ------------------------------------------------------------------

    @property
    def has_pending_interrupt(self) -> bool:
        return self.pending_interrupt is not None

    @property
    def pending_approval(self) -> Optional[ApprovalRequest]:
        if isinstance(self.pending_interrupt, ToolApprovalInterrupt):
            return self.pending_interrupt.to_approval_request()
        return None

    def set_pending_approval(self, approval: ApprovalRequest) -> None:
        """Request operator approval for ``approval.tool_call``."""
        self.pending_interrupt = ToolApprovalInterrupt(tool_call=approval.tool_call, thread_id=self.thread_id)

    def clear_pending_interrupt(self) -> None:
        self.pending_interrupt = None

    # ------------------------------------------------------------------
    # Prompt resolution
    # ------------------------------------------------------------------

    @property
    def system_prompt(self) -> Optional[str]:
        return self.request.system_prompt or self.config.system_prompt or self.config.chat_options.system_prompt

    @property
    def max_iterations(self) -> int:
        return self.request.max_iterations or self.config.max_iterations
