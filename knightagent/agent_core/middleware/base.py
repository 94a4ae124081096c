"""Middleware base class and interception results.

A middleware observes (and may steer) an agent call at five extension
points, in this order within one call:

1. ``before_invoke(request, ctx)``: once per call, before the loop.
2. ``before_tool_call(tool_call, ctx) -> InterceptionResult``: before each
   tool call; may let it run, pause the run or veto the call.
3. ``after_tool_call(tool_call, result, ctx)``: after each executed call.
4. ``on_state_update(old, new, ctx) -> AgentState``: once when the call
   finalizes; may rewrite the state (trimming, summarizing).
5. ``after_invoke(response, ctx)``: once per terminal return, including
   interrupted returns.

``on_error(error, ctx)`` and ``on_finally(ctx, error)`` report aborted and
finished calls. Every hook is an async no-op by default.

Interception results
--------------------

``before_tool_call`` returns one of:

- ``ContinueExecution``: run the tool.
- ``InterruptExecution(interrupt)``: persist state and return the interrupt
  to the caller; the run can be resumed later.
- ``StopExecution(reason)``: skip this call and every later one in the run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

from ..schemas.domain import AgentRequest, AgentResponse
from ..schemas.interrupts import RateLimitInterrupt, ToolApprovalInterrupt
from ..schemas.messages import ToolCall, ToolResult
from ..schemas.state import AgentState

if TYPE_CHECKING:
    from .context import AgentContext


@dataclass(frozen=True)
class ContinueExecution:
    """Let the tool call run."""

    @property
    def should_continue(self) -> bool:
        return True


@dataclass(frozen=True)
class InterruptExecution:
    """Pause the run with ``interrupt``."""

    interrupt: Union[ToolApprovalInterrupt, RateLimitInterrupt]

    @property
    def should_continue(self) -> bool:
        return False


@dataclass(frozen=True)
class StopExecution:
    """Veto the tool call and stop executing tools for this run."""

    reason: str = "stopped by middleware"

    @property
    def should_continue(self) -> bool:
        return False


InterceptionResult = Union[ContinueExecution, InterruptExecution, StopExecution]

CONTINUE = ContinueExecution()


class Middleware:
    """Base class for middlewares.

    Attributes:
        priority: Lower values run first; equal priorities keep registration
            order.
    """

    priority: int = 100

    @property
    def name(self) -> str:
        return type(self).__name__

    async def before_invoke(self, request: AgentRequest, ctx: "AgentContext") -> None:
        return None

    async def before_tool_call(self, tool_call: ToolCall, ctx: "AgentContext") -> InterceptionResult:
        return CONTINUE

    async def after_tool_call(self, tool_call: ToolCall, result: ToolResult, ctx: "AgentContext") -> None:
        return None

    async def on_state_update(self, old: AgentState, new: AgentState, ctx: "AgentContext") -> AgentState:
        return new

    async def after_invoke(self, response: AgentResponse, ctx: "AgentContext") -> None:
        return None

    async def on_error(self, error: BaseException, ctx: "AgentContext") -> None:
        return None

    async def on_finally(self, ctx: "AgentContext", error: Optional[BaseException]) -> None:
        return None
