"""Operator approval gate for tool calls.

``HumanInTheLoopMiddleware`` decides per tool name whether a call may run
straight away or must wait for an operator. Gated calls pause the run with a
``ToolApprovalInterrupt``; the caller answers through ``Agent.resume`` with
an ``ApprovalRequest`` carrying the decision.

Review modes
------------

- ``always``: every call is reviewed.
- ``whitelist``: only the listed tools are reviewed (the default).
- ``blacklist``: every tool except the listed ones is reviewed.
- ``never``: nothing is reviewed.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from knightagent.core.logging_config import get_logger

from ...schemas.interrupts import ToolApprovalInterrupt
from ...schemas.messages import ToolCall
from ..base import CONTINUE, InterceptionResult, InterruptExecution, Middleware
from ..context import AgentContext

logger = get_logger(__name__)


class ApprovalMode(str, Enum):
    always = "always"
    whitelist = "whitelist"
    blacklist = "blacklist"
    never = "never"


class HumanInTheLoopMiddleware(Middleware):
    priority = 10

    def __init__(
        self,
        mode: ApprovalMode = ApprovalMode.whitelist,
        tools: Optional[Iterable[str]] = None,
        *,
        priority: Optional[int] = None,
    ) -> None:
        self.mode = ApprovalMode(mode)
        self.tools = frozenset(tools or ())
        if priority is not None:
            self.priority = priority

    def needs_review(self, tool_call: ToolCall) -> bool:
        if self.mode is ApprovalMode.always:
            return True
        if self.mode is ApprovalMode.never:
            return False
        if self.mode is ApprovalMode.whitelist:
            return tool_call.name in self.tools
        return tool_call.name not in self.tools

    async def before_tool_call(self, tool_call: ToolCall, ctx: AgentContext) -> InterceptionResult:
        if not self.needs_review(tool_call):
            return CONTINUE
        logger.info(f"tool {tool_call.name} [{tool_call.id}] needs operator approval")
        return InterruptExecution(ToolApprovalInterrupt(tool_call=tool_call, thread_id=ctx.thread_id))
