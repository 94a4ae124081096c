from __future__ import annotations

import logging
from typing import Optional

from knightagent.core.logging_config import get_logger

from ...schemas.domain import AgentRequest, AgentResponse
from ...schemas.messages import ToolCall, ToolResult
from ...schemas.state import AgentState
from ..base import CONTINUE, InterceptionResult, Middleware
from ..context import AgentContext


class LoggingMiddleware(Middleware):
    """Logs requests, responses and tool calls of every agent call."""

    priority = 0

    def __init__(
        self,
        *,
        log_requests: bool = True,
        log_responses: bool = True,
        log_tool_calls: bool = True,
        log_state_changes: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.log_tool_calls = log_tool_calls
        self.log_state_changes = log_state_changes
        self._logger = logger or get_logger(__name__)

    async def before_invoke(self, request: AgentRequest, ctx: AgentContext) -> None:
        if not self.log_requests:
            return
        self._logger.info(
            f"agent {ctx.config.name} request started thread={ctx.thread_id} "
            f"user={request.user_id} max_iterations={ctx.max_iterations}"
        )
        self._logger.debug(f"input: {request.input}")
        if request.system_prompt:
            self._logger.debug(f"system prompt: {request.system_prompt}")

    async def before_tool_call(self, tool_call: ToolCall, ctx: AgentContext) -> InterceptionResult:
        if self.log_tool_calls:
            self._logger.info(f"-> tool call {tool_call.name} [{tool_call.id}]")
            self._logger.debug(f"   arguments: {tool_call.arguments}")
        return CONTINUE

    async def after_tool_call(self, tool_call: ToolCall, result: ToolResult, ctx: AgentContext) -> None:
        if not self.log_tool_calls:
            return
        if result.error:
            self._logger.warning(f"<- tool call {tool_call.name} failed: {result.error_message}")
        else:
            self._logger.info(f"<- tool call {tool_call.name} [{tool_call.id}] done, {len(result.result)} chars")

    async def on_state_update(self, old: AgentState, new: AgentState, ctx: AgentContext) -> AgentState:
        if self.log_state_changes:
            self._logger.debug(f"state update: version {old.version} -> {new.version}, {new.message_count} messages")
        return new

    async def after_invoke(self, response: AgentResponse, ctx: AgentContext) -> None:
        if not self.log_responses:
            return
        self._logger.info(
            f"agent {ctx.config.name} request finished status={response.status.value} "
            f"messages={len(response.messages)} tool_calls={len(response.tool_calls)} "
            f"tokens={response.tokens_used} duration={response.duration_ms:.0f}ms"
        )

    async def on_error(self, error: BaseException, ctx: AgentContext) -> None:
        self._logger.error(f"agent {ctx.config.name} failed at iteration {ctx.iteration}: {error}")
