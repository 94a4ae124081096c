"""Ordered middleware pipeline.

``MiddlewareChain`` dispatches each hook across its middlewares, sorted by
``priority`` (stable, so equal priorities run in registration order).

Failure policy
--------------

- ``before_invoke`` / ``before_tool_call`` gate correctness: a raising
  middleware aborts the call with a fatal ``MiddlewareError``. An approval
  gate that fails must never let the tool run.
- ``before_tool_call`` stops at the first middleware that does not return
  ``ContinueExecution``.
- ``after_tool_call``, ``after_invoke``, ``on_error`` and ``on_finally`` run
  every middleware in reverse priority order, so the outermost middleware
  observes the call last; failures are logged and dropped.
- ``on_state_update`` threads the state through every middleware; a failing
  middleware is logged and skipped, keeping the state it was given.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from knightagent.core.logging_config import get_logger

from ..errors import MiddlewareError
from ..schemas.domain import AgentResponse
from ..schemas.messages import ToolCall, ToolResult
from ..schemas.state import AgentState
from .base import CONTINUE, ContinueExecution, InterceptionResult, Middleware
from .context import AgentContext

logger = get_logger(__name__)


class MiddlewareChain:
    def __init__(self, middlewares: Optional[Iterable[Middleware]] = None) -> None:
        self._middlewares: List[Middleware] = []
        for m in middlewares or ():
            self.add(m)

    def add(self, middleware: Middleware) -> None:
        self._middlewares.append(middleware)
        self._middlewares.sort(key=lambda m: getattr(m, "priority", 100))

    def remove(self, middleware: Middleware) -> bool:
        try:
            self._middlewares.remove(middleware)
        except ValueError:
            return False
        return True

    @property
    def middlewares(self) -> List[Middleware]:
        return list(self._middlewares)

    def __len__(self) -> int:
        return len(self._middlewares)

    def _swallow(self, middleware: Middleware, hook: str, error: Exception) -> None:
        err = MiddlewareError(middleware.name, hook, str(error), fatal=False)
        logger.warning(f"{err}", exc_info=error)

    # ------------------------------------------------------------------
    # Gate hooks
    # ------------------------------------------------------------------

    async def before_invoke(self, ctx: AgentContext) -> None:
        """Run every ``before_invoke``; each one sees the request left by the previous."""
        for m in self._middlewares:
            try:
                await m.before_invoke(ctx.request, ctx)
            except Exception as e:
                raise MiddlewareError(m.name, "before_invoke", str(e)) from e

    async def before_tool_call(self, tool_call: ToolCall, ctx: AgentContext) -> InterceptionResult:
        for m in self._middlewares:
            try:
                result = await m.before_tool_call(tool_call, ctx)
            except Exception as e:
                raise MiddlewareError(m.name, "before_tool_call", str(e)) from e
            if result is None:
                continue
            if not isinstance(result, ContinueExecution):
                logger.debug(f"Middleware {m.name} intercepted tool call {tool_call.id}: {result}")
                return result
        return CONTINUE

    # ------------------------------------------------------------------
    # Best-effort hooks
    # ------------------------------------------------------------------

    async def after_tool_call(self, tool_call: ToolCall, result: ToolResult, ctx: AgentContext) -> None:
        for m in reversed(self._middlewares):
            try:
                await m.after_tool_call(tool_call, result, ctx)
            except Exception as e:
                self._swallow(m, "after_tool_call", e)

    async def on_state_update(self, old: AgentState, new: AgentState, ctx: AgentContext) -> AgentState:
        state = new
        for m in self._middlewares:
            try:
                updated = await m.on_state_update(old, state, ctx)
            except Exception as e:
                self._swallow(m, "on_state_update", e)
                continue
            if updated is not None:
                state = updated
        return state

    async def after_invoke(self, response: AgentResponse, ctx: AgentContext) -> None:
        for m in reversed(self._middlewares):
            try:
                await m.after_invoke(response, ctx)
            except Exception as e:
                self._swallow(m, "after_invoke", e)

    async def on_error(self, error: BaseException, ctx: AgentContext) -> None:
        for m in reversed(self._middlewares):
            try:
                await m.on_error(error, ctx)
            except Exception as e:
                self._swallow(m, "on_error", e)

    async def on_finally(self, ctx: AgentContext, error: Optional[BaseException]) -> None:
        for m in reversed(self._middlewares):
            try:
                await m.on_finally(ctx, error)
            except Exception as e:
                self._swallow(m, "on_finally", e)
