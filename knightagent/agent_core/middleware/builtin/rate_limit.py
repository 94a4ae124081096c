from __future__ import annotations

import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Iterable, Optional

from knightagent.core.logging_config import get_logger

from ...schemas.interrupts import RateLimitInterrupt
from ...schemas.messages import ToolCall
from ..base import CONTINUE, InterceptionResult, InterruptExecution, Middleware
from ..context import AgentContext

logger = get_logger(__name__)

_GLOBAL_KEY = "__global__"


class RateLimitMiddleware(Middleware):
    """Sliding-window limit on tool calls per thread.

    When a thread has already made ``max_calls`` calls inside the last
    ``window_seconds``, the next call pauses the run with a
    ``RateLimitInterrupt`` whose ``retry_after_seconds`` is the time until
    the oldest call leaves the window. Resuming with the matching
    ``RateLimitWaitCommand`` waits that long and gates the call again.

    Args:
        max_calls: Calls allowed per window.
        window_seconds: Window length.
        tools: Restrict counting to these tool names; all tools when omitted.
        clock: Monotonic time source, replaceable in tests.
    """

    priority = 20

    def __init__(
        self,
        max_calls: int,
        window_seconds: float,
        *,
        tools: Optional[Iterable[str]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_calls <= 0:
            raise ValueError("max_calls must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self.tools = frozenset(tools) if tools is not None else None
        self._clock = clock
        self._calls: Dict[str, Deque[float]] = defaultdict(deque)

    def _applies_to(self, tool_call: ToolCall) -> bool:
        return self.tools is None or tool_call.name in self.tools

    def reset(self, thread_id: Optional[str] = None) -> None:
        if thread_id is None:
            self._calls.clear()
        else:
            self._calls.pop(thread_id, None)

    async def before_tool_call(self, tool_call: ToolCall, ctx: AgentContext) -> InterceptionResult:
        if not self._applies_to(tool_call):
            return CONTINUE

        now = self._clock()
        calls = self._calls[ctx.thread_id or _GLOBAL_KEY]
        while calls and now - calls[0] >= self.window_seconds:
            calls.popleft()

        if len(calls) >= self.max_calls:
            retry_after = max(0.0, self.window_seconds - (now - calls[0]))
            logger.info(
                f"rate limit hit for thread {ctx.thread_id}: {len(calls)} calls in "
                f"{self.window_seconds:.1f}s, retry in {retry_after:.2f}s"
            )
            return InterruptExecution(
                RateLimitInterrupt(retry_after_seconds=retry_after, tool_call=tool_call, thread_id=ctx.thread_id)
            )

        calls.append(now)
        return CONTINUE
