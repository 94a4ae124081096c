from __future__ import annotations

import logging
from typing import Optional

import pytest

from knightagent.agent_core.middleware.base import CONTINUE, InterruptExecution
from knightagent.agent_core.middleware.builtin import (
    ApprovalMode,
    HumanInTheLoopMiddleware,
    RateLimitMiddleware,
)
from knightagent.agent_core.middleware.context import AgentContext
from knightagent.agent_core.schemas.domain import AgentRequest
from knightagent.agent_core.schemas.interrupts import RateLimitInterrupt, ToolApprovalInterrupt
from knightagent.agent_core.schemas.messages import ToolCall
from knightagent.agent_core.schemas.state import AgentState


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _ctx(thread_id: Optional[str] = "t") -> AgentContext:
    return AgentContext(request=AgentRequest(), state=AgentState(), thread_id=thread_id)


class TestHumanInTheLoop:
    @pytest.mark.parametrize(
        "mode,tools,gated",
        [
            (ApprovalMode.always, [], {"read", "delete"}),
            (ApprovalMode.never, ["delete"], set()),
            (ApprovalMode.whitelist, ["delete"], {"delete"}),
            (ApprovalMode.blacklist, ["read"], {"delete"}),
        ],
    )
    def test_modes(self, mode: ApprovalMode, tools: list, gated: set) -> None:
        hitl = HumanInTheLoopMiddleware(mode, tools)

        assert {name for name in ("read", "delete") if hitl.needs_review(ToolCall(name=name))} == gated

    def test_mode_accepts_plain_string(self) -> None:
        assert HumanInTheLoopMiddleware("always").mode is ApprovalMode.always

    @pytest.mark.asyncio
    async def test_gated_call_interrupts_with_call_and_thread(self) -> None:
        hitl = HumanInTheLoopMiddleware(tools=["delete"])
        call = ToolCall(id="c1", name="delete", arguments={"path": "/tmp/x"})

        result = await hitl.before_tool_call(call, _ctx("thread-9"))

        assert isinstance(result, InterruptExecution)
        assert isinstance(result.interrupt, ToolApprovalInterrupt)
        assert result.interrupt.tool_call == call
        assert result.interrupt.thread_id == "thread-9"

    @pytest.mark.asyncio
    async def test_ungated_call_continues(self) -> None:
        hitl = HumanInTheLoopMiddleware(tools=["delete"])

        assert await hitl.before_tool_call(ToolCall(name="read"), _ctx()) is CONTINUE

    def test_priority_override(self) -> None:
        assert HumanInTheLoopMiddleware().priority == 10
        assert HumanInTheLoopMiddleware(priority=1).priority == 1


class TestRateLimit:
    @pytest.mark.parametrize("max_calls,window", [(0, 60), (1, 0)])
    def test_rejects_invalid_limits(self, max_calls: int, window: float) -> None:
        with pytest.raises(ValueError):
            RateLimitMiddleware(max_calls, window)

    @pytest.mark.asyncio
    async def test_sliding_window(self) -> None:
        clock = _Clock()
        limiter = RateLimitMiddleware(2, 60, clock=clock)
        ctx = _ctx()

        assert await limiter.before_tool_call(ToolCall(name="a"), ctx) is CONTINUE
        clock.now = 10
        assert await limiter.before_tool_call(ToolCall(name="a"), ctx) is CONTINUE
        clock.now = 20
        blocked = await limiter.before_tool_call(ToolCall(id="c3", name="a"), ctx)

        assert isinstance(blocked, InterruptExecution)
        assert isinstance(blocked.interrupt, RateLimitInterrupt)
        assert blocked.interrupt.retry_after_seconds == pytest.approx(40)
        assert blocked.interrupt.tool_call.id == "c3"

        clock.now = 60
        assert await limiter.before_tool_call(ToolCall(name="a"), ctx) is CONTINUE

    @pytest.mark.asyncio
    async def test_blocked_call_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        limiter = RateLimitMiddleware(1, 30, clock=_Clock())
        ctx = _ctx("busy")
        await limiter.before_tool_call(ToolCall(name="a"), ctx)

        with caplog.at_level(logging.INFO, logger="knightagent.agent_core.middleware.builtin.rate_limit"):
            await limiter.before_tool_call(ToolCall(name="a"), ctx)

        assert "rate limit hit for thread busy: 1 calls in 30.0s, retry in 30.00s" in caplog.text

    @pytest.mark.asyncio
    async def test_threads_are_counted_separately(self) -> None:
        limiter = RateLimitMiddleware(1, 60, clock=_Clock())

        assert await limiter.before_tool_call(ToolCall(name="a"), _ctx("one")) is CONTINUE
        assert await limiter.before_tool_call(ToolCall(name="a"), _ctx("two")) is CONTINUE
        assert await limiter.before_tool_call(ToolCall(name="a"), _ctx(None)) is CONTINUE
        assert isinstance(await limiter.before_tool_call(ToolCall(name="a"), _ctx(None)), InterruptExecution)

    @pytest.mark.asyncio
    async def test_tools_filter(self) -> None:
        limiter = RateLimitMiddleware(1, 60, tools=["search"], clock=_Clock())
        ctx = _ctx()

        for _ in range(3):
            assert await limiter.before_tool_call(ToolCall(name="read"), ctx) is CONTINUE
        assert await limiter.before_tool_call(ToolCall(name="search"), ctx) is CONTINUE
        assert isinstance(await limiter.before_tool_call(ToolCall(name="search"), ctx), InterruptExecution)

    @pytest.mark.asyncio
    async def test_reset(self) -> None:
        limiter = RateLimitMiddleware(1, 60, clock=_Clock())
        ctx = _ctx()
        await limiter.before_tool_call(ToolCall(name="a"), ctx)

        limiter.reset("t")

        assert await limiter.before_tool_call(ToolCall(name="a"), ctx) is CONTINUE
        limiter.reset()
        assert await limiter.before_tool_call(ToolCall(name="a"), ctx) is CONTINUE
