from __future__ import annotations

import pytest

from knightagent.agent_core.errors import MiddlewareError
from knightagent.agent_core.middleware.base import (
    CONTINUE,
    ContinueExecution,
    InterruptExecution,
    Middleware,
    StopExecution,
)
from knightagent.agent_core.middleware.chain import MiddlewareChain
from knightagent.agent_core.middleware.context import AgentContext
from knightagent.agent_core.schemas.approval import ApprovalRequest
from knightagent.agent_core.schemas.domain import AgentRequest, AgentResponse
from knightagent.agent_core.schemas.interrupts import ToolApprovalInterrupt
from knightagent.agent_core.schemas.messages import HumanMessage, ToolCall, ToolResult
from knightagent.agent_core.schemas.state import AgentState
from test.fakes import RecordingMiddleware


@pytest.fixture
def ctx() -> AgentContext:
    return AgentContext(request=AgentRequest(input="hi"), state=AgentState(), thread_id="t")


class _AppendMessage(Middleware):
    def __init__(self, text: str) -> None:
        self.text = text

    async def on_state_update(self, old: AgentState, new: AgentState, ctx: AgentContext) -> AgentState:
        return new.add_message(HumanMessage(content=self.text))


class _RewritePrompt(Middleware):
    async def before_invoke(self, request: AgentRequest, ctx: AgentContext) -> None:
        ctx.request = request.model_copy(update={"system_prompt": (request.system_prompt or "") + "!"})


def test_interception_results() -> None:
    interrupt = InterruptExecution(ToolApprovalInterrupt(tool_call=ToolCall(name="x")))

    assert CONTINUE.should_continue
    assert isinstance(CONTINUE, ContinueExecution)
    assert not interrupt.should_continue
    assert not StopExecution().should_continue
    assert StopExecution().reason


def test_default_middleware_name_and_priority() -> None:
    class Audit(Middleware):
        pass

    assert Audit().name == "Audit"
    assert Audit().priority == 100


@pytest.mark.asyncio
async def test_before_hooks_run_in_priority_and_after_hooks_in_reverse(ctx: AgentContext) -> None:
    log = []
    chain = MiddlewareChain(
        [
            RecordingMiddleware("late", log=log, priority=200),
            RecordingMiddleware("first", log=log, priority=100),
            RecordingMiddleware("second", log=log, priority=100),
            RecordingMiddleware("early", log=log, priority=1),
        ]
    )

    await chain.before_invoke(ctx)
    await chain.after_invoke(AgentResponse(), ctx)

    names = [name for name, _ in log]
    assert names == ["early", "first", "second", "late", "late", "second", "first", "early"]
    assert [m.name for m in chain.middlewares] == ["early", "first", "second", "late"]


@pytest.mark.asyncio
async def test_before_invoke_sees_rewritten_request(ctx: AgentContext) -> None:
    chain = MiddlewareChain([_RewritePrompt(), _RewritePrompt()])

    await chain.before_invoke(ctx)

    assert ctx.request.system_prompt == "!!"


@pytest.mark.asyncio
async def test_before_invoke_failure_is_fatal(ctx: AgentContext) -> None:
    chain = MiddlewareChain([RecordingMiddleware("bad", fail_on=("before_invoke",))])

    with pytest.raises(MiddlewareError) as excinfo:
        await chain.before_invoke(ctx)

    assert excinfo.value.fatal is True
    assert excinfo.value.middleware == "bad"


@pytest.mark.asyncio
async def test_before_tool_call_stops_at_first_non_continue(ctx: AgentContext) -> None:
    log = []
    interrupt = InterruptExecution(ToolApprovalInterrupt(tool_call=ToolCall(name="x")))
    chain = MiddlewareChain(
        [
            RecordingMiddleware("pass", log=log, priority=1),
            RecordingMiddleware("gate", log=log, priority=2, decide=lambda c, x: interrupt),
            RecordingMiddleware("never", log=log, priority=3),
        ]
    )

    result = await chain.before_tool_call(ToolCall(name="x"), ctx)

    assert result is interrupt
    assert [name for name, _ in log] == ["pass", "gate"]


@pytest.mark.asyncio
async def test_before_tool_call_none_counts_as_continue(ctx: AgentContext) -> None:
    chain = MiddlewareChain([RecordingMiddleware(decide=lambda c, x: None)])

    assert await chain.before_tool_call(ToolCall(name="x"), ctx) is CONTINUE


@pytest.mark.asyncio
async def test_before_tool_call_failure_is_fatal(ctx: AgentContext) -> None:
    chain = MiddlewareChain([RecordingMiddleware(fail_on=("before_tool_call",))])

    with pytest.raises(MiddlewareError):
        await chain.before_tool_call(ToolCall(name="x"), ctx)


@pytest.mark.asyncio
async def test_after_hooks_continue_past_failures(ctx: AgentContext) -> None:
    log = []
    bad = RecordingMiddleware("bad", log=log, priority=1, fail_on=("after_tool_call", "after_invoke", "on_error", "on_finally"))
    good = RecordingMiddleware("good", log=log, priority=2)
    chain = MiddlewareChain([bad, good])

    await chain.after_tool_call(ToolCall(name="x"), ToolResult(), ctx)
    await chain.after_invoke(AgentResponse(), ctx)
    await chain.on_error(RuntimeError("x"), ctx)
    await chain.on_finally(ctx, None)

    assert good.hooks() == ["after_tool_call", "after_invoke", "on_error", "on_finally"]


@pytest.mark.asyncio
async def test_on_state_update_threads_state_and_skips_failures(ctx: AgentContext) -> None:
    chain = MiddlewareChain(
        [_AppendMessage("a"), RecordingMiddleware(fail_on=("on_state_update",)), _AppendMessage("b")]
    )

    state = await chain.on_state_update(AgentState(), AgentState(), ctx)

    assert [m.content for m in state.messages] == ["a", "b"]


def test_add_and_remove(ctx: AgentContext) -> None:
    chain = MiddlewareChain()
    m = RecordingMiddleware()

    chain.add(m)
    assert len(chain) == 1
    assert chain.remove(m) is True
    assert chain.remove(m) is False


class TestAgentContext:
    def test_scratch_data(self, ctx: AgentContext) -> None:
        ctx.set("k", 1)

        assert ctx.get("k") == 1
        assert ctx.contains("k")
        assert ctx.get("missing", "d") == "d"

    def test_request_stop(self, ctx: AgentContext) -> None:
        ctx.request_stop()

        assert ctx.is_stopped
        assert ctx.stop_reason == "stopped"

    def test_pending_approval(self, ctx: AgentContext) -> None:
        call = ToolCall(id="c1", name="x")
        ctx.set_pending_approval(ApprovalRequest.from_tool_call(call))

        assert ctx.has_pending_interrupt
        assert ctx.pending_approval.tool_call.id == "c1"
        assert ctx.pending_approval.thread_id == "t"
        ctx.clear_pending_interrupt()
        assert ctx.pending_approval is None

    def test_prompt_and_iteration_resolution(self) -> None:
        from knightagent.agent_core.schemas.config import AgentConfig, ChatOptions

        config = AgentConfig(max_iterations=4, chat_options=ChatOptions(system_prompt="from options"))
        ctx = AgentContext(request=AgentRequest(), state=AgentState(), config=config)

        assert ctx.system_prompt == "from options"
        assert ctx.max_iterations == 4
        ctx.request = AgentRequest(system_prompt="from request", max_iterations=2)
        assert ctx.system_prompt == "from request"
        assert ctx.max_iterations == 2


@pytest.mark.asyncio
async def test_outer_middleware_observes_completion_last(ctx: AgentContext) -> None:
    log = []
    outer = RecordingMiddleware("outer", log=log, priority=10)
    inner = RecordingMiddleware("inner", log=log, priority=20)
    chain = MiddlewareChain([outer, inner])

    await chain.after_tool_call(ToolCall(name="x"), ToolResult(), ctx)
    await chain.after_invoke(AgentResponse(), ctx)
    await chain.on_error(RuntimeError("x"), ctx)
    await chain.on_finally(ctx, None)

    assert [name for name, _ in log] == ["inner", "outer"] * 4
