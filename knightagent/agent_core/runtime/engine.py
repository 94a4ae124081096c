from __future__ import annotations

"""LangGraph ReAct execution strategy.

``ReActStrategy`` runs the reason-act loop for one ``invoke``/``stream`` or
``resume`` call over a shared ``AgentContext``.

Execution model
--------------

The loop is a LangGraph state machine::

    start -> model_call <-> tool_exec -> suspend -> END
                  |             |
                  +--> finalize <+--> END

- ``start`` enters at ``tool_exec`` when a resumed call still has tool calls
  of the last AI message to process, otherwise at ``model_call``.
- ``model_call`` sends ``[system prompt] + transcript`` to the model with the
  registered tool descriptors and appends the reply. A reply without tool
  calls, a stopped context or an exhausted iteration budget route to
  ``finalize``.
- ``tool_exec`` gates each call through ``before_tool_call`` and runs the
  allowed ones sequentially, appending one tool message per executed call.
- ``suspend`` persists the state under the ``interrupt`` tag and returns the
  interrupt to the caller.
- ``finalize`` applies the state reducer and ``on_state_update`` hooks,
  writes the final checkpoint and builds the response.

Pause/resume
------------

Suspension writes the transcript as it stands: the AI message that
requested the gated call is the last AI message, and the gated call has no
tool message yet. ``resume`` and ``resume_after_wait`` rebuild the position
from that transcript alone, so any checkpoint written by ``suspend`` can be
resumed by a different process.

Failures
--------

Model, checkpoint and middleware failures abort the call and surface as
``AgentExecutionError`` whose ``__cause__`` is the typed error. Nothing is
checkpointed on that path; the thread replays from its last good checkpoint.
"""

import asyncio
import time
from typing import Iterable, List, Optional, Tuple
from uuid import uuid4

from langgraph.graph import END, StateGraph

from knightagent.core.logging_config import get_logger

from ..errors import (
    AgentErrorCode,
    AgentExecutionError,
    CheckpointError,
    MiddlewareError,
    ModelError,
    ModelErrorCode,
)
from ..middleware.base import InterruptExecution, StopExecution
from ..middleware.context import AgentContext
from ..model.streaming import StreamCallback, StreamCompleteResponse
from ..schemas.approval import DEFAULT_REJECT_REASON, ApprovalDecision, ApprovalRequest
from ..schemas.base import _utc_now
from ..schemas.domain import AgentResponse, AgentStatus
from ..schemas.interrupts import RateLimitInterrupt, ToolApprovalInterrupt
from ..schemas.messages import AIMessage, HumanMessage, Message, SystemMessage, ToolCall, ToolMessage
from ..schemas.state import AgentState
from .models import ExecutionDeps, _LoopState

logger = get_logger(__name__)

INTERRUPT_TAG = "interrupt"
REJECTED_PREFIX = "[user rejected]"


def _wrap_error(error: Exception) -> AgentExecutionError:
    if isinstance(error, AgentExecutionError):
        return error
    if isinstance(error, ModelError):
        return AgentExecutionError(f"model call failed: {error}", code=AgentErrorCode.model_error)
    if isinstance(error, CheckpointError):
        return AgentExecutionError(f"checkpoint operation failed: {error}", code=AgentErrorCode.checkpoint_error)
    if isinstance(error, MiddlewareError):
        return AgentExecutionError(f"middleware failed: {error}", code=AgentErrorCode.middleware_error)
    return AgentExecutionError(f"agent execution failed: {error}", code=AgentErrorCode.agent_error)


def unanswered_tool_calls(state: AgentState) -> List[ToolCall]:
    """Tool calls of the last AI message that have no tool message yet, in model order."""
    last_ai_index = None
    for index in range(len(state.messages) - 1, -1, -1):
        if isinstance(state.messages[index], AIMessage):
            last_ai_index = index
            break
    if last_ai_index is None:
        return []
    answered = {m.tool_call_id for m in state.messages[last_ai_index + 1 :] if isinstance(m, ToolMessage)}
    ai_message = state.messages[last_ai_index]
    return [call for call in ai_message.tool_calls if call.id not in answered]


def _split_at(calls: List[ToolCall], tool_call_id: str) -> Tuple[ToolCall, List[ToolCall]]:
    for index, call in enumerate(calls):
        if call.id == tool_call_id:
            return call, calls[index + 1 :]
    raise AgentExecutionError(
        f"tool call '{tool_call_id}' is not pending in the checkpointed transcript",
        code=AgentErrorCode.agent_error,
    )


class ReActStrategy:
    """Run the ReAct loop with middleware, checkpointing and suspension.

    One strategy instance serves every call of its ``Agent``; all per-call
    data lives on the ``AgentContext`` and the graph state.
    """

    def __init__(self, deps: ExecutionDeps) -> None:
        self._deps = deps
        self._graph = self._build_graph()

    def _build_graph(self):
        """Build and compile the LangGraph state machine."""
        g: StateGraph = StateGraph(_LoopState)
        g.add_node("start", self._node_start)
        g.add_node("model_call", self._node_model_call)
        g.add_node("tool_exec", self._node_tool_exec)
        g.add_node("suspend", self._node_suspend)
        g.add_node("finalize", self._node_finalize)

        g.set_entry_point("start")
        g.add_conditional_edges(
            "start",
            self._route,
            {"model_call": "model_call", "tool_exec": "tool_exec"},
        )
        g.add_conditional_edges(
            "model_call",
            self._route,
            {"tool_exec": "tool_exec", "finalize": "finalize"},
        )
        g.add_conditional_edges(
            "tool_exec",
            self._route,
            {"model_call": "model_call", "suspend": "suspend"},
        )
        g.add_edge("suspend", END)
        g.add_edge("finalize", END)
        return g.compile()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def execute(self, ctx: AgentContext, *, stream: Optional[StreamCallback] = None) -> AgentResponse:
        """Run a fresh turn: load the thread, append the input and loop."""
        return await self._guard(ctx, stream, self._execute(ctx, stream))

    async def resume(
        self,
        ctx: AgentContext,
        checkpoint_id: str,
        approval: ApprovalRequest,
        *,
        stream: Optional[StreamCallback] = None,
    ) -> AgentResponse:
        """Apply an operator decision to the suspended call and continue the loop."""
        return await self._guard(ctx, stream, self._resume(ctx, checkpoint_id, approval, stream))

    async def resume_after_wait(
        self,
        ctx: AgentContext,
        checkpoint_id: str,
        tool_call: Optional[ToolCall] = None,
        *,
        stream: Optional[StreamCallback] = None,
    ) -> AgentResponse:
        """Continue a rate-limited run; the suspended call is gated again."""
        return await self._guard(ctx, stream, self._resume_after_wait(ctx, checkpoint_id, tool_call, stream))

    async def _guard(self, ctx: AgentContext, stream: Optional[StreamCallback], call) -> AgentResponse:
        try:
            return await call
        except Exception as e:
            error = _wrap_error(e)
            ctx.status = AgentStatus.error
            logger.error(f"Agent {ctx.config.name} failed on thread {ctx.thread_id}: {error}")
            await self._deps.chain.on_error(error, ctx)
            if stream is not None:
                try:
                    await stream.on_error(error)
                except Exception as callback_error:
                    logger.warning(f"Stream callback on_error failed: {callback_error}")
            if error is e:
                raise
            raise error from e

    async def _execute(self, ctx: AgentContext, stream: Optional[StreamCallback]) -> AgentResponse:
        started_at = time.perf_counter()
        start_time = _utc_now()
        if stream is not None:
            await stream.on_start()

        initial = await self._load_latest(ctx.thread_id)
        state = initial
        if ctx.request.has_input:
            state = state.add_message(HumanMessage(content=ctx.request.input, user_id=ctx.request.user_id))
        ctx.state = state
        ctx.status = AgentStatus.ready

        await self._deps.chain.before_invoke(ctx)
        return await self._run(
            {
                "ctx": ctx,
                "initial_state": initial,
                "base_message_count": len(initial.messages),
                "pending_calls": [],
                "started_at": started_at,
                "start_time": start_time,
                "stream": stream,
            }
        )

    async def _resume(
        self,
        ctx: AgentContext,
        checkpoint_id: str,
        approval: ApprovalRequest,
        stream: Optional[StreamCallback],
    ) -> AgentResponse:
        started_at = time.perf_counter()
        start_time = _utc_now()
        if stream is not None:
            await stream.on_start()

        initial = await self._load_checkpoint(ctx.thread_id, checkpoint_id)
        ctx.state = initial
        ctx.status = AgentStatus.ready
        await self._deps.chain.before_invoke(ctx)
        ctx.iteration = initial.ai_messages_since_last_human()

        call, remaining = _split_at(unanswered_tool_calls(initial), approval.tool_call.id)
        logger.info(
            f"Resuming thread {ctx.thread_id} from {checkpoint_id}: {approval.decision.value} for {call.name} [{call.id}]"
        )
        if approval.decision is ApprovalDecision.reject:
            reason = approval.reject_reason or DEFAULT_REJECT_REASON
            rejection = ToolMessage(
                tool_call_id=call.id,
                content=f"{REJECTED_PREFIX} {reason}",
                error=True,
                error_message=reason,
            )
            ctx.state = ctx.state.add_message(rejection)
        elif approval.decision is ApprovalDecision.edit:
            arguments = approval.modified_arguments if approval.modified_arguments is not None else call.arguments
            await self._run_tool(call.with_arguments(arguments), ctx, stream)
        else:
            await self._run_tool(call, ctx, stream)

        return await self._run(
            {
                "ctx": ctx,
                "initial_state": initial,
                "base_message_count": len(initial.messages),
                "pending_calls": remaining,
                "started_at": started_at,
                "start_time": start_time,
                "stream": stream,
            }
        )

    async def _resume_after_wait(
        self,
        ctx: AgentContext,
        checkpoint_id: str,
        tool_call: Optional[ToolCall],
        stream: Optional[StreamCallback],
    ) -> AgentResponse:
        started_at = time.perf_counter()
        start_time = _utc_now()
        if stream is not None:
            await stream.on_start()

        initial = await self._load_checkpoint(ctx.thread_id, checkpoint_id)
        ctx.state = initial
        ctx.status = AgentStatus.ready
        await self._deps.chain.before_invoke(ctx)
        ctx.iteration = initial.ai_messages_since_last_human()

        pending = unanswered_tool_calls(initial)
        if tool_call is not None:
            call, remaining = _split_at(pending, tool_call.id)
            pending = [call, *remaining]
        logger.info(f"Resuming thread {ctx.thread_id} from {checkpoint_id} after rate limit wait")

        return await self._run(
            {
                "ctx": ctx,
                "initial_state": initial,
                "base_message_count": len(initial.messages),
                "pending_calls": pending,
                "started_at": started_at,
                "start_time": start_time,
                "stream": stream,
            }
        )

    async def _run(self, loop: _LoopState) -> AgentResponse:
        ctx = loop["ctx"]
        recursion_limit = ctx.max_iterations * 3 + 10
        await self._graph.ainvoke(loop, config={"recursion_limit": recursion_limit})
        if ctx.response is None:
            raise AgentExecutionError("execution ended without a response")
        return ctx.response

    # ------------------------------------------------------------------
    # Graph nodes
    # ------------------------------------------------------------------

    async def _node_start(self, loop: _LoopState) -> dict:
        """Graph entry node; picks up pending tool calls of a resumed run."""
        if loop["pending_calls"]:
            return {"_next": "tool_exec"}
        return {"_next": "model_call"}

    async def _node_model_call(self, loop: _LoopState) -> dict:
        """Call the model once, unless the run is stopped or out of iterations."""
        ctx = loop["ctx"]
        if ctx.is_stopped:
            logger.info(f"Run on thread {ctx.thread_id} stopped: {ctx.stop_reason or ctx.cancellation.reason}")
            return {"_next": "finalize"}
        if ctx.iteration >= ctx.max_iterations:
            logger.info(f"Run on thread {ctx.thread_id} reached max iterations ({ctx.max_iterations})")
            return {"_next": "finalize"}

        ctx.iteration += 1
        ctx.status = AgentStatus.running
        logger.debug(f"ReAct iteration {ctx.iteration}/{ctx.max_iterations}")

        message = await self._call_model(ctx, loop.get("stream"))
        ctx.state = ctx.state.add_message(message)
        if not message.has_tool_calls:
            return {"_next": "finalize"}
        return {"pending_calls": list(message.tool_calls), "_next": "tool_exec"}

    async def _node_tool_exec(self, loop: _LoopState) -> dict:
        """Gate and run pending tool calls in model order.

        Stops early when a middleware requests an interrupt; the gated call
        stays first in ``pending_calls`` for the suspend node.
        """
        ctx = loop["ctx"]
        stream = loop.get("stream")
        pending = list(loop["pending_calls"])
        while pending:
            call = pending.pop(0)
            ctx.status = AgentStatus.waiting_for_tool
            if ctx.is_stopped:
                logger.debug(f"Skipping tool call {call.name} [{call.id}]: run stopped")
                continue

            decision = await self._deps.chain.before_tool_call(call, ctx)
            if isinstance(decision, InterruptExecution):
                ctx.pending_interrupt = decision.interrupt
            elif isinstance(decision, StopExecution):
                logger.info(f"Tool call {call.name} [{call.id}] vetoed: {decision.reason}")
                ctx.request_stop(decision.reason)
                continue

            if ctx.has_pending_interrupt:
                return {"pending_calls": [call, *pending], "_next": "suspend"}

            await self._run_tool(call, ctx, stream)

        ctx.status = AgentStatus.running
        return {"pending_calls": [], "_next": "model_call"}

    async def _node_suspend(self, loop: _LoopState) -> dict:
        """Persist the state and return the pending interrupt to the caller."""
        ctx = loop["ctx"]
        call = loop["pending_calls"][0]
        interrupt = ctx.pending_interrupt
        if isinstance(interrupt, RateLimitInterrupt) and interrupt.tool_call is None:
            interrupt = interrupt.model_copy(update={"tool_call": call})

        if ctx.thread_id is None:
            ctx.thread_id = f"thread_{uuid4().hex}"
            logger.info(f"Generated thread id {ctx.thread_id} for the interrupted run")

        checkpoint_id = None
        if self._deps.checkpointer is not None:
            checkpoint_id = await self._deps.checkpointer.save(ctx.thread_id, ctx.state, tag=INTERRUPT_TAG)
        else:
            logger.warning(f"No checkpointer configured; the interrupted run on {ctx.thread_id} cannot be resumed")

        interrupt = interrupt.with_checkpoint(thread_id=ctx.thread_id, checkpoint_id=checkpoint_id)
        ctx.pending_interrupt = interrupt
        logger.info(f"Suspended thread {ctx.thread_id} at checkpoint {checkpoint_id}: {interrupt.description}")

        approval = None
        if isinstance(interrupt, ToolApprovalInterrupt):
            ctx.status = AgentStatus.waiting_for_approval
            approval = interrupt.to_approval_request()
            output = f"waiting for approval: {interrupt.tool_call.name}"
        else:
            ctx.status = AgentStatus.waiting_for_rate_limit
            output = interrupt.description

        response = self._build_response(
            loop,
            output=output,
            tool_calls=[call],
            checkpoint_id=checkpoint_id,
            approval_request=approval,
            interrupt=interrupt,
        )
        ctx.response = response
        await self._deps.chain.after_invoke(response, ctx)
        return {"_next": END}

    async def _node_finalize(self, loop: _LoopState) -> dict:
        """Reduce, checkpoint and answer."""
        ctx = loop["ctx"]
        produced = ctx.state.messages[loop["base_message_count"] :]
        replies = [m for m in produced if isinstance(m, AIMessage)]

        state = ctx.state
        if ctx.config.state_reducer is not None:
            state = ctx.config.state_reducer(loop["initial_state"], state, ctx)
        state = await self._deps.chain.on_state_update(loop["initial_state"], state, ctx)
        ctx.state = state

        checkpoint_id = None
        if ctx.config.checkpoint_enabled and ctx.thread_id and self._deps.checkpointer is not None:
            checkpoint_id = await self._deps.checkpointer.save(ctx.thread_id, state)
            logger.debug(f"Saved checkpoint {checkpoint_id} for thread {ctx.thread_id}")

        ctx.status = AgentStatus.stopped if ctx.is_stopped else AgentStatus.idle
        response = self._build_response(
            loop,
            output=replies[-1].content if replies else "",
            tool_calls=[c for m in replies for c in m.tool_calls],
            checkpoint_id=checkpoint_id,
            tokens_used=_sum_usage(replies),
        )
        ctx.response = response
        await self._deps.chain.after_invoke(response, ctx)
        return {"_next": END}

    def _route(self, loop: _LoopState) -> str:
        return loop["_next"]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _call_model(self, ctx: AgentContext, stream: Optional[StreamCallback]) -> AIMessage:
        messages: List[Message] = []
        prompt = ctx.system_prompt
        if prompt and prompt.strip():
            messages.append(SystemMessage(content=prompt))
        messages.extend(ctx.state.messages)

        options = ctx.config.chat_options
        tools = self._deps.tools.get_tools()
        if tools:
            options = options.with_tools(tools)

        model = self._deps.model
        try:
            if stream is not None and model.capabilities.supports_streaming:
                pending_reply = model.chat_stream(messages, options, stream)
            else:
                pending_reply = model.chat(messages, options)
            message = await asyncio.wait_for(pending_reply, timeout=options.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise ModelError(
                f"model call timed out after {options.timeout_seconds}s", code=ModelErrorCode.timeout
            ) from e
        except ModelError:
            raise
        except Exception as e:
            raise ModelError.from_exception(e) from e

        if stream is not None:
            if message.reasoning:
                await stream.on_reasoning(message.reasoning)
            await stream.on_completion(
                StreamCompleteResponse(
                    model=model.model_id,
                    full_content=message.content,
                    tool_calls=list(message.tool_calls),
                    finish_reason="tool_calls" if message.has_tool_calls else "stop",
                    usage_tokens=message.usage_tokens,
                )
            )
        return message

    async def _run_tool(self, call: ToolCall, ctx: AgentContext, stream: Optional[StreamCallback]) -> None:
        if stream is not None:
            await stream.on_tool_call(call)
        result = await self._deps.tools.invoke(call, timeout_seconds=ctx.config.tool_timeout_seconds)
        await self._deps.chain.after_tool_call(call, result, ctx)
        ctx.state = ctx.state.add_message(result.to_message())

    async def _load_latest(self, thread_id: Optional[str]) -> AgentState:
        if thread_id is None or self._deps.checkpointer is None:
            return AgentState()
        state = await self._deps.checkpointer.load_latest(thread_id)
        return state if state is not None else AgentState()

    async def _load_checkpoint(self, thread_id: Optional[str], checkpoint_id: str) -> AgentState:
        if self._deps.checkpointer is None:
            raise AgentExecutionError(
                "no checkpointer configured, cannot resume", code=AgentErrorCode.checkpoint_error
            )
        if thread_id is None:
            raise AgentExecutionError(
                f"cannot resume checkpoint '{checkpoint_id}' without a thread id",
                code=AgentErrorCode.checkpoint_error,
            )
        state = await self._deps.checkpointer.load(thread_id, checkpoint_id)
        if state is None:
            raise CheckpointError.not_found(thread_id, checkpoint_id)
        return state

    def _build_response(
        self,
        loop: _LoopState,
        *,
        output: str,
        tool_calls: Iterable[ToolCall],
        checkpoint_id: Optional[str],
        approval_request: Optional[ApprovalRequest] = None,
        interrupt=None,
        tokens_used: Optional[int] = None,
    ) -> AgentResponse:
        ctx = loop["ctx"]
        return AgentResponse(
            output=output,
            messages=list(ctx.state.messages),
            tool_calls=list(tool_calls),
            state=ctx.state,
            thread_id=ctx.thread_id,
            checkpoint_id=checkpoint_id,
            approval_request=approval_request,
            interrupt=interrupt,
            status=ctx.status,
            duration_ms=(time.perf_counter() - loop["started_at"]) * 1000,
            tokens_used=tokens_used,
            start_time=loop["start_time"],
            end_time=_utc_now(),
        )


def _sum_usage(replies: List[AIMessage]) -> Optional[int]:
    counted = [m.usage_tokens for m in replies if m.usage_tokens is not None]
    return sum(counted) if counted else None
