"""The ``Agent`` facade.

``Agent`` is what applications hold on to: it bundles a chat model, a tool
invoker, an optional checkpointer, a middleware chain and an
``AgentConfig``, and exposes the call surface:

- ``invoke(request)``: run one turn to completion or to an interrupt.
- ``stream(request, callback)``: the same, forwarding model tokens to
  ``callback`` as they arrive.
- ``batch(requests)``: several independent turns, sequential by default.
- ``resume(checkpoint_id, approval)``: continue a run suspended for approval.
- ``resume_command(command)``: continue a run from any ``InterruptCommand``.

Concurrency
-----------

Calls on different threads run concurrently. Calls on the same thread id
through one ``Agent`` are serialized with a per-thread ``asyncio.Lock`` so at
most one of them mutates the thread's latest checkpoint at a time. Agents in
other processes sharing a durable checkpointer are not coordinated.

Deadlines
---------

``AgentConfig.timeout_seconds`` bounds each whole call (waiting for the
thread lock excluded); exceeding it raises ``AgentExecutionError`` with code
``timeout``. Model and tool calls carry their own, shorter deadlines.
"""

from __future__ import annotations

import asyncio
import time
import weakref
from typing import Awaitable, Callable, Iterable, List, Optional, Union

from knightagent.core.logging_config import get_logger
from knightagent.core.monitoring import log_agent_completion, log_agent_invoke, log_error

from .cancellation import CancellationToken
from .checkpoint.interfaces import Checkpointer
from .errors import AgentErrorCode, AgentExecutionError
from .middleware.base import Middleware
from .middleware.chain import MiddlewareChain
from .middleware.context import AgentContext
from .model.base import ChatModel
from .model.streaming import StreamCallback
from .runtime import ExecutionDeps, ReActStrategy
from .schemas.approval import ApprovalRequest
from .schemas.config import AgentConfig
from .schemas.domain import AgentRequest, AgentResponse, AgentStatus
from .schemas.interrupts import ApprovalInterruptCommand, InterruptCommand, RateLimitWaitCommand
from .schemas.state import AgentState
from .tools.registry import ToolInvoker

logger = get_logger(__name__)


class Agent:
    """A configured ReAct agent.

    Args:
        model: Chat model driving the loop.
        tools: Tool invoker; an empty one when omitted.
        checkpointer: Thread storage; without one, calls neither load nor
            persist state and interrupted runs cannot be resumed.
        config: Agent configuration; ``AgentConfig()`` when omitted.
        middlewares: Added after ``config.middlewares``.
    """

    def __init__(
        self,
        model: ChatModel,
        *,
        tools: Optional[ToolInvoker] = None,
        checkpointer: Optional[Checkpointer] = None,
        config: Optional[AgentConfig] = None,
        middlewares: Optional[Iterable[Middleware]] = None,
    ) -> None:
        self.model = model
        self.tools = tools if tools is not None else ToolInvoker()
        self.checkpointer = checkpointer
        self.config = config or AgentConfig()
        self.chain = MiddlewareChain([*self.config.middlewares, *(middlewares or ())])
        self._strategy = ReActStrategy(
            ExecutionDeps(
                model=model,
                tools=self.tools,
                chain=self.chain,
                config=self.config,
                checkpointer=checkpointer,
            )
        )
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._status = AgentStatus.idle

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def status(self) -> AgentStatus:
        """Status of the most recently finished call."""
        return self._status

    def add_middleware(self, middleware: Middleware) -> None:
        self.chain.add(middleware)

    # ------------------------------------------------------------------
    # Call surface
    # ------------------------------------------------------------------

    async def invoke(
        self,
        request: Union[AgentRequest, str],
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> AgentResponse:
        request = _as_request(request)
        ctx = self._new_context(request, cancellation)
        return await self._call(ctx, lambda: self._strategy.execute(ctx), resumed=False)

    async def stream(
        self,
        request: Union[AgentRequest, str],
        callback: StreamCallback,
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> AgentResponse:
        """Like ``invoke``, reporting tokens and tool calls to ``callback``.

        Raises:
            ValueError: If streaming is disabled for the request or the agent.
        """
        request = _as_request(request)
        enabled = request.stream_enabled if request.stream_enabled is not None else self.config.stream_enabled
        if not enabled:
            raise ValueError(f"streaming is disabled for agent '{self.name}'")
        ctx = self._new_context(request, cancellation)
        return await self._call(ctx, lambda: self._strategy.execute(ctx, stream=callback), resumed=False)

    async def batch(
        self,
        requests: Iterable[Union[AgentRequest, str]],
        *,
        concurrency: int = 1,
    ) -> List[AgentResponse]:
        """Invoke each request; responses keep the order of ``requests``.

        With ``concurrency`` above 1, up to that many requests run at once.
        Requests sharing a thread id still run one after another.
        """
        items = [_as_request(r) for r in requests]
        if concurrency <= 1:
            return [await self.invoke(r) for r in items]

        semaphore = asyncio.Semaphore(concurrency)

        async def _limited(r: AgentRequest) -> AgentResponse:
            async with semaphore:
                return await self.invoke(r)

        return list(await asyncio.gather(*(_limited(r) for r in items)))

    async def resume(
        self,
        checkpoint_id: str,
        approval: ApprovalRequest,
        *,
        thread_id: Optional[str] = None,
        stream: Optional[StreamCallback] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> AgentResponse:
        """Continue a run suspended for approval.

        The thread is ``approval.thread_id``, falling back to ``thread_id``
        and then ``config.thread_id``.

        Raises:
            ValueError: If no decision was recorded on ``approval``.
        """
        if not approval.is_processed:
            raise ValueError(f"approval '{approval.approval_id}' has no decision")
        request = AgentRequest(thread_id=approval.thread_id or thread_id or self.config.thread_id)
        ctx = self._new_context(request, cancellation)
        return await self._call(
            ctx,
            lambda: self._strategy.resume(ctx, checkpoint_id, approval, stream=stream),
            resumed=True,
        )

    async def resume_command(
        self,
        command: InterruptCommand,
        *,
        stream: Optional[StreamCallback] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> AgentResponse:
        """Continue a run from the command answering its interrupt.

        Rate-limit commands sleep ``retry_after_seconds`` first; the suspended
        tool call is then gated again, so it may be rate limited anew.
        """
        if command.checkpoint_id is None:
            raise ValueError(f"command for interrupt '{command.interrupt_id}' carries no checkpoint id")

        if isinstance(command, ApprovalInterruptCommand):
            return await self.resume(
                command.checkpoint_id,
                command.approval,
                thread_id=command.thread_id,
                stream=stream,
                cancellation=cancellation,
            )

        if isinstance(command, RateLimitWaitCommand):
            if command.retry_after_seconds > 0:
                logger.info(f"Waiting {command.retry_after_seconds:.2f}s before resuming thread {command.thread_id}")
                await asyncio.sleep(command.retry_after_seconds)
            request = AgentRequest(thread_id=command.thread_id or self.config.thread_id)
            ctx = self._new_context(request, cancellation)
            return await self._call(
                ctx,
                lambda: self._strategy.resume_after_wait(ctx, command.checkpoint_id, command.tool_call, stream=stream),
                resumed=True,
            )

        raise TypeError(f"unsupported interrupt command: {type(command).__name__}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _new_context(self, request: AgentRequest, cancellation: Optional[CancellationToken]) -> AgentContext:
        return AgentContext(
            request=request,
            state=AgentState(),
            config=self.config,
            thread_id=request.thread_id or self.config.thread_id,
            cancellation=cancellation,
        )

    async def _call(
        self,
        ctx: AgentContext,
        run: Callable[[], Awaitable[AgentResponse]],
        *,
        resumed: bool,
    ) -> AgentResponse:
        thread_id = ctx.thread_id
        started = time.perf_counter()
        log_agent_invoke(self.name, thread_id, resumed=resumed)
        error: Optional[BaseException] = None
        try:
            if thread_id is None:
                response = await self._with_deadline(ctx, run)
            else:
                lock = self._locks.get(thread_id)
                if lock is None:
                    lock = asyncio.Lock()
                    self._locks[thread_id] = lock
                async with lock:
                    response = await self._with_deadline(ctx, run)
            return response
        except BaseException as e:
            error = e
            if isinstance(e, Exception):
                log_error(type(e).__name__, str(e), {"agent_name": self.name, "thread_id": thread_id})
            raise
        finally:
            self._status = ctx.status
            await self.chain.on_finally(ctx, error)
            log_agent_completion(
                self.name,
                ctx.thread_id,
                ctx.status.value,
                (time.perf_counter() - started) * 1000,
            )

    async def _with_deadline(self, ctx: AgentContext, run: Callable[[], Awaitable[AgentResponse]]) -> AgentResponse:
        timeout = self.config.timeout_seconds
        try:
            return await asyncio.wait_for(run(), timeout=timeout)
        except asyncio.TimeoutError as e:
            error = AgentExecutionError(
                f"agent '{self.name}' did not finish within {timeout}s",
                code=AgentErrorCode.timeout,
            )
            ctx.status = AgentStatus.error
            await self.chain.on_error(error, ctx)
            raise error from e


def _as_request(request: Union[AgentRequest, str]) -> AgentRequest:
    if isinstance(request, str):
        return AgentRequest(input=request)
    return request
