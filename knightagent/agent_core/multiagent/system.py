"""Multi-agent orchestration.

``MultiAgentSystem`` runs a request through a team of ``AgentNode``s. The
entry node answers first; after every reply the system decides whether to
stop or to hand off:

1. A reply that contains a completion marker (``[DONE]``/``[FINISH]``),
   failed, was stopped or was interrupted ends the run.
2. A node allowed to return results ends the run unless its reply carries a
   handoff directive.
3. Otherwise the ``HandoffStrategy`` names the next node. ``FINAL``, no
   decision, an unknown or a disabled node end the run.

At most ``max_handoffs`` handoffs happen per call. Every node receives the
caller's original input; its system prompt tells it its role and carries the
note left by the node that handed off.

An interrupted reply (for example a tool awaiting approval) is returned as
is. Resume it on the node's own agent, whose name is in
``response.metadata["agent"]``.
"""

from __future__ import annotations

import asyncio
import time
from typing import Dict, Iterable, List, Optional, Union

from knightagent.core.logging_config import get_logger

from ..cancellation import CancellationToken
from ..errors import AgentExecutionError
from ..model.streaming import StreamCallback, StreamChunk, StreamCompleteResponse
from ..schemas.domain import AgentRequest, AgentResponse, AgentStatus
from .handoff import FINAL, AgentHandoff
from .node import AgentNode
from .strategies import DirectiveStrategy, HandoffStrategy

logger = get_logger(__name__)

_COMPLETION_MARKERS = ("[DONE]", "[FINISH]")
_STREAM_CHUNK_CHARS = 10


class MultiAgentSystem:
    """A team of agents that hand work to each other.

    Args:
        nodes: The team; names must be unique.
        strategy: Routing strategy; ``DirectiveStrategy`` when omitted.
        entry_point: Name of the first node; the first of ``nodes`` when omitted.
        max_handoffs: Upper bound on handoffs per call.
        name: Reported in logs and response metadata.

    Raises:
        ValueError: On an empty team, duplicate names, an unknown entry point
            or a negative ``max_handoffs``.
    """

    def __init__(
        self,
        nodes: Iterable[AgentNode],
        strategy: Optional[HandoffStrategy] = None,
        *,
        entry_point: Optional[str] = None,
        max_handoffs: int = 10,
        name: str = "multi-agent",
    ) -> None:
        self._nodes: Dict[str, AgentNode] = {}
        for node in nodes:
            if node.name in self._nodes:
                raise ValueError(f"duplicate agent node '{node.name}'")
            self._nodes[node.name] = node
        if not self._nodes:
            raise ValueError("a multi-agent system needs at least one agent node")
        if max_handoffs < 0:
            raise ValueError("max_handoffs must not be negative")

        self.entry_point = entry_point or next(iter(self._nodes))
        if self.entry_point not in self._nodes:
            raise ValueError(f"entry point '{self.entry_point}' is not a registered agent node")
        self.strategy = strategy or DirectiveStrategy()
        self.max_handoffs = max_handoffs
        self.name = name

    @property
    def nodes(self) -> List[AgentNode]:
        return list(self._nodes.values())

    def get_node(self, name: str) -> Optional[AgentNode]:
        return self._nodes.get(name)

    # ------------------------------------------------------------------
    # Call surface
    # ------------------------------------------------------------------

    async def invoke(
        self,
        request: Union[AgentRequest, str],
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> AgentResponse:
        request = AgentRequest(input=request) if isinstance(request, str) else request
        started = time.perf_counter()
        logger.debug(f"{self.name}: starting at '{self.entry_point}' with agents {list(self._nodes)}")

        current = self._nodes[self.entry_point]
        previous: Optional[AgentNode] = None
        note: Optional[str] = None
        route = [current.name]
        responses: List[AgentResponse] = []

        while True:
            response = await self._run_node(current, request, previous, note, cancellation)
            responses.append(response)

            if not self._should_continue(response, current):
                logger.debug(f"{self.name}: agent {current.name} finished the run")
                break
            if len(route) > self.max_handoffs:
                logger.warning(f"{self.name}: reached the maximum of {self.max_handoffs} handoffs")
                break

            target = await self.strategy.next_agent(request, response, current, self.nodes, len(route) - 1)
            if target is None or target == FINAL:
                logger.debug(f"{self.name}: strategy {self.strategy.name} ended the run after {current.name}")
                break
            following = self._nodes.get(target)
            if following is None:
                logger.warning(f"{self.name}: strategy chose unknown agent '{target}', ending the run")
                break
            if not following.enabled:
                logger.warning(f"{self.name}: agent {target} is disabled, ending the run")
                break

            handoff = AgentHandoff.parse(response.output)
            note = handoff.message if handoff is not None and handoff.message else response.output
            logger.info(f"{self.name}: handoff {current.name} -> {following.name}")
            previous, current = current, following
            route.append(current.name)

        return self._summarize(responses, route, started)

    async def stream(
        self,
        request: Union[AgentRequest, str],
        callback: StreamCallback,
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> AgentResponse:
        """Run the team, then report the final output to ``callback`` in chunks."""
        try:
            response = await self.invoke(request, cancellation=cancellation)
        except Exception as e:
            await callback.on_error(e)
            raise
        await callback.on_start()
        output = response.output
        for i in range(0, len(output), _STREAM_CHUNK_CHARS):
            await callback.on_token(StreamChunk(model=self.name, content=output[i : i + _STREAM_CHUNK_CHARS]))
        await callback.on_completion(
            StreamCompleteResponse(
                model=self.name,
                full_content=output,
                tool_calls=response.tool_calls,
                finish_reason="stop",
                usage_tokens=response.tokens_used,
            )
        )
        return response

    async def batch(
        self,
        requests: Iterable[Union[AgentRequest, str]],
        *,
        concurrency: int = 1,
    ) -> List[AgentResponse]:
        """Invoke each request; responses keep the order of ``requests``."""
        items = list(requests)
        if concurrency <= 1:
            return [await self.invoke(r) for r in items]

        semaphore = asyncio.Semaphore(concurrency)

        async def _limited(r: Union[AgentRequest, str]) -> AgentResponse:
            async with semaphore:
                return await self.invoke(r)

        return list(await asyncio.gather(*(_limited(r) for r in items)))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run_node(
        self,
        node: AgentNode,
        request: AgentRequest,
        previous: Optional[AgentNode],
        note: Optional[str],
        cancellation: Optional[CancellationToken],
    ) -> AgentResponse:
        enriched = self._node_request(node, request, previous, note)
        try:
            response = await node.agent.invoke(enriched, cancellation=cancellation)
        except AgentExecutionError as e:
            logger.error(f"{self.name}: agent {node.name} failed: {e}")
            response = AgentResponse(
                output=f"[agent {node.name} failed: {e}]",
                status=AgentStatus.error,
                thread_id=request.thread_id,
                error=str(e),
            )
        return response.model_copy(update={"metadata": {**response.metadata, "agent": node.name}})

    def _node_request(
        self,
        node: AgentNode,
        request: AgentRequest,
        previous: Optional[AgentNode],
        note: Optional[str],
    ) -> AgentRequest:
        if request.system_prompt:
            return request
        sections: List[str] = []
        own_prompt = node.agent.config.system_prompt or node.agent.config.chat_options.system_prompt
        if own_prompt:
            sections.append(own_prompt)
        if node.description:
            sections.append(f"Your role: {node.description}")
        if previous is not None:
            handed = f"Previous agent: {previous.name}"
            if previous.description:
                handed += f" ({previous.description})"
            if note:
                handed += f"\nHandoff note: {note}"
            sections.append(handed)
        if not sections:
            return request
        return request.model_copy(update={"system_prompt": "\n\n".join(sections)})

    def _should_continue(self, response: AgentResponse, node: AgentNode) -> bool:
        if any(marker in response.output for marker in _COMPLETION_MARKERS):
            return False
        if not response.is_success or response.is_interrupted or response.status == AgentStatus.stopped:
            return False
        if node.can_return_result and AgentHandoff.parse(response.output) is None:
            return False
        return self.strategy.should_continue(response)

    def _summarize(self, responses: List[AgentResponse], route: List[str], started: float) -> AgentResponse:
        final = responses[-1]
        known = [r.tokens_used for r in responses if r.tokens_used is not None]
        return final.model_copy(
            update={
                "start_time": responses[0].start_time,
                "duration_ms": (time.perf_counter() - started) * 1000,
                "tokens_used": sum(known) if known else None,
                "metadata": {
                    **final.metadata,
                    "multi_agent": self.name,
                    "route": route,
                    "handoff_count": len(route) - 1,
                    "agent_count": len(self._nodes),
                },
            }
        )
