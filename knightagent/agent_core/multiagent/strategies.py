"""Routing strategies for ``MultiAgentSystem``.

After each node replies, the system asks its ``HandoffStrategy`` which node
runs next. ``next_agent`` returns:

- a node name: hand off to that node;
- ``FINAL``: stop and return the current reply;
- ``None``: no decision, which also stops the run.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from knightagent.core.logging_config import get_logger

from ..model.base import ChatModel
from ..schemas.config import ChatOptions
from ..schemas.domain import AgentRequest, AgentResponse
from ..schemas.messages import HumanMessage, SystemMessage
from .handoff import FINAL, AgentHandoff
from .node import AgentNode

logger = get_logger(__name__)

DEFAULT_SUPERVISOR_PROMPT = """You are a task supervisor coordinating a team of agents.
Based on the user's request and the progress so far, decide which agent
should act next, or whether the task is complete.

Answer with exactly one word:
- the name of the next agent, or
- FINAL when the task is complete.
"""

_FINISH_WORDS = {"FINAL", "END", "DONE"}
_MAX_OUTPUT_CHARS = 500


class HandoffStrategy:
    """Decides which node runs after the current one."""

    @property
    def name(self) -> str:
        return type(self).__name__

    async def next_agent(
        self,
        request: AgentRequest,
        response: AgentResponse,
        current: AgentNode,
        nodes: Sequence[AgentNode],
        handoff_count: int,
    ) -> Optional[str]:
        raise NotImplementedError

    def should_continue(self, response: AgentResponse) -> bool:
        """Veto further handoffs after ``response``."""
        return True


class DirectiveStrategy(HandoffStrategy):
    """Follow the handoff directive the current agent wrote in its output."""

    async def next_agent(
        self,
        request: AgentRequest,
        response: AgentResponse,
        current: AgentNode,
        nodes: Sequence[AgentNode],
        handoff_count: int,
    ) -> Optional[str]:
        handoff = AgentHandoff.parse(response.output)
        if handoff is None:
            return None
        if handoff.is_final:
            return FINAL
        return handoff.to_agent


class SupervisorStrategy(HandoffStrategy):
    """Let a chat model pick the next node from the nodes' descriptions.

    Args:
        model: Model asked for each routing decision.
        system_prompt: Instructions for the supervisor model.
        options: Sampling options; deterministic and short by default.
    """

    def __init__(
        self,
        model: ChatModel,
        system_prompt: str = DEFAULT_SUPERVISOR_PROMPT,
        options: Optional[ChatOptions] = None,
    ) -> None:
        self.model = model
        self.system_prompt = system_prompt
        self.options = options or ChatOptions(temperature=0.0, max_tokens=50)

    async def next_agent(
        self,
        request: AgentRequest,
        response: AgentResponse,
        current: AgentNode,
        nodes: Sequence[AgentNode],
        handoff_count: int,
    ) -> Optional[str]:
        prompt = self.build_prompt(request, response, current, nodes, handoff_count)
        try:
            decision = await self.model.chat(
                [SystemMessage(content=self.system_prompt), HumanMessage(content=prompt)],
                self.options,
            )
        except Exception as e:
            logger.error(f"Supervisor decision failed: {e}", exc_info=True)
            return None
        logger.debug(f"Supervisor decided: {decision.content.strip()}")
        return self.parse_decision(decision.content, nodes)

    def build_prompt(
        self,
        request: AgentRequest,
        response: Optional[AgentResponse],
        current: Optional[AgentNode],
        nodes: Sequence[AgentNode],
        handoff_count: int,
    ) -> str:
        lines: List[str] = ["Available agents:"]
        for node in nodes:
            if node.enabled:
                lines.append(f"- {node.name}: {node.description or 'no description'}")
        lines += ["", f"User request: {request.input}", ""]

        if response is not None:
            lines.append("Progress:")
            lines.append(f"- agents run so far: {handoff_count + 1}")
            if current is not None:
                lines.append(f"- last agent: {current.name}")
            output = response.output
            if len(output) > _MAX_OUTPUT_CHARS:
                output = output[:_MAX_OUTPUT_CHARS] + "..."
            if output:
                lines.append(f"- last output: {output}")
            lines.append("")

        lines.append("Decide the next step:")
        lines.append("1. If the task is complete, answer: FINAL")
        lines.append("2. Otherwise answer with the name of the next agent")
        lines.append("")
        lines.append("Answer with one word only.")
        return "\n".join(lines)

    def parse_decision(self, text: str, nodes: Sequence[AgentNode]) -> Optional[str]:
        """Map the model's answer onto an enabled node name or ``FINAL``.

        Matching ignores case and surrounding quotes; an exact name wins over
        a name that merely contains (or is contained in) the answer.
        """
        cleaned = text.strip().strip("'\"`").strip().upper()
        if not cleaned:
            return None
        if cleaned in _FINISH_WORDS:
            return FINAL

        enabled = [n for n in nodes if n.enabled]
        for node in enabled:
            if node.name.upper() == cleaned:
                return node.name
        for node in enabled:
            name = node.name.upper()
            if name in cleaned or cleaned in name:
                return node.name

        logger.warning(f"Supervisor chose unknown agent '{cleaned}'; available: {[n.name for n in enabled]}")
        return None
