"""Transcript compaction by summarization.

When the transcript grows beyond ``max_tokens``, ``SummarizationMiddleware``
rewrites the finalized state:

1. system messages are kept as they are;
2. the most recent ``recent_messages_count`` messages are kept verbatim;
3. everything in between is sent to ``summary_model`` and replaced by one
   ``SystemMessage`` holding the summary.

The recent tail never starts with a tool message, so every kept tool result
still follows the AI message that requested it. A failing summary call
leaves the state untouched.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from knightagent.core.logging_config import get_logger

from ...schemas.config import ChatOptions
from ...schemas.messages import AIMessage, HumanMessage, Message, SystemMessage, ToolMessage
from ...schemas.state import AgentState
from ..base import Middleware
from ..context import AgentContext

logger = get_logger(__name__)

DEFAULT_SUMMARY_PROMPT = "Briefly summarize the following conversation, keeping the key facts and decisions:"

TokenCounter = Callable[[Sequence[Message]], int]


class SummarizationMiddleware(Middleware):
    priority = 200

    def __init__(
        self,
        summary_model,
        *,
        max_tokens: int = 4000,
        summary_target_tokens: int = 500,
        recent_messages_count: int = 10,
        summary_prompt: str = DEFAULT_SUMMARY_PROMPT,
        token_counter: Optional[TokenCounter] = None,
    ) -> None:
        if max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        if recent_messages_count < 0:
            raise ValueError("recent_messages_count must not be negative")
        self.summary_model = summary_model
        self.max_tokens = max_tokens
        self.summary_target_tokens = summary_target_tokens
        self.recent_messages_count = recent_messages_count
        self.summary_prompt = summary_prompt
        self.token_counter = token_counter or self._count_tokens

    def _count_tokens(self, messages: Sequence[Message]) -> int:
        total = 0
        for message in messages:
            total += self.summary_model.count_tokens(message.content)
            if isinstance(message, AIMessage):
                total += sum(self.summary_model.count_tokens(c.arguments) for c in message.tool_calls)
        return total

    async def on_state_update(self, old: AgentState, new: AgentState, ctx: AgentContext) -> AgentState:
        if not new.messages:
            return new
        tokens = self.token_counter(new.messages)
        if tokens <= self.max_tokens:
            return new

        system = [m for m in new.messages if isinstance(m, SystemMessage)]
        others = [m for m in new.messages if not isinstance(m, SystemMessage)]
        split = max(0, len(others) - self.recent_messages_count)
        while 0 < split < len(others) and isinstance(others[split], ToolMessage):
            split -= 1
        older, recent = others[:split], others[split:]
        if not older:
            return new

        logger.info(f"transcript at {tokens}/{self.max_tokens} tokens, summarizing {len(older)} messages")
        try:
            summary = await self._summarize(older)
        except Exception as e:
            logger.warning(f"summarization failed, keeping the full transcript: {e}")
            return new

        compacted: List[Message] = [
            *system,
            SystemMessage(content=f"{self.summary_prompt}\n\n{summary}", additional_data={"summary": True}),
            *recent,
        ]
        logger.info(f"summarized transcript: {len(new.messages)} -> {len(compacted)} messages")
        return new.with_messages(compacted)

    async def _summarize(self, messages: Sequence[Message]) -> str:
        transcript = "\n\n".join(_format(m) for m in messages)
        options = ChatOptions(max_tokens=self.summary_target_tokens, temperature=0.3)
        reply = await self.summary_model.chat(
            [SystemMessage(content=self.summary_prompt), HumanMessage(content=transcript)],
            options,
        )
        return reply.content


def _format(message: Message) -> str:
    if isinstance(message, HumanMessage):
        return f"user: {message.content}"
    if isinstance(message, AIMessage):
        return f"assistant: {message.content}"
    if isinstance(message, ToolMessage):
        return f"tool[{message.tool_call_id}]: {message.content}"
    return message.content
