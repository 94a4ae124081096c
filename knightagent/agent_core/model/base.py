"""Chat model contract.

The runtime talks to language models only through ``ChatModel``. Provider
HTTP clients live behind this protocol; the loop never sees request shapes or
wire formats.

Contract
--------

- ``chat(messages, options)`` returns one ``AIMessage``. The message may
  request tools via ``tool_calls``; ``options.tools`` lists what is available.
- ``chat_stream(messages, options, callback)`` reports incremental text to
  ``callback.on_token`` as it arrives and returns the complete ``AIMessage``
  once the stream ends. Tool calls are only known at that point.
- Failures are raised as ``ModelError`` (other exceptions are classified by
  the loop with ``ModelError.from_exception``).
- Deadlines come from ``options.timeout_seconds`` and are enforced by the
  caller.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from pydantic import Field

from ..schemas.base import BaseSchema
from ..schemas.config import ChatOptions
from ..schemas.messages import AIMessage, Message
from .streaming import StreamCallback, StreamChunk


class ModelCapabilities(BaseSchema):
    """Declared limits and features of a chat model."""

    max_context_tokens: int = Field(default=8192, gt=0)
    max_output_tokens: int = Field(default=4096, gt=0)
    supports_streaming: bool = True
    supports_tool_calling: bool = True
    supports_parallel_tool_calling: bool = False
    supports_system_prompt: bool = True
    supports_multimodal: bool = False
    supports_reasoning: bool = False
    family: Optional[str] = None

    @classmethod
    def gpt4(cls) -> "ModelCapabilities":
        return cls(max_context_tokens=8192, max_output_tokens=4096, supports_parallel_tool_calling=True, family="gpt-4")

    @classmethod
    def gpt4o(cls) -> "ModelCapabilities":
        return cls(
            max_context_tokens=128000,
            max_output_tokens=16384,
            supports_parallel_tool_calling=True,
            supports_multimodal=True,
            family="gpt-4o",
        )

    @classmethod
    def claude3(cls) -> "ModelCapabilities":
        return cls(
            max_context_tokens=200000,
            max_output_tokens=4096,
            supports_parallel_tool_calling=True,
            supports_multimodal=True,
            family="claude-3",
        )

    @classmethod
    def basic(cls) -> "ModelCapabilities":
        """A text-only model without tool calling."""
        return cls(supports_streaming=False, supports_tool_calling=False)

    def remaining_tokens(self, used_tokens: int) -> int:
        return max(0, self.max_context_tokens - used_tokens)


class ChatModel(Protocol):
    """Protocol for chat model implementations."""

    model_id: str
    capabilities: ModelCapabilities

    async def chat(self, messages: Sequence[Message], options: ChatOptions) -> AIMessage: ...

    async def chat_stream(
        self,
        messages: Sequence[Message],
        options: ChatOptions,
        callback: StreamCallback,
    ) -> AIMessage:
        """Default streaming: one non-streamed call reported as a single chunk."""
        message = await self.chat(messages, options)
        if message.content:
            await callback.on_token(StreamChunk(model=self.model_id, content=message.content, finish_reason="stop"))
        return message

    def count_tokens(self, text: str) -> int:
        """Rough estimate, about four characters per token."""
        if not text:
            return 0
        return max(1, len(text) // 4)
