"""Streaming callback types.

During a streaming model call the model adapter reports incremental output
through a ``StreamCallback``. The execution loop owns the surrounding
lifecycle: it calls ``on_start`` before the first model call,
``on_tool_call`` for every tool it runs, ``on_completion`` after each
streamed model reply and ``on_error`` when the call aborts.

All hooks are async no-ops by default; subclasses override what they need.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import Field

from ..schemas.base import BaseSchema
from ..schemas.messages import ToolCall


class StreamChunk(BaseSchema):
    """One incremental piece of a streamed model reply."""

    id: str = Field(default_factory=lambda: f"chunk_{uuid4().hex[:12]}")
    model: Optional[str] = None
    created: float = Field(default_factory=time.time)
    content: str = ""
    finish_reason: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None

    @property
    def is_final(self) -> bool:
        return self.finish_reason is not None


class StreamCompleteResponse(BaseSchema):
    """Summary of a finished streamed model reply."""

    id: Optional[str] = None
    model: Optional[str] = None
    full_content: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    finish_reason: Optional[str] = None
    usage_tokens: Optional[int] = None


class StreamCallback:
    """Receiver of streamed agent output."""

    async def on_start(self) -> None:
        return None

    async def on_token(self, chunk: StreamChunk) -> None:
        return None

    async def on_reasoning(self, text: str) -> None:
        return None

    async def on_tool_call(self, tool_call: ToolCall) -> None:
        return None

    async def on_completion(self, response: StreamCompleteResponse) -> None:
        return None

    async def on_error(self, error: BaseException) -> None:
        return None


class CollectingStreamCallback(StreamCallback):
    """Callback that records everything it receives.

    Useful as a sink when the caller only wants the token text afterwards.
    """

    def __init__(self) -> None:
        self.started = False
        self.chunks: List[StreamChunk] = []
        self.tool_calls: List[ToolCall] = []
        self.completions: List[StreamCompleteResponse] = []
        self.errors: List[BaseException] = []

    @property
    def text(self) -> str:
        return "".join(chunk.content for chunk in self.chunks)

    async def on_start(self) -> None:
        self.started = True

    async def on_token(self, chunk: StreamChunk) -> None:
        self.chunks.append(chunk)

    async def on_tool_call(self, tool_call: ToolCall) -> None:
        self.tool_calls.append(tool_call)

    async def on_completion(self, response: StreamCompleteResponse) -> None:
        self.completions.append(response)

    async def on_error(self, error: BaseException) -> None:
        self.errors.append(error)
