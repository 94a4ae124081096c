"""Chat model contract, streaming types and the Pydantic AI adapter."""

from .base import ChatModel, ModelCapabilities
from .pydantic_ai import PydanticAIChatModel
from .streaming import (
    CollectingStreamCallback,
    StreamCallback,
    StreamChunk,
    StreamCompleteResponse,
)

__all__ = [
    "ChatModel",
    "CollectingStreamCallback",
    "ModelCapabilities",
    "PydanticAIChatModel",
    "StreamCallback",
    "StreamChunk",
    "StreamCompleteResponse",
]
