"""Pydantic AI chat model adapter.

This module implements ``ChatModel`` on top of Pydantic AI's direct model
request API, so any provider Pydantic AI supports (``"openai:gpt-4o"``,
``"anthropic:claude-3-5-sonnet-latest"``, a configured ``Model`` instance,
``FunctionModel`` in tests...) can drive the agent loop.

Message mapping
---------------

=====================  ============================================
KnightAgent message    Pydantic AI part
=====================  ============================================
``SystemMessage``      ``SystemPromptPart`` in a ``ModelRequest``
``HumanMessage``       ``UserPromptPart`` in a ``ModelRequest``
``ToolMessage``        ``ToolReturnPart`` in a ``ModelRequest``
``AIMessage``          ``ModelResponse`` with ``TextPart`` and
                       ``ToolCallPart`` items
=====================  ============================================

Consecutive request-side messages are grouped into one ``ModelRequest``.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic_ai.direct import model_request, model_request_stream
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    PartDeltaEvent,
    PartStartEvent,
    SystemPromptPart,
    TextPart,
    TextPartDelta,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models import Model, ModelRequestParameters
from pydantic_ai.tools import ToolDefinition

from knightagent.core.logging_config import get_logger
from knightagent.core.monitoring import log_model_call

from ..errors import ModelError
from ..schemas.config import ChatOptions
from ..schemas.messages import (
    AIMessage,
    HumanMessage,
    Message,
    SystemMessage,
    ToolCall,
    ToolMessage,
)
from .base import ChatModel, ModelCapabilities
from .streaming import StreamCallback, StreamChunk

logger = get_logger(__name__)


def to_model_messages(messages: Sequence[Message]) -> List[ModelMessage]:
    """Convert a transcript into Pydantic AI request/response messages."""
    result: List[ModelMessage] = []
    request_parts: List[Any] = []
    tool_names: Dict[str, str] = {}

    def _flush() -> None:
        if request_parts:
            result.append(ModelRequest(parts=list(request_parts)))
            request_parts.clear()

    for message in messages:
        if isinstance(message, SystemMessage):
            request_parts.append(SystemPromptPart(content=message.content))
        elif isinstance(message, HumanMessage):
            request_parts.append(UserPromptPart(content=message.content))
        elif isinstance(message, ToolMessage):
            request_parts.append(
                ToolReturnPart(
                    tool_name=tool_names.get(message.tool_call_id, "unknown"),
                    content=message.content,
                    tool_call_id=message.tool_call_id,
                )
            )
        elif isinstance(message, AIMessage):
            _flush()
            parts: List[Any] = []
            if message.content:
                parts.append(TextPart(content=message.content))
            for call in message.tool_calls:
                tool_names[call.id] = call.name
                parts.append(ToolCallPart(tool_name=call.name, args=call.arguments, tool_call_id=call.id))
            result.append(ModelResponse(parts=parts))
    _flush()
    return result


def from_model_response(response: ModelResponse) -> AIMessage:
    """Convert a Pydantic AI response into an ``AIMessage``."""
    texts: List[str] = []
    reasoning: List[str] = []
    calls: List[ToolCall] = []
    for part in response.parts:
        kind = getattr(part, "part_kind", None)
        if kind == "text":
            texts.append(part.content)
        elif kind == "thinking":
            reasoning.append(part.content)
        elif kind == "tool-call":
            calls.append(ToolCall(id=part.tool_call_id, name=part.tool_name, arguments=part.args_as_json_str()))
    usage = getattr(response, "usage", None)
    return AIMessage(
        content="".join(texts),
        tool_calls=calls,
        reasoning="".join(reasoning) or None,
        usage_tokens=getattr(usage, "total_tokens", None),
    )


def build_model_settings(options: ChatOptions) -> Dict[str, Any]:
    settings: Dict[str, Any] = {
        "temperature": options.temperature,
        "top_p": options.top_p,
    }
    if options.max_tokens is not None:
        settings["max_tokens"] = options.max_tokens
    if options.stop_sequences:
        settings["stop_sequences"] = list(options.stop_sequences)
    if options.frequency_penalty:
        settings["frequency_penalty"] = options.frequency_penalty
    if options.presence_penalty:
        settings["presence_penalty"] = options.presence_penalty
    if options.timeout_seconds is not None:
        settings["timeout"] = options.timeout_seconds
    return settings


def build_request_parameters(options: ChatOptions) -> ModelRequestParameters:
    tools = [
        ToolDefinition(
            name=descriptor.name,
            description=descriptor.description,
            parameters_json_schema=descriptor.parameters_schema,
        )
        for descriptor in options.tools
    ]
    return ModelRequestParameters(function_tools=tools, allow_text_output=True, output_tools=[])


class PydanticAIChatModel(ChatModel):
    """``ChatModel`` backed by a Pydantic AI model.

    Attributes:
        model_id: Identifier reported in logs and stream chunks.
        capabilities: Declared model limits; defaults to ``ModelCapabilities()``.
    """

    def __init__(
        self,
        model: Union[Model, str],
        *,
        capabilities: Optional[ModelCapabilities] = None,
    ) -> None:
        self._model = model
        self.model_id = model if isinstance(model, str) else model.model_name
        self.capabilities = capabilities or ModelCapabilities()

    async def chat(self, messages: Sequence[Message], options: ChatOptions) -> AIMessage:
        started = time.perf_counter()
        try:
            response = await model_request(
                self._model,
                to_model_messages(messages),
                model_settings=build_model_settings(options),
                model_request_parameters=build_request_parameters(options),
            )
        except ModelError:
            raise
        except Exception as e:
            raise ModelError.from_exception(e) from e
        message = from_model_response(response)
        duration_ms = (time.perf_counter() - started) * 1000
        logger.debug(f"Model {self.model_id} replied in {duration_ms:.1f}ms ({len(message.tool_calls)} tool calls)")
        log_model_call(self.model_id, message.usage_tokens, duration_ms)
        return message

    async def chat_stream(
        self,
        messages: Sequence[Message],
        options: ChatOptions,
        callback: StreamCallback,
    ) -> AIMessage:
        started = time.perf_counter()
        try:
            async with model_request_stream(
                self._model,
                to_model_messages(messages),
                model_settings=build_model_settings(options),
                model_request_parameters=build_request_parameters(options),
            ) as stream:
                async for event in stream:
                    delta: Optional[str] = None
                    if isinstance(event, PartStartEvent) and isinstance(event.part, TextPart):
                        delta = event.part.content
                    elif isinstance(event, PartDeltaEvent) and isinstance(event.delta, TextPartDelta):
                        delta = event.delta.content_delta
                    if delta:
                        await callback.on_token(StreamChunk(model=self.model_id, content=delta))
                response = stream.get()
        except ModelError:
            raise
        except Exception as e:
            raise ModelError.from_exception(e) from e
        message = from_model_response(response)
        log_model_call(self.model_id, message.usage_tokens, (time.perf_counter() - started) * 1000)
        return message
