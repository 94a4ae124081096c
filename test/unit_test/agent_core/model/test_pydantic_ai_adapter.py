"""Tests for the Pydantic AI chat model adapter.

The adapter is driven by Pydantic AI's ``FunctionModel`` so no provider
is contacted.
"""

from __future__ import annotations

import json
from typing import AsyncIterator, List

import pytest
from pydantic_ai.exceptions import ModelHTTPError
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    ThinkingPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models.function import AgentInfo, FunctionModel

from knightagent.agent_core.errors import ModelError, ModelErrorCode
from knightagent.agent_core.model.pydantic_ai import (
    PydanticAIChatModel,
    build_model_settings,
    build_request_parameters,
    from_model_response,
    to_model_messages,
)
from knightagent.agent_core.model.streaming import CollectingStreamCallback
from knightagent.agent_core.schemas.config import ChatOptions, ToolDescriptor
from knightagent.agent_core.schemas.messages import (
    AIMessage,
    HumanMessage,
    SystemMessage,
    ToolCall,
    ToolMessage,
)

WEATHER_TOOL = ToolDescriptor(
    name="get_weather",
    description="Current weather for a city",
    parameters_schema={"type": "object", "properties": {"city": {"type": "string"}}, "required": ["city"]},
)


class TestMessageMapping:
    def test_transcript_to_model_messages(self) -> None:
        transcript = [
            SystemMessage(content="be brief"),
            HumanMessage(content="weather in Oslo?"),
            AIMessage(content="checking", tool_calls=[ToolCall(id="c1", name="get_weather", arguments={"city": "Oslo"})]),
            ToolMessage(tool_call_id="c1", content="sunny"),
            HumanMessage(content="thanks"),
        ]

        messages = to_model_messages(transcript)

        assert [type(m) for m in messages] == [ModelRequest, ModelResponse, ModelRequest]
        first, response, last = messages
        assert [type(p) for p in first.parts] == [SystemPromptPart, UserPromptPart]
        assert [type(p) for p in response.parts] == [TextPart, ToolCallPart]
        assert response.parts[1].tool_call_id == "c1"
        assert json.loads(response.parts[1].args_as_json_str()) == {"city": "Oslo"}
        tool_return = last.parts[0]
        assert isinstance(tool_return, ToolReturnPart)
        assert tool_return.tool_name == "get_weather"
        assert tool_return.content == "sunny"
        assert isinstance(last.parts[1], UserPromptPart)

    def test_ai_message_without_text_has_only_tool_parts(self) -> None:
        messages = to_model_messages([AIMessage(tool_calls=[ToolCall(id="c1", name="x")])])

        assert [type(p) for p in messages[0].parts] == [ToolCallPart]

    def test_model_response_to_ai_message(self) -> None:
        response = ModelResponse(
            parts=[
                ThinkingPart(content="user wants weather"),
                TextPart(content="Let me "),
                TextPart(content="check."),
                ToolCallPart(tool_name="get_weather", args={"city": "Oslo"}, tool_call_id="c9"),
            ]
        )

        message = from_model_response(response)

        assert message.content == "Let me check."
        assert message.reasoning == "user wants weather"
        assert message.tool_calls[0].id == "c9"
        assert message.tool_calls[0].name == "get_weather"
        assert json.loads(message.tool_calls[0].arguments) == {"city": "Oslo"}


class TestRequestBuilding:
    def test_model_settings_from_options(self) -> None:
        options = ChatOptions(
            temperature=0.2,
            max_tokens=256,
            stop_sequences=["END"],
            presence_penalty=0.5,
            timeout_seconds=12,
        )

        settings = build_model_settings(options)

        assert settings == {
            "temperature": 0.2,
            "top_p": 1.0,
            "max_tokens": 256,
            "stop_sequences": ["END"],
            "presence_penalty": 0.5,
            "timeout": 12,
        }

    def test_request_parameters_carry_tools(self) -> None:
        params = build_request_parameters(ChatOptions(tools=[WEATHER_TOOL]))

        assert [t.name for t in params.function_tools] == ["get_weather"]
        assert params.function_tools[0].parameters_json_schema["required"] == ["city"]
        assert params.allow_text_output is True


class TestPydanticAIChatModel:
    @pytest.mark.asyncio
    async def test_chat_round_trip(self) -> None:
        seen: List[AgentInfo] = []

        def reply(messages: List[ModelMessage], info: AgentInfo) -> ModelResponse:
            seen.append(info)
            if isinstance(messages[-1].parts[-1], ToolReturnPart):
                return ModelResponse(parts=[TextPart(content="It is sunny in Oslo.")])
            return ModelResponse(
                parts=[ToolCallPart(tool_name="get_weather", args={"city": "Oslo"}, tool_call_id="c1")]
            )

        model = PydanticAIChatModel(FunctionModel(reply))
        options = ChatOptions(temperature=0.1, tools=[WEATHER_TOOL])

        first = await model.chat([HumanMessage(content="weather?")], options)
        second = await model.chat(
            [HumanMessage(content="weather?"), first, ToolMessage(tool_call_id="c1", content="sunny")],
            options,
        )

        assert first.tool_calls[0].name == "get_weather"
        assert second.content == "It is sunny in Oslo."
        assert [t.name for t in seen[0].function_tools] == ["get_weather"]
        assert seen[0].model_settings["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_chat_stream_forwards_text_deltas(self) -> None:
        async def stream(messages: List[ModelMessage], info: AgentInfo) -> AsyncIterator[str]:
            for piece in ("Hel", "lo ", "there"):
                yield piece

        model = PydanticAIChatModel(FunctionModel(stream_function=stream))
        callback = CollectingStreamCallback()

        message = await model.chat_stream([HumanMessage(content="hi")], ChatOptions(), callback)

        assert message.content == "Hello there"
        assert callback.text == "Hello there"
        assert all(chunk.model == model.model_id for chunk in callback.chunks)

    @pytest.mark.asyncio
    async def test_provider_errors_are_classified(self) -> None:
        def reply(messages: List[ModelMessage], info: AgentInfo) -> ModelResponse:
            raise ModelHTTPError(status_code=429, model_name="fake", body="slow down")

        model = PydanticAIChatModel(FunctionModel(reply))

        with pytest.raises(ModelError) as excinfo:
            await model.chat([HumanMessage(content="hi")], ChatOptions())

        assert excinfo.value.code == ModelErrorCode.rate_limit_exceeded
        assert excinfo.value.retryable
        assert isinstance(excinfo.value.__cause__, ModelHTTPError)

    @pytest.mark.asyncio
    async def test_stream_errors_are_classified(self) -> None:
        async def stream(messages: List[ModelMessage], info: AgentInfo) -> AsyncIterator[str]:
            raise ConnectionError("reset by peer")
            yield ""

        model = PydanticAIChatModel(FunctionModel(stream_function=stream))

        with pytest.raises(ModelError) as excinfo:
            await model.chat_stream([HumanMessage(content="hi")], ChatOptions(), CollectingStreamCallback())

        assert excinfo.value.code == ModelErrorCode.connection_error

    def test_model_id_from_name_or_instance(self) -> None:
        def reply(messages: List[ModelMessage], info: AgentInfo) -> ModelResponse:
            return ModelResponse(parts=[TextPart(content="")])

        function_model = FunctionModel(reply)

        assert PydanticAIChatModel("openai:gpt-4o").model_id == "openai:gpt-4o"
        assert PydanticAIChatModel(function_model).model_id == function_model.model_name
