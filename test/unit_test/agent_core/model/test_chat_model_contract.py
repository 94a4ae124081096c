from __future__ import annotations

from typing import Sequence

import pytest

from knightagent.agent_core.model.base import ChatModel, ModelCapabilities
from knightagent.agent_core.model.streaming import CollectingStreamCallback, StreamChunk
from knightagent.agent_core.schemas.config import ChatOptions
from knightagent.agent_core.schemas.messages import AIMessage, HumanMessage, Message


class _EchoModel(ChatModel):
    model_id = "echo"
    capabilities = ModelCapabilities.basic()

    async def chat(self, messages: Sequence[Message], options: ChatOptions) -> AIMessage:
        return AIMessage(content=messages[-1].content if messages else "")


class TestModelCapabilities:
    def test_presets(self) -> None:
        assert ModelCapabilities.gpt4o().max_context_tokens == 128000
        assert ModelCapabilities.claude3().family == "claude-3"
        assert ModelCapabilities.gpt4().supports_parallel_tool_calling
        basic = ModelCapabilities.basic()
        assert not basic.supports_streaming
        assert not basic.supports_tool_calling

    def test_remaining_tokens_never_negative(self) -> None:
        caps = ModelCapabilities(max_context_tokens=100)

        assert caps.remaining_tokens(30) == 70
        assert caps.remaining_tokens(500) == 0


class TestChatModelDefaults:
    @pytest.mark.asyncio
    async def test_default_stream_reports_one_final_chunk(self) -> None:
        callback = CollectingStreamCallback()

        message = await _EchoModel().chat_stream([HumanMessage(content="ping")], ChatOptions(), callback)

        assert message.content == "ping"
        assert [c.content for c in callback.chunks] == ["ping"]
        assert callback.chunks[0].is_final
        assert callback.chunks[0].model == "echo"

    @pytest.mark.asyncio
    async def test_default_stream_skips_empty_reply(self) -> None:
        callback = CollectingStreamCallback()

        await _EchoModel().chat_stream([], ChatOptions(), callback)

        assert callback.chunks == []

    @pytest.mark.parametrize("text,expected", [("", 0), ("abc", 1), ("a" * 40, 10)])
    def test_count_tokens_estimate(self, text: str, expected: int) -> None:
        assert _EchoModel().count_tokens(text) == expected


def test_stream_chunk_is_final_only_with_finish_reason() -> None:
    assert not StreamChunk(content="a").is_final
    assert StreamChunk(content="", finish_reason="length").is_final
