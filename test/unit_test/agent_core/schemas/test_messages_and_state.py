from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from knightagent.agent_core.schemas.messages import (
    AIMessage,
    HumanMessage,
    SystemMessage,
    ToolCall,
    ToolMessage,
    ToolResult,
)
from knightagent.agent_core.schemas.state import AgentState


class TestToolCall:
    def test_dict_arguments_are_encoded(self) -> None:
        c = ToolCall(name="search", arguments={"q": "日本"})

        assert c.arguments == '{"q": "日本"}'
        assert c.parsed_arguments() == {"q": "日本"}
        assert c.id.startswith("call_")

    def test_blank_arguments_parse_to_empty_dict(self) -> None:
        assert ToolCall(name="x", arguments="  ").parsed_arguments() == {}
        assert ToolCall(name="x", arguments=None).arguments == "{}"

    def test_non_object_arguments_are_rejected(self) -> None:
        with pytest.raises(ValueError):
            ToolCall(name="x", arguments="[1, 2]").parsed_arguments()

    def test_with_arguments_keeps_identity(self) -> None:
        original = ToolCall(id="c1", name="x", arguments={"a": 1})

        edited = original.with_arguments({"a": 2})

        assert edited.id == "c1"
        assert edited.name == "x"
        assert edited.parsed_arguments() == {"a": 2}
        assert original.parsed_arguments() == {"a": 1}

    def test_is_immutable(self) -> None:
        c = ToolCall(name="x")
        with pytest.raises(ValidationError):
            c.name = "y"


class TestMessages:
    def test_ai_message_tool_calls(self) -> None:
        assert AIMessage(content="hi").has_tool_calls is False
        assert AIMessage(tool_calls=[ToolCall(name="x")]).has_tool_calls is True

    def test_tool_message_factories(self) -> None:
        ok = ToolMessage.success("c1", "42")
        bad = ToolMessage.failure("c1", "boom")

        assert (ok.result, ok.error) == ("42", False)
        assert (bad.content, bad.error, bad.error_message) == ("boom", True, "boom")

    def test_tool_result_maps_to_message(self) -> None:
        message = ToolResult.failure("c9", "nope").to_message()

        assert isinstance(message, ToolMessage)
        assert message.tool_call_id == "c9"
        assert message.error is True
        assert message.error_message == "nope"

    def test_metadata_and_tool_calls_are_read_only(self) -> None:
        message = AIMessage(tool_calls=[ToolCall(name="x")], additional_data={"source": "model"})

        assert isinstance(message.tool_calls, tuple)
        with pytest.raises(TypeError):
            message.additional_data["source"] = "edited"
        assert HumanMessage(content="x").additional_data == {}

    def test_unknown_fields_are_rejected(self) -> None:
        with pytest.raises(ValidationError):
            HumanMessage(content="x", mood="happy")


class TestAgentState:
    def test_mutators_return_new_versions(self) -> None:
        s0 = AgentState()
        s1 = s0.add_message(HumanMessage(content="hi"))
        s2 = s1.put("k", 1)
        s3 = s2.put_all({"a": 1, "b": 2})
        s4 = s3.remove("k")

        assert [s.version for s in (s0, s1, s2, s3, s4)] == [0, 1, 2, 3, 4]
        assert s0.messages == ()
        assert s0.data == {}
        assert s1.data == {}
        assert s4.data == {"a": 1, "b": 2}
        assert s4.updated_at >= s0.updated_at
        assert s4.created_at == s0.created_at

    def test_data_is_read_only_and_detached(self) -> None:
        source = {"k": [1]}
        s1 = AgentState(data=source)
        s2 = s1.add_message(HumanMessage(content="hi"))
        s3 = s2.put("k", 2)

        with pytest.raises(TypeError):
            s2.data["k"] = 2
        with pytest.raises(TypeError):
            s2.data.update(k=3)
        source["k"].append(2)
        assert s1.data == {"k": [1]}
        assert s2.data == {"k": [1]}
        assert s3.data == {"k": 2}
        assert AgentState().put("x", 1).data == {"x": 1}

    def test_data_survives_copy_and_wire_round_trip(self) -> None:
        state = AgentState().put("k", {"nested": True})

        copied = state.model_copy(deep=True)

        assert copied.data == {"k": {"nested": True}}
        assert AgentState.from_json(state.to_json()).data == {"k": {"nested": True}}
        assert state.to_document()["data"] == {"k": {"nested": True}}

    def test_removing_missing_key_is_a_no_op(self) -> None:
        state = AgentState().put("a", 1)

        assert state.remove("missing") is state

    def test_add_messages_and_with_messages(self) -> None:
        state = AgentState().add_messages([HumanMessage(content="a"), AIMessage(content="b")])

        assert state.version == 1
        assert state.message_count == 2
        assert state.last_message.content == "b"
        replaced = state.with_messages([SystemMessage(content="summary")])
        assert replaced.message_count == 1
        assert replaced.version == 2

    def test_readers(self) -> None:
        state = (
            AgentState()
            .add_message(HumanMessage(content="q1"))
            .add_message(AIMessage(content="a1"))
            .add_message(HumanMessage(content="q2"))
            .add_message(AIMessage(tool_calls=[ToolCall(id="c", name="t")]))
            .add_message(ToolMessage(tool_call_id="c", content="r"))
            .add_message(AIMessage(content="a2"))
            .put("lang", "en")
        )

        assert state.get("lang") == "en"
        assert state.get("missing", "d") == "d"
        assert state.contains("lang")
        assert state.last_ai_message().content == "a2"
        assert state.ai_messages_since_last_human() == 2
        assert AgentState().last_message is None
        assert AgentState().last_ai_message() is None

    def test_json_wire_form_uses_camel_case_and_type_tags(self) -> None:
        state = AgentState().add_message(
            AIMessage(content="x", tool_calls=[ToolCall(id="c1", name="t", arguments={"a": 1})], usage_tokens=3)
        )

        document = json.loads(state.to_json())

        assert set(document) == {"messages", "data", "createdAt", "updatedAt", "version"}
        message = document["messages"][0]
        assert message["type"] == "ai"
        assert message["usageTokens"] == 3
        assert message["toolCalls"][0] == {"id": "c1", "name": "t", "arguments": '{"a": 1}'}

    def test_decoding_restores_exact_message_classes(self) -> None:
        state = (
            AgentState()
            .add_message(SystemMessage(content="s", priority=2))
            .add_message(HumanMessage(content="h", user_id="u"))
            .add_message(AIMessage(content="a", reasoning="because"))
            .add_message(ToolMessage(tool_call_id="c", content="t", error=True, error_message="t"))
            .put("nested", {"list": [1, 2], "flag": True})
        )

        restored = AgentState.from_json(state.to_json())

        assert restored == state
        assert [type(m) for m in restored.messages] == [SystemMessage, HumanMessage, AIMessage, ToolMessage]
        assert AgentState.from_document(state.to_document()) == state

    def test_decoding_rejects_unknown_message_type(self) -> None:
        document = AgentState().add_message(HumanMessage(content="x")).to_document()
        document["messages"][0]["type"] = "alien"

        with pytest.raises(ValidationError):
            AgentState.from_document(document)
