"""Message model for agent transcripts.

A transcript is an ordered sequence of four message variants, discriminated by
the ``type`` field so that a persisted transcript decodes back into the exact
classes it was written from:

- ``SystemMessage`` (``"system"``): instructions; may carry a ``priority``.
- ``HumanMessage`` (``"human"``): user input.
- ``AIMessage`` (``"ai"``): a model reply, optionally requesting ``ToolCall``s.
- ``ToolMessage`` (``"tool"``): the outcome of one tool call; ``content`` holds
  the result payload and ``error``/``error_message`` flag failures.

``ToolCall`` arguments are kept as JSON text. The loop never looks inside
them; only the named tool interprets the payload.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Tuple, Union
from uuid import uuid4

from pydantic import Field, field_validator

from .base import FrozenDict, WireSchema, _utc_now, freeze


def _tool_call_id() -> str:
    return f"call_{uuid4().hex[:8]}"


class ToolCall(WireSchema):
    """A model's request to run one tool.

    Attributes:
        id: Correlates the request with its ``ToolMessage``.
        name: Registered tool name.
        arguments: JSON text; dict input is encoded on construction.
    """

    id: str = Field(default_factory=_tool_call_id)
    name: str
    arguments: str = "{}"

    @field_validator("arguments", mode="before")
    @classmethod
    def _encode_arguments(cls, value: Any) -> Any:
        if value is None:
            return "{}"
        if isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False)
        return value

    def parsed_arguments(self) -> Dict[str, Any]:
        """Decode ``arguments``; blank text decodes to an empty dict.

        Raises:
            ValueError: If the text is not a JSON object.
        """
        if not self.arguments.strip():
            return {}
        parsed = json.loads(self.arguments)
        if not isinstance(parsed, dict):
            raise ValueError(f"tool arguments must be a JSON object, got {type(parsed).__name__}")
        return parsed

    def with_arguments(self, arguments: Union[str, Dict[str, Any]]) -> "ToolCall":
        """Copy this call with the same id and name but new arguments."""
        return ToolCall(id=self.id, name=self.name, arguments=arguments)


class BaseMessage(WireSchema):
    """Fields shared by all message variants."""

    content: str = ""
    additional_data: Dict[str, Any] = Field(default_factory=FrozenDict)
    timestamp: datetime = Field(default_factory=_utc_now)

    @field_validator("additional_data", mode="after")
    @classmethod
    def _freeze_additional_data(cls, value: Dict[str, Any]) -> FrozenDict:
        return freeze(value)


class SystemMessage(BaseMessage):
    type: Literal["system"] = "system"
    priority: int = 0


class HumanMessage(BaseMessage):
    type: Literal["human"] = "human"
    user_id: Optional[str] = None
    source: Optional[str] = None


class AIMessage(BaseMessage):
    type: Literal["ai"] = "ai"
    tool_calls: Tuple[ToolCall, ...] = ()
    reasoning: Optional[str] = None
    usage_tokens: Optional[int] = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class ToolMessage(BaseMessage):
    type: Literal["tool"] = "tool"
    tool_call_id: str
    error: bool = False
    error_message: Optional[str] = None

    @property
    def result(self) -> str:
        return self.content

    @classmethod
    def success(cls, tool_call_id: str, result: str) -> "ToolMessage":
        return cls(tool_call_id=tool_call_id, content=result)

    @classmethod
    def failure(cls, tool_call_id: str, message: str) -> "ToolMessage":
        return cls(tool_call_id=tool_call_id, content=message, error=True, error_message=message)


Message = Annotated[
    Union[SystemMessage, HumanMessage, AIMessage, ToolMessage],
    Field(discriminator="type"),
]


class ToolResult(WireSchema):
    """Outcome of a single tool invocation.

    ``to_message`` converts it 1:1 into the ``ToolMessage`` appended to the
    transcript.
    """

    tool_call_id: str = ""
    result: str = ""
    error: bool = False
    error_message: Optional[str] = None

    @classmethod
    def success(cls, tool_call_id: str, result: str) -> "ToolResult":
        return cls(tool_call_id=tool_call_id, result=result)

    @classmethod
    def failure(cls, tool_call_id: str, message: str) -> "ToolResult":
        return cls(tool_call_id=tool_call_id, result=message, error=True, error_message=message)

    def to_message(self) -> ToolMessage:
        return ToolMessage(
            tool_call_id=self.tool_call_id,
            content=self.result,
            error=self.error,
            error_message=self.error_message,
        )
