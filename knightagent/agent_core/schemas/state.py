"""Immutable, versioned conversation state.

``AgentState`` is the value the execution loop evolves. It holds the
chronological transcript and a keyed data map for one conversation thread.

Every mutator returns a *new* state whose ``version`` is one higher than the
state it was derived from and whose ``updated_at`` is refreshed; the receiver
is never modified. ``data`` is a read-only mapping detached from the caller's
dict, so two responses never share a state that one of them changed
afterwards.

Wire form
---------

``to_json``/``from_json`` use the camelCase document::

    {"messages": [...], "data": {...}, "createdAt": "...",
     "updatedAt": "...", "version": 3}

Each message carries its ``type`` discriminator, so decoding restores the
exact message classes. ``data`` values must be JSON-serializable for durable
checkpointers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from pydantic import Field, field_validator

from .base import FrozenDict, WireSchema, _utc_now, freeze
from .messages import AIMessage, HumanMessage, Message


class AgentState(WireSchema):
    """Immutable snapshot of one thread's transcript and data."""

    messages: Tuple[Message, ...] = ()
    data: Dict[str, Any] = Field(default_factory=FrozenDict)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)
    version: int = 0

    @field_validator("data", mode="after")
    @classmethod
    def _freeze_data(cls, value: Dict[str, Any]) -> FrozenDict:
        return freeze(value)

    def _evolve(self, **changes: Any) -> "AgentState":
        if "data" in changes:
            changes["data"] = freeze(changes["data"])
        changes["version"] = self.version + 1
        changes["updated_at"] = _utc_now()
        return self.model_copy(update=changes)

    # ------------------------------------------------------------------
    # Mutators (copy-on-write)
    # ------------------------------------------------------------------

    def add_message(self, message: Message) -> "AgentState":
        return self._evolve(messages=self.messages + (message,))

    def add_messages(self, messages: Iterable[Message]) -> "AgentState":
        return self._evolve(messages=self.messages + tuple(messages))

    def with_messages(self, messages: Iterable[Message]) -> "AgentState":
        """Replace the whole transcript. Reserved for reducers and summarizers."""
        return self._evolve(messages=tuple(messages))

    def put(self, key: str, value: Any) -> "AgentState":
        return self._evolve(data={**self.data, key: value})

    def put_all(self, values: Mapping[str, Any]) -> "AgentState":
        return self._evolve(data={**self.data, **values})

    def remove(self, key: str) -> "AgentState":
        if key not in self.data:
            return self
        data = dict(self.data)
        del data[key]
        return self._evolve(data=data)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def contains(self, key: str) -> bool:
        return key in self.data

    @property
    def message_count(self) -> int:
        return len(self.messages)

    @property
    def last_message(self) -> Optional[Message]:
        return self.messages[-1] if self.messages else None

    def last_ai_message(self) -> Optional[AIMessage]:
        for message in reversed(self.messages):
            if isinstance(message, AIMessage):
                return message
        return None

    def ai_messages_since_last_human(self) -> int:
        """Count AI replies after the most recent human message."""
        count = 0
        for message in reversed(self.messages):
            if isinstance(message, HumanMessage):
                break
            if isinstance(message, AIMessage):
                count += 1
        return count

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_document(self) -> Dict[str, Any]:
        """JSON-compatible dict in the wire form."""
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "AgentState":
        return cls.model_validate(document)

    @classmethod
    def from_json(cls, payload: str) -> "AgentState":
        return cls.model_validate_json(payload)
