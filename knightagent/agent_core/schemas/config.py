"""Agent and model call configuration.

``AgentConfig`` fixes the behavior of one agent instance; per-request
overrides (system prompt, iteration limit, thread) travel on
``AgentRequest``. ``ChatOptions`` are the parameters of a single model call,
including the tool descriptors the model may choose from and the deadline the
call must respect.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from pydantic import ConfigDict, Field

from knightagent.core.config import KnightAgentSettings, get_settings

from .base import BaseSchema


class ToolDescriptor(BaseSchema):
    """What the model is told about one tool: its name, purpose and JSON schema."""

    name: str
    description: str = ""
    parameters_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class ChatOptions(BaseSchema):
    """Sampling and transport options for one chat model call."""

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    top_p: float = Field(default=1.0, ge=0.0, le=1.0)
    max_tokens: Optional[int] = Field(default=None, ge=0)
    stop_sequences: List[str] = Field(default_factory=list)
    top_k: Optional[int] = Field(default=None, ge=1)
    frequency_penalty: float = Field(default=0.0, ge=-2.0, le=2.0)
    presence_penalty: float = Field(default=0.0, ge=-2.0, le=2.0)
    system_prompt: Optional[str] = None
    timeout_seconds: Optional[float] = Field(default=60.0, gt=0)
    stream_enabled: bool = False
    tools: List[ToolDescriptor] = Field(default_factory=list)

    @classmethod
    def deterministic(cls) -> "ChatOptions":
        return cls(temperature=0.1, top_p=0.9)

    @classmethod
    def creative(cls) -> "ChatOptions":
        return cls(temperature=0.9, top_p=1.0)

    @classmethod
    def for_code(cls) -> "ChatOptions":
        return cls(temperature=0.2, frequency_penalty=0.3)

    def with_tools(self, tools: List[ToolDescriptor]) -> "ChatOptions":
        return self.model_copy(update={"tools": list(tools)})

    @property
    def has_tools(self) -> bool:
        return bool(self.tools)


class AgentConfig(BaseSchema):
    """Static configuration of an agent.

    Attributes:
        max_iterations: Upper bound on model calls per invoke (1..100).
        checkpoint_enabled: Save the state when a call finishes. Interrupted
            calls are always saved because resuming needs the checkpoint.
        timeout_seconds: Deadline for one whole invoke/resume call.
        tool_timeout_seconds: Deadline for one tool call; ``None`` disables it.
        middlewares: ``Middleware`` instances run for every call.
        state_reducer: Callable ``(old, new, ctx) -> AgentState`` applied
            before the final checkpoint.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid", arbitrary_types_allowed=True)

    name: str = "agent"
    description: Optional[str] = None
    system_prompt: Optional[str] = None
    max_iterations: int = Field(default=10, ge=1, le=100)
    stream_enabled: bool = True
    checkpoint_enabled: bool = True
    timeout_seconds: float = Field(default=120.0, gt=0)
    tool_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    chat_options: ChatOptions = Field(default_factory=ChatOptions)
    thread_id: Optional[str] = None
    middlewares: List[Any] = Field(default_factory=list)
    state_reducer: Optional[Callable[..., Any]] = None
    additional_config: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Optional[KnightAgentSettings] = None, **overrides: Any) -> "AgentConfig":
        """Build a config seeded with the process-wide agent defaults."""
        defaults = (settings or get_settings()).agent_defaults
        values: Dict[str, Any] = {
            "max_iterations": defaults.max_iterations,
            "timeout_seconds": defaults.timeout_seconds,
            "tool_timeout_seconds": defaults.tool_timeout_seconds,
            "checkpoint_enabled": defaults.checkpoint_enabled,
        }
        values.update(overrides)
        return cls(**values)
