"""Convenience factories for wiring agents.

``AgentBuilder`` collects the parts of an ``Agent`` step by step and fills
in defaults for whatever was left out:

- tools: an empty ``ToolInvoker``;
- checkpointer: a fresh ``InMemoryCheckpointer``;
- config: ``AgentConfig()``.

``build_agent`` is the one-call form; ``build_sql_checkpointer`` wires a
``SqlCheckpointer`` from a database URL (the configured one by default).
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Union

from pydantic_ai.models import Model

from knightagent.core.config import get_settings

from .agent import Agent
from .checkpoint.interfaces import Checkpointer
from .checkpoint.memory import InMemoryCheckpointer
from .checkpoint.sql import SqlCheckpointer, create_all, create_engine, create_sessionmaker
from .middleware.base import Middleware
from .model.base import ChatModel
from .model.pydantic_ai import PydanticAIChatModel
from .schemas.config import AgentConfig
from .tools.base import Tool
from .tools.registry import ToolInvoker


class AgentBuilder:
    """Step-by-step ``Agent`` construction.

    Every setter returns the builder::

        agent = (
            AgentBuilder()
            .model(chat_model)
            .tools(get_weather)
            .middleware(HumanInTheLoopMiddleware(tools=["get_weather"]))
            .build()
        )
    """

    def __init__(self) -> None:
        self._model: Optional[ChatModel] = None
        self._invoker: Optional[ToolInvoker] = None
        self._tools: List[Tool] = []
        self._checkpointer: Optional[Checkpointer] = None
        self._config: Optional[AgentConfig] = None
        self._middlewares: List[Middleware] = []

    def model(self, model: Union[ChatModel, Model, str]) -> "AgentBuilder":
        """Set the chat model; pydantic-ai models and model names are wrapped."""
        if isinstance(model, (str, Model)):
            model = PydanticAIChatModel(model)
        self._model = model
        return self

    def tool_invoker(self, invoker: ToolInvoker) -> "AgentBuilder":
        self._invoker = invoker
        return self

    def tools(self, *tools: Tool) -> "AgentBuilder":
        self._tools.extend(tools)
        return self

    def checkpointer(self, checkpointer: Checkpointer) -> "AgentBuilder":
        self._checkpointer = checkpointer
        return self

    def config(self, config: AgentConfig) -> "AgentBuilder":
        self._config = config
        return self

    def middleware(self, *middlewares: Middleware) -> "AgentBuilder":
        self._middlewares.extend(middlewares)
        return self

    def build(self) -> Agent:
        """Create the agent.

        Raises:
            ValueError: If no model was set.
        """
        if self._model is None:
            raise ValueError("a chat model is required to build an agent")
        invoker = self._invoker if self._invoker is not None else ToolInvoker()
        invoker.register_all(self._tools)
        return Agent(
            self._model,
            tools=invoker,
            checkpointer=self._checkpointer if self._checkpointer is not None else InMemoryCheckpointer(),
            config=self._config or AgentConfig(),
            middlewares=self._middlewares,
        )


def build_agent(
    model: Union[ChatModel, Model, str],
    *,
    tools: Iterable[Tool] = (),
    checkpointer: Optional[Checkpointer] = None,
    config: Optional[AgentConfig] = None,
    middlewares: Iterable[Middleware] = (),
) -> Agent:
    """Construct an ``Agent`` with builder defaults in one call."""
    builder = AgentBuilder().model(model).tools(*tools).middleware(*middlewares)
    if checkpointer is not None:
        builder.checkpointer(checkpointer)
    if config is not None:
        builder.config(config)
    return builder.build()


async def build_sql_checkpointer(
    db_url: Optional[str] = None,
    *,
    create_tables: bool = True,
    timeout_seconds: Optional[float] = None,
) -> SqlCheckpointer:
    """Create a ``SqlCheckpointer`` for ``db_url`` (default: the configured URL)."""
    engine = create_engine(db_url or get_settings().database_url)
    if create_tables:
        await create_all(engine)
    return SqlCheckpointer(session_factory=create_sessionmaker(engine), timeout_seconds=timeout_seconds)
