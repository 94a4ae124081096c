"""State reducers.

A reducer rewrites the state at the end of a call, before ``on_state_update``
middlewares run and before the final checkpoint is written. It receives the
state the call started from, the state the loop produced and the execution
context::

    reducer(old_state, new_state, ctx) -> AgentState

Reducers are plain callables; the helpers below build the common ones.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from .schemas.state import AgentState

if TYPE_CHECKING:
    from .middleware.context import AgentContext

StateReducer = Callable[[AgentState, AgentState, "AgentContext"], AgentState]


def identity() -> StateReducer:
    """Reducer that keeps the new state as-is."""

    def _reduce(old: AgentState, new: AgentState, ctx: "AgentContext") -> AgentState:
        return new

    return _reduce


def limit_messages(max_messages: int) -> StateReducer:
    """Reducer that keeps only the most recent ``max_messages`` messages.

    Raises:
        ValueError: If ``max_messages`` is not positive.
    """
    if max_messages <= 0:
        raise ValueError("max_messages must be positive")

    def _reduce(old: AgentState, new: AgentState, ctx: "AgentContext") -> AgentState:
        if new.message_count <= max_messages:
            return new
        return new.with_messages(new.messages[-max_messages:])

    return _reduce


def compose(*reducers: StateReducer) -> StateReducer:
    """Apply reducers left to right, each seeing the previous one's output."""

    def _reduce(old: AgentState, new: AgentState, ctx: "AgentContext") -> AgentState:
        state = new
        for reducer in reducers:
            state = reducer(old, state, ctx)
        return state

    return _reduce
