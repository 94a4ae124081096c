"""KnightAgent.

An agent runtime that drives a chat model through the ReAct loop: the model
reasons, requests tool calls, observes their results and answers.

High-level architecture
-----------------------

- ``knightagent.agent_core``:

  - Immutable, versioned ``AgentState`` and the typed message transcript.
  - A LangGraph-based ReAct loop with suspend/resume on interrupts
    (operator approval, rate limits) and streaming.
  - Middleware hooks around invocation, tool calls and state updates.
  - ``Checkpointer`` storage: in-memory and SQL (async SQLAlchemy).

- ``knightagent.core``:

  - Settings (pydantic-settings), logging configuration and logfire
    monitoring.

Typical workflow
----------------

1. Build an ``Agent`` from a chat model, tools and middlewares.
2. ``invoke`` it with a request bound to a thread id.
3. If the response carries an ``approval_request``, record a decision on it
   and ``resume`` from the response's checkpoint.
"""
