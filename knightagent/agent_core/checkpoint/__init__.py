"""Checkpoint storage for agent state.

The checkpoint layer is the persistence boundary of the execution loop.

Responsibilities
----------------

- Provide the async ``Checkpointer`` Protocol the loop depends on.
- Store immutable ``AgentState`` snapshots per conversation thread, each with
  a per-thread sequence number, and support time travel (load any snapshot),
  listing and deletion.

Implementations
---------------

- ``InMemoryCheckpointer``: volatile, process-local.
- ``SqlCheckpointer``: durable, transactional (async SQLAlchemy).
"""

from .interfaces import Checkpointer, generate_checkpoint_id
from .memory import InMemoryCheckpointer
from .sql import SqlCheckpointer, create_all, create_engine, create_sessionmaker

__all__ = [
    "Checkpointer",
    "InMemoryCheckpointer",
    "SqlCheckpointer",
    "create_all",
    "create_engine",
    "create_sessionmaker",
    "generate_checkpoint_id",
]
