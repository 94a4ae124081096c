"""Checkpointer interface contract.

The execution loop depends on this Protocol instead of a concrete store.

Contract guidelines
-------------------

- All methods are async.
- A thread is created implicitly by its first ``save`` and disappears when
  its last checkpoint is deleted or ``delete_thread`` is called.
- ``save`` assigns ``sequence = max(sequence in thread) + 1``, starting at 1.
  Re-saving an existing ``checkpoint_id`` (idempotent upsert) replaces the
  payload, version and tag but keeps the sequence it was first given.
  Checkpoint ids are opaque: callers must not infer order from them.
- ``load_latest`` returns the state with the highest sequence; ``list``
  returns checkpoints newest first.
- Every failure is raised as ``CheckpointError`` whose ``kind`` tells the
  caller whether a retry can help.

Implementations must make each ``save`` atomic and isolated. They are not
required to serialize concurrent writers of the *same* thread; callers own
that (``Agent`` does it per thread within one process).
"""

from __future__ import annotations

import time
from typing import List, Optional, Protocol
from uuid import uuid4

from ..schemas.domain import CheckpointInfo
from ..schemas.state import AgentState


def generate_checkpoint_id() -> str:
    """Return a new ``chk_<millis>_<hex>`` checkpoint id."""
    return f"chk_{int(time.time() * 1000)}_{uuid4().hex[:8]}"


class Checkpointer(Protocol):
    """Persist and query ``AgentState`` snapshots per conversation thread."""

    async def save(
        self,
        thread_id: str,
        state: AgentState,
        *,
        checkpoint_id: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> str:
        """
        Store a snapshot.

        Args:
            thread_id: Conversation thread to store under.
            state: The state to snapshot.
            checkpoint_id: Upsert under this id; a new id is generated when omitted.
            tag: Optional label (the loop tags interrupt snapshots ``"interrupt"``).

        Returns:
            The checkpoint id.
        """
        ...

    async def load(self, thread_id: str, checkpoint_id: str) -> Optional[AgentState]:
        """Load a specific snapshot, or ``None`` if it does not exist."""
        ...

    async def load_latest(self, thread_id: str) -> Optional[AgentState]:
        """Load the snapshot with the highest sequence, or ``None`` for an unknown thread."""
        ...

    async def list(self, thread_id: str) -> List[CheckpointInfo]:
        """Describe the thread's checkpoints, newest first."""
        ...

    async def delete(self, thread_id: str, checkpoint_id: str) -> bool:
        """Delete one checkpoint. Returns False if it did not exist."""
        ...

    async def delete_thread(self, thread_id: str) -> bool:
        """Delete a thread and all its checkpoints. Returns False if unknown."""
        ...

    async def exists(self, thread_id: str) -> bool:
        """Whether the thread has at least one checkpoint."""
        ...

    async def list_threads(self) -> List[str]:
        """Ids of all known threads."""
        ...

    async def count(self, thread_id: str) -> int:
        """Number of checkpoints stored for the thread."""
        return len(await self.list(thread_id))

    async def cleanup(self, thread_id: str, *, keep: int) -> int:
        """
        Delete the oldest checkpoints of a thread beyond the newest ``keep``.

        Returns:
            How many checkpoints were deleted.
        """
        if keep < 0:
            raise ValueError("keep must not be negative")
        infos = await self.list(thread_id)
        deleted = 0
        for info in infos[keep:]:
            if await self.delete(thread_id, info.checkpoint_id):
                deleted += 1
        return deleted
