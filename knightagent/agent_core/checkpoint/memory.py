"""In-memory checkpointer.

Volatile implementation of ``Checkpointer`` for tests, development and
single-process deployments that do not need to survive a restart.

States are deep-copied on save and on load, so a stored snapshot never
shares nested values with a state held by a caller.
A single lock guards the thread map; every operation holds it only for
in-memory bookkeeping, which makes each ``save`` atomic and isolated for
concurrent callers on any thread.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from knightagent.core.logging_config import get_logger

from ..schemas.domain import CheckpointInfo
from ..schemas.state import AgentState
from .interfaces import Checkpointer, generate_checkpoint_id

logger = get_logger(__name__)


@dataclass
class _Entry:
    info: CheckpointInfo
    state: AgentState


class InMemoryCheckpointer(Checkpointer):
    """Process-local ``Checkpointer`` backed by dictionaries."""

    def __init__(self) -> None:
        self._threads: Dict[str, Dict[str, _Entry]] = {}
        self._lock = threading.Lock()

    async def save(
        self,
        thread_id: str,
        state: AgentState,
        *,
        checkpoint_id: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> str:
        if not thread_id:
            raise ValueError("thread_id must not be empty")
        cid = checkpoint_id or generate_checkpoint_id()
        with self._lock:
            entries = self._threads.setdefault(thread_id, {})
            existing = entries.get(cid)
            if existing is not None:
                sequence = existing.info.sequence
            else:
                sequence = max((e.info.sequence for e in entries.values()), default=0) + 1
            info = CheckpointInfo(
                checkpoint_id=cid,
                thread_id=thread_id,
                sequence=sequence,
                version=state.version,
                created_at=datetime.now(timezone.utc),
                tag=tag,
            )
            entries[cid] = _Entry(info=info, state=state.model_copy(deep=True))
        logger.debug(f"Saved checkpoint {cid} (sequence {sequence}) for thread {thread_id}")
        return cid

    async def load(self, thread_id: str, checkpoint_id: str) -> Optional[AgentState]:
        with self._lock:
            entry = self._threads.get(thread_id, {}).get(checkpoint_id)
        return entry.state.model_copy(deep=True) if entry is not None else None

    async def load_latest(self, thread_id: str) -> Optional[AgentState]:
        with self._lock:
            entries = self._threads.get(thread_id)
            if not entries:
                return None
            latest = max(entries.values(), key=lambda e: e.info.sequence)
        return latest.state.model_copy(deep=True)

    async def list(self, thread_id: str) -> List[CheckpointInfo]:
        with self._lock:
            infos = [e.info for e in self._threads.get(thread_id, {}).values()]
        return sorted(infos, key=lambda i: i.sequence, reverse=True)

    async def delete(self, thread_id: str, checkpoint_id: str) -> bool:
        with self._lock:
            entries = self._threads.get(thread_id)
            if not entries or checkpoint_id not in entries:
                return False
            del entries[checkpoint_id]
            if not entries:
                del self._threads[thread_id]
        return True

    async def delete_thread(self, thread_id: str) -> bool:
        with self._lock:
            return self._threads.pop(thread_id, None) is not None

    async def exists(self, thread_id: str) -> bool:
        with self._lock:
            return bool(self._threads.get(thread_id))

    async def list_threads(self) -> List[str]:
        with self._lock:
            return list(self._threads)

    async def count(self, thread_id: str) -> int:
        with self._lock:
            return len(self._threads.get(thread_id, {}))

    @property
    def thread_count(self) -> int:
        with self._lock:
            return len(self._threads)

    @property
    def total_checkpoint_count(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._threads.values())

    def clear(self) -> None:
        with self._lock:
            self._threads.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            per_thread = {tid: len(entries) for tid, entries in self._threads.items()}
        return {
            "thread_count": len(per_thread),
            "total_checkpoint_count": sum(per_thread.values()),
            "checkpoints_per_thread": per_thread,
        }
