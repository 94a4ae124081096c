"""SQLAlchemy async checkpointer.

This module provides the durable ``Checkpointer`` implementation, backed by
PostgreSQL (asyncpg) in production and SQLite (aiosqlite) in tests.

Usage
-----

Typical wiring (tests or application setup):

- Create an async engine with ``create_engine``.
- Create tables with ``create_all`` (for tests/dev; production typically uses
  migrations).
- Create a session factory with ``create_sessionmaker``.
- Build the checkpointer with ``SqlCheckpointer(session_factory=...)``.

Transaction model
-----------------

Each method opens its own ``AsyncSession``. ``save`` runs the thread upsert,
the next-sequence lookup, the checkpoint upsert and the thread timestamp bump
inside one transaction: either all of them commit or none do, so a failed
save leaves earlier checkpoints untouched.

Errors
------

SQLAlchemy failures are raised as ``CheckpointError`` of kind ``io``, an
exceeded ``timeout_seconds`` as kind ``timeout`` and payloads that cannot be
encoded or decoded as kind ``serialization``.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from knightagent.core.logging_config import get_logger

from ..errors import CheckpointError
from ..schemas.domain import CheckpointInfo
from ..schemas.state import AgentState
from .interfaces import Checkpointer, generate_checkpoint_id
from .models import Base, CheckpointRow, ThreadRow

logger = get_logger(__name__)

T = TypeVar("T")


def create_engine(db_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    The helper normalizes Postgres URLs to ensure the async driver is used.
    For example, it rewrites ``postgresql://`` and other variants to
    ``postgresql+asyncpg://``.
    """
    url = re.sub(r"^postgres(?:ql)?(?:\+[a-z0-9_]+)?://", "postgresql+asyncpg://", db_url, count=1)
    return create_async_engine(url, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an ``async_sessionmaker`` with safe defaults for this project."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create the checkpoint tables.

    This is mainly intended for tests and local development.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops the offset of timezone-aware columns.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _encode_state(state: AgentState) -> Dict[str, Any]:
    try:
        return state.to_document()
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise CheckpointError.serialization_error(f"cannot serialize state: {e}") from e


def _decode_state(document: Dict[str, Any]) -> AgentState:
    try:
        return AgentState.from_document(document)
    except ValidationError as e:
        raise CheckpointError.serialization_error(f"cannot deserialize state: {e}") from e


def _to_info(row: CheckpointRow) -> CheckpointInfo:
    return CheckpointInfo(
        checkpoint_id=row.checkpoint_id,
        thread_id=row.thread_id,
        sequence=row.sequence,
        version=row.version,
        created_at=_as_utc(row.created_at),
        tag=row.tag,
    )


@dataclass(frozen=True)
class SqlCheckpointer(Checkpointer):
    """SQL implementation of ``Checkpointer``.

    Attributes:
        session_factory: Session factory bound to the checkpoint database.
        timeout_seconds: Optional deadline applied to every operation.
    """

    session_factory: async_sessionmaker[AsyncSession]
    timeout_seconds: Optional[float] = None

    async def _run(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            if self.timeout_seconds is not None:
                return await asyncio.wait_for(fn(), self.timeout_seconds)
            return await fn()
        except CheckpointError:
            raise
        except asyncio.TimeoutError as e:
            raise CheckpointError.timeout(f"checkpoint {operation} timed out after {self.timeout_seconds}s") from e
        except SQLAlchemyError as e:
            logger.error(f"Checkpoint {operation} failed: {e}")
            raise CheckpointError.io_error(f"checkpoint {operation} failed: {e}") from e

    async def save(
        self,
        thread_id: str,
        state: AgentState,
        *,
        checkpoint_id: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> str:
        """
        Persist a snapshot in a single transaction.

        Args:
            thread_id: Conversation thread to store under.
            state: The state to snapshot.
            checkpoint_id: Upsert under this id; generated when omitted.
            tag: Optional label.

        Returns:
            The checkpoint id.
        """
        if not thread_id:
            raise ValueError("thread_id must not be empty")
        cid = checkpoint_id or generate_checkpoint_id()
        document = _encode_state(state)

        async def _save() -> str:
            async with self.session_factory() as s:
                async with s.begin():
                    now = _utc_now()
                    thread = await s.get(ThreadRow, thread_id)
                    if thread is None:
                        thread = ThreadRow(thread_id=thread_id, created_at=now, updated_at=now, meta={})
                        s.add(thread)
                        await s.flush()

                    row = await s.get(CheckpointRow, (thread_id, cid))
                    if row is not None:
                        row.state_data = document
                        row.version = state.version
                        row.tag = tag
                        row.created_at = now
                        sequence = row.sequence
                    else:
                        current = await s.scalar(
                            select(func.max(CheckpointRow.sequence)).where(CheckpointRow.thread_id == thread_id)
                        )
                        sequence = (current or 0) + 1
                        s.add(
                            CheckpointRow(
                                thread_id=thread_id,
                                checkpoint_id=cid,
                                sequence=sequence,
                                state_data=document,
                                version=state.version,
                                tag=tag,
                                created_at=now,
                            )
                        )
                    thread.updated_at = now
            logger.debug(f"Saved checkpoint {cid} (sequence {sequence}) for thread {thread_id}")
            return cid

        return await self._run("save", _save)

    async def load(self, thread_id: str, checkpoint_id: str) -> Optional[AgentState]:
        async def _load() -> Optional[AgentState]:
            async with self.session_factory() as s:
                row = await s.get(CheckpointRow, (thread_id, checkpoint_id))
                return _decode_state(row.state_data) if row is not None else None

        return await self._run("load", _load)

    async def load_latest(self, thread_id: str) -> Optional[AgentState]:
        async def _load_latest() -> Optional[AgentState]:
            async with self.session_factory() as s:
                stmt = (
                    select(CheckpointRow)
                    .where(CheckpointRow.thread_id == thread_id)
                    .order_by(CheckpointRow.sequence.desc())
                    .limit(1)
                )
                row = (await s.execute(stmt)).scalars().first()
                return _decode_state(row.state_data) if row is not None else None

        return await self._run("load_latest", _load_latest)

    async def list(self, thread_id: str) -> List[CheckpointInfo]:
        async def _list() -> List[CheckpointInfo]:
            async with self.session_factory() as s:
                stmt = (
                    select(CheckpointRow)
                    .where(CheckpointRow.thread_id == thread_id)
                    .order_by(CheckpointRow.sequence.desc())
                )
                rows = (await s.execute(stmt)).scalars().all()
                return [_to_info(r) for r in rows]

        return await self._run("list", _list)

    async def delete(self, thread_id: str, checkpoint_id: str) -> bool:
        async def _delete() -> bool:
            async with self.session_factory() as s:
                async with s.begin():
                    row = await s.get(CheckpointRow, (thread_id, checkpoint_id))
                    if row is None:
                        return False
                    await s.delete(row)
                    await s.flush()
                    remaining = await s.scalar(
                        select(func.count()).select_from(CheckpointRow).where(CheckpointRow.thread_id == thread_id)
                    )
                    if not remaining:
                        await s.execute(delete(ThreadRow).where(ThreadRow.thread_id == thread_id))
                    return True

        return await self._run("delete", _delete)

    async def delete_thread(self, thread_id: str) -> bool:
        async def _delete_thread() -> bool:
            async with self.session_factory() as s:
                async with s.begin():
                    await s.execute(delete(CheckpointRow).where(CheckpointRow.thread_id == thread_id))
                    result = await s.execute(delete(ThreadRow).where(ThreadRow.thread_id == thread_id))
                    return (result.rowcount or 0) > 0

        return await self._run("delete_thread", _delete_thread)

    async def exists(self, thread_id: str) -> bool:
        async def _exists() -> bool:
            async with self.session_factory() as s:
                found = await s.scalar(
                    select(CheckpointRow.checkpoint_id).where(CheckpointRow.thread_id == thread_id).limit(1)
                )
                return found is not None

        return await self._run("exists", _exists)

    async def list_threads(self) -> List[str]:
        async def _list_threads() -> List[str]:
            async with self.session_factory() as s:
                rows = await s.execute(select(ThreadRow.thread_id).order_by(ThreadRow.created_at))
                return [r[0] for r in rows.all()]

        return await self._run("list_threads", _list_threads)

    async def count(self, thread_id: str) -> int:
        async def _count() -> int:
            async with self.session_factory() as s:
                total = await s.scalar(
                    select(func.count()).select_from(CheckpointRow).where(CheckpointRow.thread_id == thread_id)
                )
                return int(total or 0)

        return await self._run("count", _count)
