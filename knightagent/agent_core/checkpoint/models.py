"""SQLAlchemy ORM models for checkpoint persistence.

These ORM models define the SQL schema used by ``SqlCheckpointer``.

Design
------

- ``ka_agent_threads`` holds one row per conversation thread. It is upserted
  by every save and its ``updated_at`` is bumped in the same transaction.
- ``ka_agent_checkpoints`` holds one row per snapshot, keyed by
  ``(thread_id, checkpoint_id)``. ``state_data`` is the serialized
  ``AgentState`` document; ``sequence`` orders snapshots within a thread.

JSON columns use JSONB on PostgreSQL and the generic JSON type elsewhere
(SQLite in tests). Table names are prefixed with ``ka_`` to avoid collisions
in shared databases.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class ThreadRow(Base):
    """Row model for ``ka_agent_threads``."""

    __tablename__ = "ka_agent_threads"

    thread_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    # ``metadata`` is reserved on declarative classes.
    meta: Mapped[Dict[str, Any]] = mapped_column("metadata", JsonDocument, default=dict)


class CheckpointRow(Base):
    """Row model for ``ka_agent_checkpoints``.

    ``sequence`` is unique per thread and assigned by the saver as
    ``max + 1``; ``version`` mirrors ``AgentState.version``.
    """

    __tablename__ = "ka_agent_checkpoints"
    __table_args__ = (
        Index("ix_ka_agent_checkpoints_thread_sequence", "thread_id", "sequence"),
        Index("ix_ka_agent_checkpoints_created_at", "created_at"),
    )

    thread_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("ka_agent_threads.thread_id", ondelete="CASCADE"),
        primary_key=True,
    )
    checkpoint_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    sequence: Mapped[int] = mapped_column(Integer)
    state_data: Mapped[Dict[str, Any]] = mapped_column(JsonDocument)
    version: Mapped[int] = mapped_column(Integer)
    tag: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
