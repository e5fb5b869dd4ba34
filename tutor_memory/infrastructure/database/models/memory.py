# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory record table.

User facts and relational memories share one table, told apart by kind.
The embedding is mirrored here from Qdrant so a record can be re-indexed
without calling the embedding provider again.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import CheckConstraint, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from tutor_memory.infrastructure.database.models.base import Base, TimestampMixin


class MemoryRecordModel(Base, TimestampMixin):
    """A persisted memory for one user."""

    __tablename__ = "memory_records"
    __table_args__ = (
        Index("ix_memory_records_user_kind", "user_id", "kind"),
        Index("ix_memory_records_user_importance", "user_id", "current_importance"),
        CheckConstraint("times_cited >= 0", name="ck_memory_records_times_cited"),
        CheckConstraint("times_retrieved_unused >= 0", name="ck_memory_records_unused"),
        CheckConstraint(
            "memory_strength >= 0 AND memory_strength <= 1",
            name="ck_memory_records_strength",
        ),
        CheckConstraint(
            "current_importance >= 0 AND current_importance <= 1",
            name="ck_memory_records_importance",
        ),
        CheckConstraint(
            "confidence >= 0 AND confidence <= 1",
            name="ck_memory_records_confidence",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="general")
    embedding: Mapped[list[float]] = mapped_column(ARRAY(Float), nullable=False)

    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.9)
    source_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default="conversation_summary"
    )
    source_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    memory_strength: Mapped[float] = mapped_column(Float, nullable=False)
    current_importance: Mapped[float] = mapped_column(Float, nullable=False)
    granularity: Mapped[str] = mapped_column(String(20), nullable=False, default="summary")

    times_cited: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    times_retrieved_unused: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    emotional_arousal: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    llm_importance: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    dominant_emotion: Mapped[str | None] = mapped_column(String(50), nullable=True)

    last_cited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<MemoryRecordModel(id={self.id!r}, user_id={self.user_id!r}, "
            f"kind={self.kind!r}, importance={self.current_importance!r})>"
        )
