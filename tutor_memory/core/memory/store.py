# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory store: PostgreSQL rows plus Qdrant vectors.

The row in memory_records is the source of truth. Qdrant holds one point
per record (same id) for similarity search, filtered by user_id. Inserts
and content replacements write the vector inside the row's transaction,
so a failed vector write rolls the row back.

Counters are updated with a single UPDATE ... SET col = col + 1 statement
so concurrent increments never lose updates.

Failures surface as StoreUnavailableError subclasses (DatabaseError,
QdrantError).
"""

import logging
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tutor_memory.core.exceptions import ValidationError
from tutor_memory.infrastructure.database.connection import get_session
from tutor_memory.infrastructure.database.models import MemoryRecordModel
from tutor_memory.infrastructure.vectors import QdrantVectorClient
from tutor_memory.models.memory import MemoryCounts, MemoryKind, MemoryRecord
from tutor_memory.utils.datetime import utc_now

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def to_record(row: MemoryRecordModel) -> MemoryRecord:
    """Convert an ORM row into a MemoryRecord."""
    return MemoryRecord.model_validate(row)


class MemoryStore:
    """Persistence for memory records.

    Attributes:
        collection: Qdrant collection holding memory vectors.
        dimension: Required embedding length.
    """

    def __init__(
        self,
        vectors: QdrantVectorClient,
        collection: str,
        dimension: int,
        session_factory: SessionFactory = get_session,
    ) -> None:
        """Initialize the store.

        Args:
            vectors: Connected Qdrant client.
            collection: Qdrant collection name.
            dimension: Embedding dimension every record must have.
            session_factory: Returns an async session context manager that
                commits on exit. Defaults to get_session.
        """
        self._vectors = vectors
        self._session_factory = session_factory
        self.collection = collection
        self.dimension = dimension

    async def ensure_collection(self) -> None:
        """Create the vector collection if it does not exist."""
        await self._vectors.ensure_collection(self.collection, self.dimension)

    def _check_embedding(self, embedding: list[float]) -> None:
        if len(embedding) != self.dimension:
            raise ValidationError(
                f"Embedding has {len(embedding)} dimensions, expected {self.dimension}",
                field="embedding",
            )

    async def _upsert_vector(self, row: MemoryRecordModel) -> None:
        await self._vectors.upsert(
            self.collection,
            [
                {
                    "id": row.id,
                    "vector": list(row.embedding),
                    "payload": {
                        "memory_id": row.id,
                        "user_id": row.user_id,
                        "kind": row.kind,
                    },
                }
            ],
        )

    async def insert(self, **fields: Any) -> MemoryRecord:
        """Insert a new record and index its vector.

        Args:
            **fields: MemoryRecordModel column values. user_id, kind,
                content, summary, embedding, memory_strength and
                current_importance are required.

        Returns:
            The stored record.

        Raises:
            ValidationError: If the embedding has the wrong dimension.
            StoreUnavailableError: If the database or Qdrant fails.
        """
        self._check_embedding(fields.get("embedding") or [])

        async with self._session_factory() as session:
            row = MemoryRecordModel(**fields)
            session.add(row)
            await session.flush()
            await self._upsert_vector(row)
            record = to_record(row)

        logger.info(
            "Stored memory: id=%s, user=%s, kind=%s, strength=%.3f",
            record.id,
            record.user_id,
            record.kind.value,
            record.memory_strength,
        )
        return record

    async def get_by_id(self, user_id: str, memory_id: str) -> MemoryRecord | None:
        """Fetch one record of the user."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(MemoryRecordModel).where(
                    MemoryRecordModel.id == memory_id,
                    MemoryRecordModel.user_id == user_id,
                )
            )
            row = result.scalar_one_or_none()
            return to_record(row) if row is not None else None

    async def search_similar(
        self,
        user_id: str,
        query_vector: list[float],
        limit: int,
        kind: MemoryKind | None = None,
    ) -> list[tuple[MemoryRecord, float]]:
        """Find the user's records nearest to a query vector.

        Args:
            user_id: Owning user.
            query_vector: Embedded query.
            limit: Maximum number of records.
            kind: Restrict to one kind.

        Returns:
            (record, similarity) pairs, most similar first. Points whose row
            no longer exists are dropped.
        """
        conditions = {"user_id": user_id}
        if kind is not None:
            conditions["kind"] = kind.value

        hits = await self._vectors.search(
            self.collection,
            query_vector=query_vector,
            limit=limit,
            filter_conditions=conditions,
        )
        if not hits:
            return []

        scores = {hit.id: hit.score for hit in hits}
        async with self._session_factory() as session:
            result = await session.execute(
                select(MemoryRecordModel).where(
                    MemoryRecordModel.user_id == user_id,
                    MemoryRecordModel.id.in_(list(scores)),
                )
            )
            rows = result.scalars().all()

        records = [(to_record(row), scores[row.id]) for row in rows]
        records.sort(key=lambda pair: (-pair[1], pair[0].id))
        return records

    async def list_top(
        self,
        user_id: str,
        limit: int,
        kind: MemoryKind | None = None,
    ) -> list[MemoryRecord]:
        """List the user's records by stored importance.

        Ordered by current_importance desc, updated_at desc, id.
        """
        stmt = select(MemoryRecordModel).where(MemoryRecordModel.user_id == user_id)
        if kind is not None:
            stmt = stmt.where(MemoryRecordModel.kind == kind.value)
        stmt = stmt.order_by(
            MemoryRecordModel.current_importance.desc(),
            MemoryRecordModel.updated_at.desc(),
            MemoryRecordModel.id,
        ).limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [to_record(row) for row in result.scalars().all()]

    async def list_for_user(self, user_id: str) -> list[MemoryRecord]:
        """All records of the user, oldest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(MemoryRecordModel)
                .where(MemoryRecordModel.user_id == user_id)
                .order_by(MemoryRecordModel.created_at, MemoryRecordModel.id)
            )
            return [to_record(row) for row in result.scalars().all()]

    async def sample_contents(self, user_id: str, limit: int) -> list[str]:
        """Contents of the user's most important records."""
        if limit <= 0:
            return []
        records = await self.list_top(user_id, limit)
        return [record.content for record in records]

    async def find_by_content(self, user_id: str, content: str) -> MemoryRecord | None:
        """Find a record of the user whose content matches, ignoring case."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(MemoryRecordModel)
                .where(
                    MemoryRecordModel.user_id == user_id,
                    func.lower(MemoryRecordModel.content) == content.strip().lower(),
                )
                .order_by(MemoryRecordModel.created_at, MemoryRecordModel.id)
                .limit(1)
            )
            row = result.scalars().first()
            return to_record(row) if row is not None else None

    async def replace_content(
        self,
        user_id: str,
        memory_id: str,
        content: str,
        summary: str,
        embedding: list[float],
        **scores: float,
    ) -> MemoryRecord | None:
        """Replace a record's content after a merge.

        created_at is preserved. The vector is re-indexed.

        Args:
            user_id: Owning user.
            memory_id: Record to update.
            content: Merged content.
            summary: Summary of the merged content.
            embedding: Vector over the merged content.
            **scores: Optional score columns to overwrite
                (memory_strength, current_importance, llm_importance, ...).

        Returns:
            The updated record, or None if it does not exist.
        """
        self._check_embedding(embedding)

        async with self._session_factory() as session:
            result = await session.execute(
                select(MemoryRecordModel).where(
                    MemoryRecordModel.id == memory_id,
                    MemoryRecordModel.user_id == user_id,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None

            row.content = content
            row.summary = summary
            row.embedding = embedding
            for column, value in scores.items():
                setattr(row, column, value)
            row.updated_at = utc_now()
            await session.flush()
            await self._upsert_vector(row)
            record = to_record(row)

        logger.info("Merged memory content: id=%s, user=%s", memory_id, user_id)
        return record

    async def increment_times_cited(self, memory_ids: list[str]) -> int:
        """Atomically add one citation to each record.

        Returns:
            Number of rows updated.
        """
        if not memory_ids:
            return 0

        async with self._session_factory() as session:
            result = await session.execute(
                update(MemoryRecordModel)
                .where(MemoryRecordModel.id.in_(memory_ids))
                .values(
                    times_cited=MemoryRecordModel.times_cited + 1,
                    last_cited_at=utc_now(),
                    updated_at=MemoryRecordModel.updated_at,
                )
            )
            return result.rowcount or 0

    async def increment_unused(self, user_id: str, memory_ids: list[str]) -> int:
        """Atomically add one unused retrieval to each of the user's records.

        Returns:
            Number of rows updated.
        """
        if not memory_ids:
            return 0

        async with self._session_factory() as session:
            result = await session.execute(
                update(MemoryRecordModel)
                .where(
                    MemoryRecordModel.user_id == user_id,
                    MemoryRecordModel.id.in_(memory_ids),
                )
                .values(
                    times_retrieved_unused=MemoryRecordModel.times_retrieved_unused + 1,
                    updated_at=MemoryRecordModel.updated_at,
                )
            )
            return result.rowcount or 0

    async def update_scores(self, scores: dict[str, tuple[float, float]]) -> None:
        """Persist recomputed scores.

        Args:
            scores: memory id -> (memory_strength, current_importance).
        """
        if not scores:
            return

        async with self._session_factory() as session:
            for memory_id, (strength, importance) in scores.items():
                await session.execute(
                    update(MemoryRecordModel)
                    .where(MemoryRecordModel.id == memory_id)
                    .values(
                        memory_strength=strength,
                        current_importance=importance,
                        updated_at=MemoryRecordModel.updated_at,
                    )
                )

    async def count_by_kind(self, user_id: str) -> MemoryCounts:
        """Count the user's records per kind."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(MemoryRecordModel.kind, func.count(MemoryRecordModel.id))
                .where(MemoryRecordModel.user_id == user_id)
                .group_by(MemoryRecordModel.kind)
            )
            counts = dict(result.all())

        return MemoryCounts(
            user_facts=counts.get(MemoryKind.USER_FACT.value, 0),
            relational_memories=counts.get(MemoryKind.RELATIONAL_MEMORY.value, 0),
        )
