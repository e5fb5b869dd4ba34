# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory retriever: serves a ranked context for one conversational turn.

Two ranking paths:
- Semantic (a query is given and embeds in time): nearest records of the
  user, ranked by similarity, then current importance, then id.
- By importance (no query, or the embedding gateway failed): the user's
  records by stored importance, decayed at read time, ranked by current
  importance, then updated_at (newest first), then id.

Every record served is cited once more. The increment runs as a detached
task; its failure is only logged and never reaches the caller.

A failing store yields an empty, degraded context. Retrieval never raises.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime

from tutor_memory.core.config.settings import MemorySettings, get_settings
from tutor_memory.core.exceptions import StoreUnavailableError, UpstreamUnavailableError
from tutor_memory.core.intelligence.protocols import Embedder
from tutor_memory.core.memory.scoring import DecayPolicy, apply_decay
from tutor_memory.core.memory.store import MemoryStore
from tutor_memory.models.memory import (
    MemoryContext,
    MemoryKind,
    MemoryRecord,
    TeachingApproach,
    TeachingStrategySummary,
)
from tutor_memory.utils.datetime import time_since, utc_now

logger = logging.getLogger(__name__)

# Relational categories that record an approach that worked
TEACHING_SUCCESS_CATEGORIES = frozenset({"teaching_success", "teaching_approach", "breakthrough"})
MAX_TEACHING_APPROACHES = 3
MIN_APPROACH_EFFECTIVENESS = 0.5
CONTEXT_TURNS_IN_QUERY = 3


def decay_reference(record: MemoryRecord) -> datetime:
    """Point in time decay is measured from."""
    return record.last_cited_at or record.updated_at


def with_current_importance(record: MemoryRecord, policy: DecayPolicy, now: datetime) -> MemoryRecord:
    """Copy of the record with importance decayed to now."""
    importance = apply_decay(
        record.memory_strength,
        time_since(decay_reference(record), now),
        record.times_cited,
        policy,
    )
    return record.model_copy(update={"current_importance": importance})


def rank_by_importance(records: list[MemoryRecord]) -> list[MemoryRecord]:
    """Sort by current importance desc, updated_at desc, id."""
    return sorted(
        records,
        key=lambda r: (-r.current_importance, -r.updated_at.timestamp(), r.id),
    )


def rank_by_similarity(pairs: list[tuple[MemoryRecord, float]]) -> list[MemoryRecord]:
    """Sort by similarity desc, current importance desc, id."""
    ordered = sorted(pairs, key=lambda p: (-p[1], -p[0].current_importance, p[0].id))
    return [record for record, _ in ordered]


def summarize_strategies(relational: list[MemoryRecord]) -> list[TeachingStrategySummary]:
    """Group relational memories by category.

    Each group reports its size, mean importance and its most important
    memory as evidence.
    """
    groups: dict[str, list[MemoryRecord]] = defaultdict(list)
    for record in relational:
        groups[record.category].append(record)

    summaries = []
    for category, records in groups.items():
        best = max(records, key=lambda r: (r.current_importance, r.id))
        summaries.append(
            TeachingStrategySummary(
                topic=category,
                strategy_used=best.summary or best.content,
                success_score=round(sum(r.current_importance for r in records) / len(records), 4),
                evidence=best.content,
                count=len(records),
            )
        )
    summaries.sort(key=lambda s: (-s.success_score, s.topic))
    return summaries


def select_approaches(relational: list[MemoryRecord]) -> list[TeachingApproach]:
    """Top relational memories recorded as successful approaches."""
    successes = [
        r
        for r in relational
        if r.category in TEACHING_SUCCESS_CATEGORIES
        and r.current_importance > MIN_APPROACH_EFFECTIVENESS
    ]
    successes.sort(key=lambda r: (-r.current_importance, r.id))
    return [
        TeachingApproach(approach=r.summary or r.content, effectiveness=r.current_importance)
        for r in successes[:MAX_TEACHING_APPROACHES]
    ]


def build_context(
    user_facts: list[MemoryRecord],
    relational: list[MemoryRecord],
    degraded: bool = False,
) -> MemoryContext:
    """Assemble a MemoryContext from ranked records of both kinds."""
    return MemoryContext(
        user_facts=user_facts,
        relational_memories=relational,
        teaching_strategies=summarize_strategies(relational),
        teaching_approaches=select_approaches(relational),
        retrieved_memory_ids=[r.id for r in user_facts] + [r.id for r in relational],
        degraded=degraded,
    )


def build_query_text(query: str, conversation_context: list[str]) -> str:
    """Query followed by the most recent conversation turns."""
    recent = [turn.strip() for turn in conversation_context[-CONTEXT_TURNS_IN_QUERY:] if turn.strip()]
    return "\n".join([query.strip(), *recent])


class MemoryRetriever:
    """Ranks and serves memories for a user.

    Attributes:
        default_limit: Records per kind when no limit is given.
        pool_factor: Over-fetch factor for importance ranking.
    """

    def __init__(
        self,
        store: MemoryStore,
        embedder: Embedder,
        memory_settings: MemorySettings | None = None,
        embed_timeout: float | None = None,
    ) -> None:
        """Initialize the retriever.

        Args:
            store: Memory store.
            embedder: Embedding gateway for queries.
            memory_settings: Memory policy. Uses get_settings() if None.
            embed_timeout: Bound on query embedding. Falls back to the
                embedding settings.
        """
        settings = get_settings()
        memory = memory_settings or settings.memory
        self._store = store
        self._embedder = embedder
        self._decay = DecayPolicy.from_settings(memory)
        self._embed_timeout = embed_timeout or settings.embedding.timeout
        self._citation_tasks: set[asyncio.Task] = set()
        self.default_limit = memory.default_limit
        self.pool_factor = memory.candidate_pool_factor

    async def retrieve_context(
        self,
        user_id: str,
        query: str | None = None,
        limit: int | None = None,
        conversation_context: list[str] | None = None,
    ) -> MemoryContext:
        """Retrieve a ranked context for the user.

        Args:
            user_id: User whose memories are served.
            query: Topic of the current turn. Enables semantic ranking.
            limit: Maximum records per kind.
            conversation_context: Recent turns, appended to the query.

        Returns:
            MemoryContext. Empty and degraded if the store fails.
        """
        limit = max(1, limit or self.default_limit)

        try:
            context = await self._retrieve(user_id, query, limit, conversation_context or [])
        except StoreUnavailableError as e:
            logger.error("Memory retrieval failed for user=%s: %s", user_id, e)
            return MemoryContext.empty(degraded=True)
        except Exception as e:
            logger.exception("Unexpected memory retrieval error for user=%s: %s", user_id, e)
            return MemoryContext.empty(degraded=True)

        self._schedule_citations(context.retrieved_memory_ids)

        logger.info(
            "Retrieved memory context for user=%s: facts=%d, relational=%d, degraded=%s",
            user_id,
            len(context.user_facts),
            len(context.relational_memories),
            context.degraded,
        )
        return context

    async def _retrieve(
        self,
        user_id: str,
        query: str | None,
        limit: int,
        conversation_context: list[str],
    ) -> MemoryContext:
        degraded = False

        if query and query.strip():
            vector = await self._embed_query(user_id, build_query_text(query, conversation_context))
            if vector is not None:
                facts, relational = await asyncio.gather(
                    self._semantic(user_id, vector, limit, MemoryKind.USER_FACT),
                    self._semantic(user_id, vector, limit, MemoryKind.RELATIONAL_MEMORY),
                )
                return build_context(facts, relational)
            degraded = True

        facts, relational = await asyncio.gather(
            self._by_importance(user_id, limit, MemoryKind.USER_FACT),
            self._by_importance(user_id, limit, MemoryKind.RELATIONAL_MEMORY),
        )
        return build_context(facts, relational, degraded=degraded)

    async def _embed_query(self, user_id: str, text: str) -> list[float] | None:
        """Embed the query, or None when the gateway fails."""
        try:
            return await asyncio.wait_for(self._embedder.embed_text(text), timeout=self._embed_timeout)
        except (asyncio.TimeoutError, UpstreamUnavailableError, ValueError) as e:
            logger.warning(
                "Query embedding failed for user=%s, ranking by importance: %s",
                user_id,
                str(e) or type(e).__name__,
            )
            return None

    async def _semantic(
        self,
        user_id: str,
        vector: list[float],
        limit: int,
        kind: MemoryKind,
    ) -> list[MemoryRecord]:
        now = utc_now()
        pairs = await self._store.search_similar(user_id, vector, limit, kind=kind)
        decayed = [(with_current_importance(r, self._decay, now), score) for r, score in pairs]
        return rank_by_similarity(decayed)[:limit]

    async def _by_importance(self, user_id: str, limit: int, kind: MemoryKind) -> list[MemoryRecord]:
        now = utc_now()
        pool = await self._store.list_top(user_id, limit * self.pool_factor, kind=kind)
        decayed = [with_current_importance(r, self._decay, now) for r in pool]
        return rank_by_importance(decayed)[:limit]

    def _schedule_citations(self, memory_ids: list[str]) -> None:
        """Increment citation counters without blocking the caller."""
        if not memory_ids:
            return
        task = asyncio.create_task(self._store.increment_times_cited(list(memory_ids)))
        self._citation_tasks.add(task)
        task.add_done_callback(self._on_citation_done)

    def _on_citation_done(self, task: asyncio.Task) -> None:
        self._citation_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Citation increment failed: %s", error)

    @property
    def pending_citations(self) -> int:
        """Number of citation increments still running."""
        return len(self._citation_tasks)

    async def drain(self) -> None:
        """Wait for outstanding citation increments. Used at shutdown and in tests."""
        pending = self.pending_citations
        if pending:
            logger.info("Waiting for %d pending citation updates", pending)
            await asyncio.gather(*list(self._citation_tasks), return_exceptions=True)


def format_context_for_prompt(context: MemoryContext) -> str:
    """Render a context as the Markdown block injected into the tutor prompt.

    Returns an empty string when there is nothing to say.
    """
    if (
        not context.user_facts
        and not context.relational_memories
        and not context.teaching_strategies
        and not context.peer_memories
    ):
        return ""

    parts: list[str] = []

    if context.user_facts:
        parts.append("## What I Know About This Student:")
        for fact in context.user_facts:
            emotion = fact.dominant_emotion
            tag = f" [{emotion}]" if emotion and emotion != "neutral" else ""
            parts.append(f"- {fact.summary or fact.content}{tag}")

    if context.teaching_strategies:
        parts.append("\n## Teaching Strategies That Work For This Student:")
        for strategy in context.teaching_strategies:
            success = round(strategy.success_score * 100)
            parts.append(f"- **{strategy.topic}**: Use {strategy.strategy_used} ({success}% success rate)")
            if strategy.evidence:
                parts.append(f'  _Evidence: "{strategy.evidence[:80]}"_')

    if context.teaching_approaches:
        parts.append("\n## Other Teaching Approaches That Work:")
        for approach in context.teaching_approaches:
            parts.append(f"- {approach.approach}")

    if context.relational_memories:
        parts.append("\n## My Notes About Our Relationship:")
        for memory in context.relational_memories:
            parts.append(f"- {memory.summary or memory.content}")

    if context.peer_memories:
        parts.append("\n## From The Partner Application:")
        for memory in context.peer_memories:
            parts.append(f"- {memory.summary or memory.content}")

    return "\n".join(parts).lstrip("\n")
