# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory service: the internal boundary of the memory subsystem.

Chat turns, voice turns and the HTTP layer talk to this class only. It
coordinates the filter, scorer, store, retriever and peer client:

    candidates -> filter -> merge or persist (scored, embedded)
    turn       -> retriever -> ranked context (+ peer memories)
    response   -> feedback -> counters and strengths updated

Example:
    >>> service = MemoryService(store, retriever, memory_filter, embedder)
    >>> result = await service.save_candidates("brandon", candidates, "session-42")
    >>> context = await service.retrieve_context("brandon", query="fractions")
"""

import asyncio
import logging
import math
from datetime import datetime
from uuid import uuid4

from tutor_memory.core.config.settings import MemorySettings, get_settings
from tutor_memory.core.exceptions import UpstreamUnavailableError, ValidationError
from tutor_memory.core.intelligence.protocols import Embedder
from tutor_memory.core.memory.emotions import map_to_memory_emotion, process_prosody_emotions
from tutor_memory.core.memory.filter import MemoryFilter, merge_memories
from tutor_memory.core.memory.retriever import MemoryRetriever, decay_reference
from tutor_memory.core.memory.scoring import (
    DecayPolicy,
    StrengthWeights,
    apply_decay,
    calculate_memory_strength,
    clamp_unit,
    combine_arousal_scores,
)
from tutor_memory.core.memory.store import MemoryStore
from tutor_memory.core.sync.peer import PeerMemoryClient
from tutor_memory.models.memory import (
    FeedbackResult,
    FilterDecision,
    Granularity,
    MemoryCandidate,
    MemoryContext,
    MemoryCounts,
    MemoryKind,
    MemoryRecord,
    SaveResult,
)
from tutor_memory.utils.datetime import time_since, utc_now

logger = logging.getLogger(__name__)

SUMMARY_MAX_LENGTH = 100

# Share of the requested limit given to each source in a unified context
LOCAL_SHARE = 0.7
PEER_SHARE = 0.5


def derive_summary(content: str, max_length: int = SUMMARY_MAX_LENGTH) -> str:
    """Shorten content to at most max_length characters."""
    text = " ".join(content.split())
    if len(text) <= max_length:
        return text
    return text[: max_length - 3].rstrip() + "..."


class MemoryService:
    """Facade over the memory lifecycle for a single user at a time."""

    def __init__(
        self,
        store: MemoryStore,
        retriever: MemoryRetriever,
        memory_filter: MemoryFilter,
        embedder: Embedder,
        peer: PeerMemoryClient | None = None,
        memory_settings: MemorySettings | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            store: Memory store.
            retriever: Ranked context retrieval.
            memory_filter: Evaluator-backed candidate filter.
            embedder: Embedding gateway for stored content.
            peer: Client for the cooperating application, if any.
            memory_settings: Memory policy. Uses get_settings() if None.
        """
        settings = memory_settings or get_settings().memory
        self._store = store
        self._retriever = retriever
        self._filter = memory_filter
        self._embedder = embedder
        self._peer = peer
        self._weights = StrengthWeights.from_settings(settings)
        self._decay = DecayPolicy.from_settings(settings)
        self._sample_size = settings.dedup_sample_size

    async def evaluate_candidate(
        self,
        content: str,
        category: str,
        existing_sample: list[str],
        user_id: str,
    ) -> FilterDecision:
        """Decide whether a candidate should be remembered. Fails open."""
        return await self._filter.evaluate_candidate(content, category, existing_sample, user_id)

    async def persist_memory(
        self,
        user_id: str,
        kind: MemoryKind,
        content: str,
        category: str,
        source_session_id: str | None = None,
        *,
        summary: str | None = None,
        llm_importance: float = 0.5,
        text_arousal: float | None = None,
        prosody_scores: dict[str, float] | None = None,
        confidence: float = 0.9,
        source_type: str = "conversation_summary",
        granularity: Granularity = Granularity.SUMMARY,
    ) -> MemoryRecord:
        """Score, embed and store a new memory.

        Args:
            user_id: Owning user.
            kind: user_fact or relational_memory.
            content: Memory text.
            category: Free-form tag.
            source_session_id: Session the memory came from.
            summary: Short form. Derived from content when absent.
            llm_importance: Importance assigned by the evaluator.
            text_arousal: Arousal estimated from the transcript.
            prosody_scores: Voice prosody scores for the moment.
            confidence: Confidence in the memory.
            source_type: Origin of the memory.
            granularity: Span the memory was distilled from.

        Returns:
            The stored record.

        Raises:
            ValidationError: If user_id or content is empty.
            UpstreamUnavailableError: If embedding or storage fails.
        """
        if not user_id or not user_id.strip():
            raise ValidationError("user_id is required", field="user_id")
        if not content or not content.strip():
            raise ValidationError("content is required", field="content")

        biometric: float | None = None
        dominant_emotion: str | None = None
        if prosody_scores:
            emotions = process_prosody_emotions(prosody_scores)
            biometric = emotions.arousal
            dominant_emotion = map_to_memory_emotion(emotions.dominant_emotion)

        importance = clamp_unit(llm_importance)
        strength = calculate_memory_strength(
            times_cited=0,
            biometric_arousal=biometric,
            text_arousal=text_arousal,
            llm_importance=importance,
            times_retrieved_unused=0,
            weights=self._weights,
        )
        arousal = combine_arousal_scores(biometric, text_arousal, self._weights.biometric_arousal_weight)

        embedding = await self._embedder.embed_text(content)
        now = utc_now()

        return await self._store.insert(
            id=str(uuid4()),
            user_id=user_id,
            kind=kind.value,
            content=content.strip(),
            summary=derive_summary(summary or content),
            category=category or "general",
            embedding=embedding,
            confidence=clamp_unit(confidence),
            source_type=source_type,
            source_session_id=source_session_id,
            memory_strength=strength,
            current_importance=strength,
            granularity=granularity.value,
            times_cited=0,
            times_retrieved_unused=0,
            emotional_arousal=arousal,
            llm_importance=importance,
            dominant_emotion=dominant_emotion,
            last_cited_at=None,
            created_at=now,
            updated_at=now,
        )

    async def retrieve_context(
        self,
        user_id: str,
        query: str | None = None,
        limit: int = 10,
        conversation_context: list[str] | None = None,
    ) -> MemoryContext:
        """Serve a ranked context of at most `limit` records per kind. Never raises."""
        return await self._retriever.retrieve_context(
            user_id,
            query=query,
            limit=limit,
            conversation_context=conversation_context,
        )

    async def save_candidates(
        self,
        user_id: str,
        candidates: list[MemoryCandidate],
        source_session_id: str | None = None,
    ) -> SaveResult:
        """Filter candidates and store, merge or skip each one.

        Args:
            user_id: Owning user.
            candidates: Candidates extracted from one conversation.
            source_session_id: Session the candidates came from.

        Returns:
            SaveResult with created and merged ids.

        Raises:
            StoreUnavailableError: If the existing-memory sample cannot be read.
        """
        result = SaveResult(total=len(candidates))
        if not candidates:
            return result

        sample = await self._store.sample_contents(user_id, self._sample_size)
        decisions = await self._filter.batch_filter(candidates, sample, user_id)

        for candidate, decision in decisions:
            if not decision.should_save:
                result.skipped += 1
                continue

            importance = (
                decision.adjusted_importance
                if decision.adjusted_importance is not None
                else candidate.proposed_importance
            )

            try:
                if decision.merge_with:
                    merged = await self._merge(user_id, decision.merge_with, candidate, importance)
                    if merged is not None:
                        result.merged_ids.append(merged.id)
                        continue

                record = await self.persist_memory(
                    user_id,
                    candidate.kind,
                    candidate.content,
                    candidate.category,
                    source_session_id,
                    summary=candidate.summary,
                    llm_importance=importance,
                    text_arousal=candidate.text_arousal,
                    prosody_scores=candidate.prosody_scores,
                    confidence=candidate.confidence,
                    source_type=candidate.source_type,
                    granularity=candidate.granularity,
                )
                result.saved_ids.append(record.id)
            except (UpstreamUnavailableError, ValidationError) as e:
                logger.error(
                    "Failed to store memory for user=%s: %r - %s",
                    user_id,
                    candidate.content[:50],
                    e,
                )
                result.failed += 1

        logger.info(
            "Saved memories for user=%s: %d new, %d merged, %d skipped, %d failed (%d%% reduction)",
            user_id,
            len(result.saved_ids),
            len(result.merged_ids),
            result.skipped,
            result.failed,
            result.reduction_percent,
        )
        return result

    async def _merge(
        self,
        user_id: str,
        merge_with: str,
        candidate: MemoryCandidate,
        importance: float,
    ) -> MemoryRecord | None:
        """Fold a candidate into the existing memory it duplicates.

        Returns:
            The merged record, or None when the target memory is not found.
        """
        existing = await self._store.find_by_content(user_id, merge_with)
        if existing is None:
            logger.info("Merge target not found for user=%s, storing as new memory", user_id)
            return None

        merged_content = merge_memories(existing.content, candidate.content)
        if merged_content == existing.content:
            return existing

        llm_importance = max(existing.llm_importance, clamp_unit(importance))
        strength = calculate_memory_strength(
            times_cited=existing.times_cited,
            biometric_arousal=existing.emotional_arousal,
            text_arousal=None,
            llm_importance=llm_importance,
            times_retrieved_unused=existing.times_retrieved_unused,
            weights=self._weights,
        )
        embedding = await self._embedder.embed_text(merged_content)

        return await self._store.replace_content(
            user_id,
            existing.id,
            content=merged_content,
            summary=derive_summary(merged_content),
            embedding=embedding,
            llm_importance=llm_importance,
            memory_strength=strength,
            current_importance=strength,
        )

    def _rescore(self, record: MemoryRecord, now: datetime) -> tuple[float, float]:
        """Recompute (memory_strength, current_importance) from stored inputs."""
        strength = calculate_memory_strength(
            times_cited=record.times_cited,
            biometric_arousal=record.emotional_arousal,
            text_arousal=None,
            llm_importance=record.llm_importance,
            times_retrieved_unused=record.times_retrieved_unused,
            weights=self._weights,
        )
        importance = apply_decay(
            strength,
            time_since(decay_reference(record), now),
            record.times_cited,
            self._decay,
        )
        return strength, importance

    async def record_feedback(
        self,
        user_id: str,
        retrieved_ids: list[str],
        cited_ids: list[str],
    ) -> FeedbackResult:
        """Record which served memories a response actually used.

        Served-but-unused memories get their unused counter incremented and
        their strength recomputed. Citations were already counted at
        retrieval time.

        Args:
            user_id: Owning user.
            retrieved_ids: Ids served in the context.
            cited_ids: Ids the response used.

        Returns:
            FeedbackResult with positive and negative counts.
        """
        retrieved = list(dict.fromkeys(retrieved_ids))
        cited = set(cited_ids)
        unused = [memory_id for memory_id in retrieved if memory_id not in cited]

        await self._store.increment_unused(user_id, unused)

        now = utc_now()
        scores: dict[str, tuple[float, float]] = {}
        for memory_id in retrieved:
            record = await self._store.get_by_id(user_id, memory_id)
            if record is not None:
                scores[record.id] = self._rescore(record, now)
        await self._store.update_scores(scores)

        feedback = FeedbackResult(
            positive=len(retrieved) - len(unused),
            negative=len(unused),
            total=len(retrieved),
        )
        logger.info(
            "Memory feedback for user=%s: %d positive, %d negative",
            user_id,
            feedback.positive,
            feedback.negative,
        )
        return feedback

    async def refresh_scores(self, user_id: str) -> int:
        """Recompute and persist strength and decayed importance of every record.

        Returns:
            Number of records updated.
        """
        records = await self._store.list_for_user(user_id)
        now = utc_now()
        scores = {record.id: self._rescore(record, now) for record in records}
        await self._store.update_scores(scores)

        logger.info("Refreshed scores for user=%s: %d records", user_id, len(scores))
        return len(scores)

    async def get_status_counts(self, user_id: str) -> MemoryCounts:
        """Per-kind record counts for the user.

        Raises:
            StoreUnavailableError: If the store cannot be read.
        """
        return await self._store.count_by_kind(user_id)

    async def peer_connected(self) -> bool:
        """True when the cooperating application is reachable."""
        if self._peer is None:
            return False
        return await self._peer.check_connection()

    async def retrieve_unified_context(
        self,
        user_id: str,
        query: str | None = None,
        limit: int = 10,
        conversation_context: list[str] | None = None,
    ) -> MemoryContext:
        """Local context merged with the cooperating application's memories.

        Both sources are queried concurrently. A failing peer only leaves
        peer_memories empty.
        """
        limit = max(1, limit)
        local_limit = math.ceil(limit * LOCAL_SHARE)

        if self._peer is None:
            return await self.retrieve_context(user_id, query, local_limit, conversation_context)

        local, peer = await asyncio.gather(
            self.retrieve_context(user_id, query, local_limit, conversation_context),
            self._peer.fetch_memories(user_id, query=query, limit=math.ceil(limit * PEER_SHARE)),
        )
        return local.model_copy(update={"peer_memories": peer.memories})

    async def drain_background_tasks(self) -> None:
        """Wait for detached citation updates to finish."""
        await self._retriever.drain()
