# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for MemoryService.

The filter runs for real against a mocked evaluator. Store, embedder and
peer client are mocked.
"""

import asyncio
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

from tutor_memory.core.config import MemorySettings
from tutor_memory.core.exceptions import UpstreamUnavailableError, ValidationError
from tutor_memory.core.memory import MemoryFilter, MemoryRetriever, MemoryService, MemoryStore
from tutor_memory.core.memory.filter import REASON_TIMEOUT
from tutor_memory.core.memory.service import derive_summary
from tutor_memory.core.sync import PeerMemoryClient
from tutor_memory.models.memory import (
    MemoryCandidate,
    MemoryContext,
    MemoryKind,
    MemoryRecord,
    PeerContext,
    PeerMemory,
)


async def _insert(**fields: Any) -> MemoryRecord:
    return MemoryRecord(**fields)


@pytest.fixture
def store() -> AsyncMock:
    """Mock store that echoes inserted rows back as records."""
    mock = AsyncMock(spec=MemoryStore)
    mock.sample_contents.return_value = []
    mock.insert.side_effect = _insert
    return mock


@pytest.fixture
def embedder(sample_embedding: list[float]) -> AsyncMock:
    """Mock embedding gateway."""
    mock = AsyncMock()
    mock.dimension = len(sample_embedding)
    mock.embed_text.return_value = sample_embedding
    return mock


@pytest.fixture
def evaluator() -> AsyncMock:
    """Mock evaluator that accepts everything."""
    mock = AsyncMock()
    mock.evaluate.return_value = {"should_save": True, "reason": "durable", "adjusted_importance": 0.8}
    return mock


@pytest.fixture
def retriever() -> AsyncMock:
    """Mock retriever."""
    mock = AsyncMock(spec=MemoryRetriever)
    mock.retrieve_context.return_value = MemoryContext()
    return mock


@pytest.fixture
def service(
    store: AsyncMock,
    embedder: AsyncMock,
    evaluator: AsyncMock,
    retriever: AsyncMock,
    memory_settings: MemorySettings,
) -> MemoryService:
    """MemoryService wired to the mocks."""
    return MemoryService(
        store=store,
        retriever=retriever,
        memory_filter=MemoryFilter(evaluator, memory_settings),
        embedder=embedder,
        memory_settings=memory_settings,
    )


@pytest.mark.unit
class TestPersistMemory:
    """Test cases for MemoryService.persist_memory."""

    @pytest.mark.asyncio
    async def test_persist_user_fact(
        self, service: MemoryService, store: AsyncMock, sample_embedding: list[float]
    ) -> None:
        """Test that a new fact is scored, embedded and stored."""
        record = await service.persist_memory(
            "brandon",
            MemoryKind.USER_FACT,
            "I'm a visual learner",
            "personal_fact",
            "session-1",
            llm_importance=0.8,
        )

        assert record.kind == MemoryKind.USER_FACT
        assert record.user_id == "brandon"
        assert record.memory_strength > 0
        assert record.current_importance == record.memory_strength
        assert record.embedding == sample_embedding
        assert record.times_cited == 0
        assert record.source_session_id == "session-1"
        assert record.created_at == record.updated_at

    @pytest.mark.asyncio
    async def test_prosody_sets_arousal_and_emotion(self, service: MemoryService) -> None:
        """Test that voice prosody drives arousal and the dominant emotion."""
        calm = await service.persist_memory("brandon", MemoryKind.USER_FACT, "Calm fact", "general")
        excited = await service.persist_memory(
            "brandon",
            MemoryKind.USER_FACT,
            "Solved it!",
            "breakthrough",
            prosody_scores={"Excitement": 0.9, "Triumph": 0.6},
        )

        assert excited.dominant_emotion == "excitement"
        assert excited.emotional_arousal > calm.emotional_arousal
        assert excited.memory_strength > calm.memory_strength

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id,content", [("", "fact"), ("brandon", "   ")])
    async def test_rejects_empty_input(self, service: MemoryService, user_id: str, content: str) -> None:
        """Test that empty user ids and contents are refused."""
        with pytest.raises(ValidationError):
            await service.persist_memory(user_id, MemoryKind.USER_FACT, content, "general")

    def test_derive_summary(self) -> None:
        """Test that summaries are capped at 100 characters."""
        summary = derive_summary("word " * 50)

        assert len(summary) <= 100
        assert summary.endswith("...")
        assert derive_summary("short  text") == "short text"


@pytest.mark.unit
class TestSaveCandidates:
    """Test cases for MemoryService.save_candidates."""

    @pytest.mark.asyncio
    async def test_saves_accepted_candidates(self, service: MemoryService, store: AsyncMock) -> None:
        """Test the first-conversation scenario."""
        result = await service.save_candidates(
            "brandon",
            [MemoryCandidate(content="I'm a visual learner", category="personal_fact")],
            "session-1",
        )

        assert len(result.saved_ids) == 1
        assert result.skipped == 0
        inserted = store.insert.await_args.kwargs
        assert inserted["kind"] == "user_fact"
        assert inserted["llm_importance"] == 0.8

    @pytest.mark.asyncio
    async def test_skipped_candidates_not_stored(
        self, service: MemoryService, store: AsyncMock, evaluator: AsyncMock
    ) -> None:
        """Test that rejected candidates are counted and not stored."""
        evaluator.evaluate.return_value = {"should_save": False, "reason": "greeting"}

        result = await service.save_candidates("brandon", [MemoryCandidate(content="Thanks!")])

        assert result.skipped == 1
        assert result.reduction_percent == 100
        store.insert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_evaluator_timeout_still_saves(
        self,
        store: AsyncMock,
        embedder: AsyncMock,
        retriever: AsyncMock,
        memory_settings: MemorySettings,
    ) -> None:
        """Test that a hanging evaluator does not lose the candidate."""

        async def hang(prompt: str) -> dict:
            await asyncio.sleep(5)
            return {}

        evaluator = AsyncMock()
        evaluator.evaluate = hang
        memory_filter = MemoryFilter(evaluator, memory_settings)
        service = MemoryService(store, retriever, memory_filter, embedder, memory_settings=memory_settings)

        decision = await service.evaluate_candidate("Likes chess", "hobby", [], "brandon")
        result = await service.save_candidates("brandon", [MemoryCandidate(content="Likes chess")])

        assert decision.reason == REASON_TIMEOUT
        assert len(result.saved_ids) == 1

    @pytest.mark.asyncio
    async def test_merge_into_existing(
        self,
        service: MemoryService,
        store: AsyncMock,
        evaluator: AsyncMock,
        make_record: Callable[..., MemoryRecord],
    ) -> None:
        """Test that a duplicate is folded into the memory it extends."""
        existing = make_record("I'm a visual learner", llm_importance=0.9)
        store.find_by_content.return_value = existing
        store.replace_content.return_value = existing
        evaluator.evaluate.return_value = {
            "should_save": True,
            "reason": "more detail",
            "merge_with": "I'm a visual learner",
            "adjusted_importance": 0.6,
        }

        result = await service.save_candidates(
            "brandon", [MemoryCandidate(content="I'm a visual learner who loves diagrams")]
        )

        assert result.merged_ids == [existing.id]
        assert result.saved_ids == []
        kwargs = store.replace_content.await_args.kwargs
        assert kwargs["content"] == "I'm a visual learner who loves diagrams"
        assert kwargs["llm_importance"] == 0.9
        store.insert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_merge_target_creates_memory(
        self, service: MemoryService, store: AsyncMock, evaluator: AsyncMock
    ) -> None:
        """Test that an unknown merge target falls back to a new record."""
        store.find_by_content.return_value = None
        evaluator.evaluate.return_value = {"should_save": True, "reason": "dup", "merge_with": "gone"}

        result = await service.save_candidates("brandon", [MemoryCandidate(content="Likes chess")])

        assert len(result.saved_ids) == 1
        assert result.merged_ids == []

    @pytest.mark.asyncio
    async def test_embedding_failure_counted(
        self, service: MemoryService, embedder: AsyncMock
    ) -> None:
        """Test that a failing embedder marks the candidate failed."""
        embedder.embed_text.side_effect = UpstreamUnavailableError("down", upstream="embedding")

        result = await service.save_candidates(
            "brandon", [MemoryCandidate(content="Likes chess"), MemoryCandidate(content="Plays piano")]
        )

        assert result.failed == 2
        assert result.saved_ids == []


@pytest.mark.unit
class TestFeedbackAndScores:
    """Test cases for feedback and score refresh."""

    @pytest.mark.asyncio
    async def test_record_feedback(
        self,
        service: MemoryService,
        store: AsyncMock,
        make_record: Callable[..., MemoryRecord],
    ) -> None:
        """Test that unused memories are penalized and all are rescored."""
        cited = make_record("A", times_cited=3)
        unused = make_record("B", times_cited=1, times_retrieved_unused=5)
        records = {cited.id: cited, unused.id: unused}
        store.get_by_id.side_effect = lambda user_id, memory_id: records.get(memory_id)

        result = await service.record_feedback("brandon", [cited.id, unused.id], [cited.id])

        assert (result.positive, result.negative, result.total) == (1, 1, 2)
        store.increment_unused.assert_awaited_once_with("brandon", [unused.id])
        scores = store.update_scores.await_args.args[0]
        assert set(scores) == {cited.id, unused.id}
        assert scores[cited.id][0] > scores[unused.id][0]

    @pytest.mark.asyncio
    async def test_refresh_scores(
        self,
        service: MemoryService,
        store: AsyncMock,
        make_record: Callable[..., MemoryRecord],
    ) -> None:
        """Test that every record of the user is rescored."""
        store.list_for_user.return_value = [make_record("A"), make_record("B")]

        assert await service.refresh_scores("brandon") == 2
        assert len(store.update_scores.await_args.args[0]) == 2

    @pytest.mark.asyncio
    async def test_status_counts_delegate_to_store(self, service: MemoryService, store: AsyncMock) -> None:
        """Test that status counts come from the store."""
        await service.get_status_counts("brandon")

        store.count_by_kind.assert_awaited_once_with("brandon")


@pytest.mark.unit
class TestUnifiedContext:
    """Test cases for MemoryService.retrieve_unified_context."""

    @pytest.mark.asyncio
    async def test_merges_peer_memories(
        self,
        store: AsyncMock,
        embedder: AsyncMock,
        evaluator: AsyncMock,
        retriever: AsyncMock,
        memory_settings: MemorySettings,
    ) -> None:
        """Test that peer memories are added and limits split between sources."""
        peer = AsyncMock(spec=PeerMemoryClient)
        peer.fetch_memories.return_value = PeerContext(
            memories=[PeerMemory(id="p1", content="Asked about chess")], success=True
        )
        service = MemoryService(
            store, retriever, MemoryFilter(evaluator, memory_settings), embedder, peer, memory_settings
        )

        context = await service.retrieve_unified_context("brandon", query="chess", limit=10)

        assert [m.id for m in context.peer_memories] == ["p1"]
        assert retriever.retrieve_context.await_args.kwargs["limit"] == 7
        assert peer.fetch_memories.await_args.kwargs["limit"] == 5

    @pytest.mark.asyncio
    async def test_without_peer(self, service: MemoryService, retriever: AsyncMock) -> None:
        """Test that a missing peer leaves peer memories empty."""
        context = await service.retrieve_unified_context("brandon")

        assert context.peer_memories == []
        assert await service.peer_connected() is False
