# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Data models for the adaptive memory subsystem.

This module defines Pydantic models and enums for:
- Memory kinds and granularity
- Candidates proposed for persistence and the filter's decision on them
- Persisted memory records
- The ranked context bundle served to the tutor and to peer applications

Two kinds of memory share one record shape:
- USER_FACT: durable facts about the student ("I'm a visual learner")
- RELATIONAL_MEMORY: notes about the teaching relationship itself
  ("worked examples landed well for fractions")
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class MemoryKind(str, Enum):
    """Kind of a memory record."""

    USER_FACT = "user_fact"
    RELATIONAL_MEMORY = "relational_memory"


class Granularity(str, Enum):
    """Span of conversation a memory was distilled from."""

    UTTERANCE = "utterance"
    TURN = "turn"
    SUMMARY = "summary"


class MemoryCandidate(BaseModel):
    """A proposed memory that has not been filtered yet.

    Candidates are extracted upstream from a finished conversation and only
    live for the duration of a save call.

    Attributes:
        content: Memory text.
        category: Free-form tag (personal_fact, learning_style, ...).
        proposed_importance: Importance suggested by the extractor.
        kind: Memory kind, defaults to a user fact.
        summary: Optional short form. Derived from content when absent.
        text_arousal: Arousal estimated from the transcript text.
        prosody_scores: Voice prosody emotion scores (emotion name -> 0..1).
        granularity: Span the candidate was extracted from.
        confidence: Extractor confidence in the fact.
        source_type: Where the candidate came from.
    """

    content: str = Field(min_length=1)
    category: str = "general"
    proposed_importance: float = Field(default=0.5, ge=0.0, le=1.0)
    kind: MemoryKind = MemoryKind.USER_FACT
    summary: str | None = None
    text_arousal: float | None = Field(default=None, ge=0.0, le=1.0)
    prosody_scores: dict[str, float] = Field(default_factory=dict)
    granularity: Granularity = Granularity.SUMMARY
    confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    source_type: str = "conversation_summary"


class FilterDecision(BaseModel):
    """Outcome of evaluating a candidate against existing memories.

    Attributes:
        should_save: Whether the candidate should be persisted.
        reason: Short human-readable rationale.
        merge_with: Content of an existing memory to merge into, if any.
        adjusted_importance: Evaluator-adjusted importance, if any.
    """

    should_save: bool
    reason: str
    merge_with: str | None = None
    adjusted_importance: float | None = Field(default=None, ge=0.0, le=1.0)


class MemoryRecord(BaseModel):
    """A persisted memory.

    Attributes:
        id: Record identifier (UUID string).
        user_id: Owning user. Never changes after creation.
        kind: user_fact or relational_memory.
        content: Memory text.
        summary: Short form, at most 100 characters.
        category: Free-form tag.
        embedding: Vector over content.
        confidence: Confidence in the memory.
        source_type: Origin of the memory.
        source_session_id: Session the memory was distilled from.
        memory_strength: Strength computed at write time.
        current_importance: Strength after decay.
        granularity: Span the memory was distilled from.
        times_cited: Times the memory was served in a context.
        times_retrieved_unused: Times the memory was served but not used.
        emotional_arousal: Combined arousal at write time.
        llm_importance: Importance assigned by the evaluator.
        dominant_emotion: Strongest prosody emotion, if known.
        last_cited_at: When the memory was last served.
        created_at: Creation time. Survives merges.
        updated_at: Last modification time.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    kind: MemoryKind
    content: str
    summary: str
    category: str
    embedding: list[float] = Field(default_factory=list, repr=False)
    confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    source_type: str = "conversation_summary"
    source_session_id: str | None = None
    memory_strength: float = Field(ge=0.0, le=1.0)
    current_importance: float = Field(ge=0.0, le=1.0)
    granularity: Granularity = Granularity.SUMMARY
    times_cited: int = Field(default=0, ge=0)
    times_retrieved_unused: int = Field(default=0, ge=0)
    emotional_arousal: float = Field(default=0.5, ge=0.0, le=1.0)
    llm_importance: float = Field(default=0.5, ge=0.0, le=1.0)
    dominant_emotion: str | None = None
    last_cited_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class TeachingStrategySummary(BaseModel):
    """Aggregate of relational memories sharing a category."""

    topic: str
    strategy_used: str
    success_score: float
    evidence: str
    count: int = 1


class TeachingApproach(BaseModel):
    """A teaching approach that proved effective for the student."""

    approach: str
    effectiveness: float


class PeerMemory(BaseModel):
    """A memory held by the cooperating application.

    Attributes:
        id: Identifier in the peer application.
        content: Memory text.
        summary: Short form, if the peer provided one.
        category: Category in the peer application.
        importance: Peer-side importance.
    """

    id: str
    content: str
    summary: str | None = None
    category: str | None = None
    importance: float = 0.5


class PeerContext(BaseModel):
    """Result of a call to the cooperating application."""

    memories: list[PeerMemory] = Field(default_factory=list)
    success: bool = False


class MemoryContext(BaseModel):
    """Ranked memories served to a consumer for one turn.

    Attributes:
        user_facts: Facts about the student, ranked.
        relational_memories: Notes about the teaching relationship, ranked.
        teaching_strategies: Relational memories grouped by category.
        teaching_approaches: Approaches recorded as effective.
        peer_memories: Memories from the cooperating application, if merged.
        retrieved_memory_ids: Ids of every returned local record.
        degraded: True when a fallback path produced this context.
    """

    user_facts: list[MemoryRecord] = Field(default_factory=list)
    relational_memories: list[MemoryRecord] = Field(default_factory=list)
    teaching_strategies: list[TeachingStrategySummary] = Field(default_factory=list)
    teaching_approaches: list[TeachingApproach] = Field(default_factory=list)
    peer_memories: list[PeerMemory] = Field(default_factory=list)
    retrieved_memory_ids: list[str] = Field(default_factory=list)
    degraded: bool = False

    @classmethod
    def empty(cls, degraded: bool = False) -> "MemoryContext":
        """Build a context with no memories."""
        return cls(degraded=degraded)

    @property
    def is_empty(self) -> bool:
        """True when neither user facts nor relational memories were found."""
        return not self.user_facts and not self.relational_memories


class SaveResult(BaseModel):
    """Outcome of saving a batch of candidates.

    Attributes:
        total: Number of candidates evaluated.
        saved_ids: Ids of newly created records.
        merged_ids: Ids of existing records whose content was merged.
        skipped: Number of candidates the filter rejected.
        failed: Number of accepted candidates that could not be stored.
    """

    total: int = 0
    saved_ids: list[str] = Field(default_factory=list)
    merged_ids: list[str] = Field(default_factory=list)
    skipped: int = 0
    failed: int = 0

    @property
    def reduction_percent(self) -> int:
        """Share of candidates that did not produce a new record."""
        if self.total == 0:
            return 0
        return round((self.total - len(self.saved_ids)) / self.total * 100)


class MemoryCounts(BaseModel):
    """Per-kind record counts for a user."""

    user_facts: int = 0
    relational_memories: int = 0

    @property
    def total(self) -> int:
        """Sum of both kinds."""
        return self.user_facts + self.relational_memories


class FeedbackResult(BaseModel):
    """Outcome of recording citation feedback for one response.

    Attributes:
        positive: Retrieved memories the response actually used.
        negative: Retrieved memories the response ignored.
        total: Number of retrieved memories reported.
    """

    positive: int = 0
    negative: int = 0
    total: int = 0
