# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic data models shared across the memory subsystem."""

from tutor_memory.models.memory import (
    FeedbackResult,
    FilterDecision,
    Granularity,
    MemoryCandidate,
    MemoryContext,
    MemoryCounts,
    MemoryKind,
    MemoryRecord,
    PeerContext,
    PeerMemory,
    SaveResult,
    TeachingApproach,
    TeachingStrategySummary,
)

__all__ = [
    "FeedbackResult",
    "FilterDecision",
    "Granularity",
    "MemoryCandidate",
    "MemoryContext",
    "MemoryCounts",
    "MemoryKind",
    "MemoryRecord",
    "PeerContext",
    "PeerMemory",
    "SaveResult",
    "TeachingApproach",
    "TeachingStrategySummary",
]
