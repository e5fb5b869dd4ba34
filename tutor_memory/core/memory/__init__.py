# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Adaptive memory lifecycle.

Components:
- MemoryFilter: decides what is worth remembering (fails open)
- scoring: memory strength and decay
- emotions: voice prosody to arousal
- MemoryStore: PostgreSQL rows plus Qdrant vectors
- MemoryRetriever: ranked context for a turn
- MemoryService: the boundary used by chat, voice and HTTP callers
"""

from tutor_memory.core.memory.filter import MemoryFilter, merge_memories
from tutor_memory.core.memory.retriever import MemoryRetriever, format_context_for_prompt
from tutor_memory.core.memory.store import MemoryStore
from tutor_memory.core.memory.service import MemoryService

__all__ = [
    "MemoryFilter",
    "MemoryRetriever",
    "MemoryService",
    "MemoryStore",
    "format_context_for_prompt",
    "merge_memories",
]
