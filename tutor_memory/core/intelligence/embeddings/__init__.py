# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Embedding gateway using LiteLLM.

Example:
    >>> from tutor_memory.core.intelligence.embeddings import EmbeddingService
    >>> service = EmbeddingService(model="text-embedding-3-small")
    >>> vector = await service.embed_text("I'm a visual learner")
    >>> print(f"Vector dimension: {len(vector)}")
    Vector dimension: 1536
"""

from tutor_memory.core.intelligence.embeddings.service import (
    MODEL_DIMENSIONS,
    EmbeddingService,
)

__all__ = ["EmbeddingService", "MODEL_DIMENSIONS"]
