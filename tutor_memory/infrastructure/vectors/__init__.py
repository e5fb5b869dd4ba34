# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Qdrant vector storage for memory embeddings."""

from tutor_memory.infrastructure.vectors.qdrant_client import (
    QdrantError,
    QdrantVectorClient,
    SearchResult,
    close_qdrant,
    get_qdrant,
    init_qdrant,
)

__all__ = [
    "QdrantError",
    "QdrantVectorClient",
    "SearchResult",
    "close_qdrant",
    "get_qdrant",
    "init_qdrant",
]
