# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Embedding service for API-based embedding generation.

Every call is bounded by a timeout. Provider failures are translated into
the gateway error taxonomy:
- GatewayTimeoutError when the call does not finish in time
- GatewayRateLimitedError when the provider refuses because of rate limits
- MalformedResponseError when the vector has the wrong dimension
- UpstreamUnavailableError for anything else

Example:
    >>> from tutor_memory.core.intelligence.embeddings import EmbeddingService
    >>> service = EmbeddingService()
    >>> vector = await service.embed_text("Hello world")
    >>> vectors = await service.embed_batch(["Hello", "World"])
"""

import asyncio
import logging
from typing import Any

import litellm
from litellm import aembedding

from tutor_memory.core.config.settings import EmbeddingSettings, get_settings
from tutor_memory.core.exceptions import MalformedResponseError
from tutor_memory.core.intelligence.errors import translate_provider_error

logger = logging.getLogger(__name__)

# Output dimension of known embedding models
MODEL_DIMENSIONS: dict[str, int] = {
    "ollama/nomic-embed-text": 768,
    "ollama/mxbai-embed-large": 1024,
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "embed-english-v3.0": 1024,
    "embed-multilingual-v3.0": 1024,
    "gemini/text-embedding-004": 768,
}


class EmbeddingService:
    """Service for generating text embeddings via LiteLLM.

    Attributes:
        model: The embedding model identifier in LiteLLM format.
        dimension: The output dimension of the embedding vectors.
        batch_size: Maximum number of texts to embed in a single call.
        timeout: Per-call timeout in seconds.

    Example:
        >>> service = EmbeddingService()
        >>> vector = await service.embed_text("Fractions click with pizza slices")
        >>> print(f"Dimension: {service.dimension}")
        Dimension: 1536
    """

    def __init__(
        self,
        model: str | None = None,
        dimension: int | None = None,
        batch_size: int | None = None,
        timeout: float | None = None,
        embedding_settings: EmbeddingSettings | None = None,
    ):
        """Initialize the embedding service.

        Args:
            model: Embedding model in LiteLLM format. Falls back to settings.
            dimension: Vector dimension. Auto-detected from model if not provided.
            batch_size: Maximum batch size for embed_batch. Falls back to settings.
            timeout: Per-call timeout in seconds. Falls back to settings.
            embedding_settings: Embedding configuration. Uses get_settings() if None.
        """
        self._settings = embedding_settings or get_settings().embedding

        self._model = model or self._settings.model
        self._batch_size = batch_size or self._settings.batch_size
        self._timeout = timeout or self._settings.timeout

        if dimension is not None:
            self._dimension = dimension
        elif model is not None and model in MODEL_DIMENSIONS:
            self._dimension = MODEL_DIMENSIONS[model]
        else:
            self._dimension = self._settings.dimension

        self._litellm_params = self._build_litellm_params()
        litellm.set_verbose = False

        logger.info(
            "EmbeddingService initialized with model=%s, dimension=%d, batch_size=%d",
            self._model,
            self._dimension,
            self._batch_size,
        )

    def _build_litellm_params(self) -> dict[str, Any]:
        """Build api_base / api_key parameters for aembedding() calls."""
        params: dict[str, Any] = {}

        if self._settings.api_base:
            params["api_base"] = self._settings.api_base

        if self._settings.api_key is not None:
            params["api_key"] = self._settings.api_key.get_secret_value()

        return params

    @property
    def model(self) -> str:
        """Get the embedding model identifier."""
        return self._model

    @property
    def dimension(self) -> int:
        """Get the embedding vector dimension."""
        return self._dimension

    @property
    def batch_size(self) -> int:
        """Get the maximum batch size for embedding operations."""
        return self._batch_size

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        """Call the provider once, bounded by the configured timeout.

        Raises:
            UpstreamUnavailableError: Or one of its typed subclasses.
        """
        try:
            response = await asyncio.wait_for(
                aembedding(model=self._model, input=texts, **self._litellm_params),
                timeout=self._timeout,
            )
            vectors = [list(item["embedding"]) for item in response.data]
        except Exception as e:
            logger.error(
                "Embedding call failed: model=%s, count=%d, error=%s",
                self._model,
                len(texts),
                str(e),
            )
            raise translate_provider_error(e, "embedding", self._model) from e

        if len(vectors) != len(texts):
            raise MalformedResponseError(
                f"Expected {len(texts)} embeddings, got {len(vectors)}",
                upstream="embedding",
            )
        for vector in vectors:
            if len(vector) != self._dimension:
                raise MalformedResponseError(
                    f"Embedding dimension {len(vector)} does not match {self._dimension}",
                    upstream="embedding",
                )
        return vectors

    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector for a single text.

        Args:
            text: Input text to embed.

        Returns:
            Embedding vector as list of floats.

        Raises:
            UpstreamUnavailableError: If embedding generation fails.
            ValueError: If text is empty.
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        vectors = await self._embed([text])

        logger.debug(
            "Generated embedding for text of length %d, dimension=%d",
            len(text),
            len(vectors[0]),
        )
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for multiple texts.

        Texts are sent in chunks of batch_size.

        Args:
            texts: List of input texts to embed.

        Returns:
            List of embedding vectors, one per input text.

        Raises:
            UpstreamUnavailableError: If embedding generation fails.
            ValueError: If the list is empty or contains an empty text.
        """
        if not texts:
            raise ValueError("Texts list cannot be empty")
        if any(not text or not text.strip() for text in texts):
            raise ValueError("Texts cannot contain empty entries")

        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            batch = texts[start : start + self._batch_size]
            all_embeddings.extend(await self._embed(batch))

        logger.info("Generated %d embeddings", len(all_embeddings))
        return all_embeddings

    def __repr__(self) -> str:
        """Return string representation of the service."""
        return (
            f"EmbeddingService(model={self._model!r}, "
            f"dimension={self._dimension}, batch_size={self._batch_size})"
        )
