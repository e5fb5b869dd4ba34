# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Qdrant vector database client for memory similarity search.

Points use the memory record id as point id and carry a small payload
({memory_id, user_id, kind}). Every search is filtered by user_id; memories
of one user are never visible to another.

Example:
    from tutor_memory.infrastructure.vectors import init_qdrant, get_qdrant

    await init_qdrant(settings)
    qdrant = get_qdrant()

    results = await qdrant.search(
        "memory_records",
        query_vector=embedding,
        limit=10,
        filter_conditions={"user_id": "brandon"},
    )
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from qdrant_client import AsyncQdrantClient
from qdrant_client.http import models

from tutor_memory.core.exceptions import StoreUnavailableError

if TYPE_CHECKING:
    from tutor_memory.core.config.settings import Settings

# Module-level state
_qdrant_client: "QdrantVectorClient | None" = None


class QdrantError(StoreUnavailableError):
    """Raised for Qdrant operation failures."""


@dataclass
class SearchResult:
    """Result from a vector similarity search.

    Attributes:
        id: Point ID in Qdrant.
        score: Similarity score.
        payload: Associated metadata.
    """

    id: str
    score: float
    payload: dict[str, Any]


class QdrantVectorClient:
    """Async Qdrant client wrapper.

    Attributes:
        settings: Application settings containing Qdrant configuration.

    Example:
        client = QdrantVectorClient(settings)
        await client.connect()
        await client.ensure_collection("memory_records", vector_size=1536)
        results = await client.search("memory_records", vector, limit=5)
        await client.close()
    """

    def __init__(self, settings: "Settings") -> None:
        """Initialize the Qdrant client.

        Args:
            settings: Application settings containing Qdrant configuration.
        """
        self._settings = settings
        self._client: AsyncQdrantClient | None = None

    async def connect(self) -> None:
        """Create the Qdrant client connection.

        Raises:
            QdrantError: If connection fails.
        """
        qdrant_settings = self._settings.qdrant
        api_key = (
            qdrant_settings.api_key.get_secret_value()
            if qdrant_settings.api_key
            else None
        )

        try:
            self._client = AsyncQdrantClient(
                host=qdrant_settings.host,
                port=qdrant_settings.http_port,
                grpc_port=qdrant_settings.grpc_port,
                api_key=api_key,
                prefer_grpc=qdrant_settings.prefer_grpc,
                timeout=qdrant_settings.timeout,
            )

            await self._client.get_collections()
        except Exception as e:
            raise QdrantError("Failed to connect to Qdrant", e) from e

    async def close(self) -> None:
        """Close the Qdrant client connection."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    def _ensure_connected(self) -> AsyncQdrantClient:
        """Return the connected client.

        Raises:
            QdrantError: If not connected.
        """
        if self._client is None:
            raise QdrantError("Qdrant client not connected. Call connect() first.")
        return self._client

    # ========== Collection management ==========

    async def collection_exists(self, collection_name: str) -> bool:
        """Check if a collection exists.

        Raises:
            QdrantError: If the check fails.
        """
        client = self._ensure_connected()

        try:
            return await client.collection_exists(collection_name)
        except Exception as e:
            raise QdrantError(f"Failed to check collection: {collection_name}", e) from e

    async def ensure_collection(
        self,
        collection_name: str,
        vector_size: int,
        indexed_fields: tuple[str, ...] = ("user_id", "kind"),
    ) -> None:
        """Create a cosine collection with keyword payload indexes if missing.

        Args:
            collection_name: Name of the collection.
            vector_size: Dimension of the vectors.
            indexed_fields: Payload fields to index for filtering.

        Raises:
            QdrantError: If creation fails.
        """
        if await self.collection_exists(collection_name):
            return

        client = self._ensure_connected()

        try:
            await client.create_collection(
                collection_name=collection_name,
                vectors_config=models.VectorParams(
                    size=vector_size,
                    distance=models.Distance.COSINE,
                ),
            )
            for field_name in indexed_fields:
                await client.create_payload_index(
                    collection_name=collection_name,
                    field_name=field_name,
                    field_schema=models.PayloadSchemaType.KEYWORD,
                )
        except Exception as e:
            raise QdrantError(f"Failed to create collection: {collection_name}", e) from e

    # ========== Vector operations ==========

    async def upsert(
        self,
        collection_name: str,
        points: list[dict[str, Any]],
    ) -> None:
        """Upsert points into a collection.

        Args:
            collection_name: Name of the collection.
            points: Points shaped {"id": str, "vector": list[float], "payload": dict}.

        Raises:
            QdrantError: If upsert fails.
        """
        client = self._ensure_connected()

        try:
            await client.upsert(
                collection_name=collection_name,
                points=[
                    models.PointStruct(
                        id=p["id"],
                        vector=p["vector"],
                        payload=p.get("payload", {}),
                    )
                    for p in points
                ],
            )
        except Exception as e:
            raise QdrantError(f"Failed to upsert points to: {collection_name}", e) from e

    async def search(
        self,
        collection_name: str,
        query_vector: list[float],
        limit: int = 5,
        score_threshold: float | None = None,
        filter_conditions: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Search for similar vectors in a collection.

        Uses the query_points API.

        Args:
            collection_name: Name of the collection.
            query_vector: The query embedding vector.
            limit: Maximum number of results.
            score_threshold: Minimum similarity score.
            filter_conditions: Exact-match payload conditions.

        Returns:
            List of SearchResult objects, most similar first.

        Raises:
            QdrantError: If search fails.
        """
        client = self._ensure_connected()

        query_filter = None
        if filter_conditions:
            query_filter = models.Filter(
                must=[
                    models.FieldCondition(key=key, match=models.MatchValue(value=value))
                    for key, value in filter_conditions.items()
                ]
            )

        try:
            response = await client.query_points(
                collection_name=collection_name,
                query=query_vector,
                limit=limit,
                score_threshold=score_threshold,
                query_filter=query_filter,
                with_payload=True,
            )
        except Exception as e:
            raise QdrantError(f"Failed to search in: {collection_name}", e) from e

        return [
            SearchResult(
                id=str(point.id),
                score=point.score,
                payload=point.payload or {},
            )
            for point in response.points
        ]

    # ========== Health check ==========

    async def ping(self) -> bool:
        """Check if Qdrant is reachable."""
        try:
            client = self._ensure_connected()
            await client.get_collections()
            return True
        except Exception:
            return False


# ========== Module-level functions ==========


async def init_qdrant(settings: "Settings") -> None:
    """Initialize the global Qdrant client.

    Called once at application startup.

    Raises:
        QdrantError: If connection fails.
    """
    global _qdrant_client

    _qdrant_client = QdrantVectorClient(settings)
    await _qdrant_client.connect()


def get_qdrant() -> QdrantVectorClient:
    """Get the global Qdrant client.

    Raises:
        QdrantError: If Qdrant has not been initialized.
    """
    if _qdrant_client is None:
        raise QdrantError("Qdrant not initialized. Call init_qdrant() first.")
    return _qdrant_client


async def close_qdrant() -> None:
    """Close the global Qdrant client."""
    global _qdrant_client

    if _qdrant_client is not None:
        await _qdrant_client.close()
        _qdrant_client = None
