# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

The service graph is built once at startup by init_services() and handed
to endpoints through the get_* dependencies. Tests replace them with
app.dependency_overrides.

Example:
    @router.get("/memory/status")
    async def status(service: MemoryService = Depends(get_memory_service)):
        ...
"""

import logging

from fastapi import HTTPException, status

from tutor_memory.core.config import Settings
from tutor_memory.core.intelligence.embeddings import EmbeddingService
from tutor_memory.core.intelligence.llm import EvaluatorGateway, LLMClient
from tutor_memory.core.memory import MemoryFilter, MemoryRetriever, MemoryService, MemoryStore
from tutor_memory.core.sync import CrossAppGateway, PeerMemoryClient
from tutor_memory.infrastructure.database import (
    close_database,
    create_schema,
    init_database,
)
from tutor_memory.infrastructure.vectors import close_qdrant, get_qdrant, init_qdrant

logger = logging.getLogger(__name__)

# Service graph singletons
_memory_service: MemoryService | None = None
_cross_app_gateway: CrossAppGateway | None = None
_peer_client: PeerMemoryClient | None = None


async def init_db(settings: Settings) -> None:
    """Initialize the database pool, schema and vector store."""
    await init_database(settings)
    if settings.db.create_schema:
        await create_schema()
    await init_qdrant(settings)


async def close_db() -> None:
    """Close the vector store and database pool."""
    await close_qdrant()
    await close_database()


def init_services(settings: Settings) -> None:
    """Wire the memory service graph.

    Requires init_db() to have run.
    """
    global _memory_service, _cross_app_gateway, _peer_client

    embedder = EmbeddingService(embedding_settings=settings.embedding)
    evaluator = EvaluatorGateway(
        LLMClient(llm_settings=settings.llm),
        timeout=settings.memory.evaluator_timeout,
    )

    store = MemoryStore(
        vectors=get_qdrant(),
        collection=settings.qdrant.collection,
        dimension=embedder.dimension,
    )
    retriever = MemoryRetriever(store, embedder, settings.memory)
    memory_filter = MemoryFilter(evaluator, settings.memory)
    _peer_client = PeerMemoryClient(settings.cross_app)

    _memory_service = MemoryService(
        store=store,
        retriever=retriever,
        memory_filter=memory_filter,
        embedder=embedder,
        peer=_peer_client,
        memory_settings=settings.memory,
    )
    _cross_app_gateway = CrossAppGateway(retriever, settings.cross_app)

    logger.info("Memory services initialized")


async def ensure_vector_collection(settings: Settings) -> None:
    """Create the memory vector collection if it is missing."""
    await get_qdrant().ensure_collection(settings.qdrant.collection, settings.embedding.dimension)


async def close_services() -> None:
    """Finish background work and release the peer client."""
    global _memory_service, _cross_app_gateway, _peer_client

    if _memory_service is not None:
        await _memory_service.drain_background_tasks()
    if _peer_client is not None:
        await _peer_client.close()

    _memory_service = None
    _cross_app_gateway = None
    _peer_client = None


def get_memory_service() -> MemoryService:
    """Dependency returning the memory service.

    Raises:
        HTTPException: 503 if services are not initialized.
    """
    if _memory_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Memory service not initialized",
        )
    return _memory_service


def get_cross_app_gateway() -> CrossAppGateway:
    """Dependency returning the cross-app gateway.

    Raises:
        HTTPException: 503 if services are not initialized.
    """
    if _cross_app_gateway is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cross-app gateway not initialized",
        )
    return _cross_app_gateway
