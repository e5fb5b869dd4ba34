# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""HTTP client for the cooperating application's memory endpoint.

The peer exposes the same POST /api/v1/memories/retrieve contract as this
service. Calls are bounded by a short timeout and never raise: a peer that
is down, slow or misconfigured yields an empty, unsuccessful PeerContext.

The underlying httpx.AsyncClient is created on first use and closed by the
application lifespan.

Example:
    peer = PeerMemoryClient(settings.cross_app)
    context = await peer.fetch_memories("brandon", query="fractions", limit=5)
    await peer.close()
"""

import logging
from typing import Any

import httpx

from tutor_memory.core.config.settings import CrossAppSettings
from tutor_memory.core.sync.schemas import CROSS_APP_SECRET_HEADER
from tutor_memory.models.memory import PeerContext, PeerMemory

logger = logging.getLogger(__name__)

RETRIEVE_PATH = "/api/v1/memories/retrieve"
HEALTH_PATH = "/health"


class PeerMemoryClient:
    """Lazily-connected client for the cooperating application."""

    def __init__(self, settings: CrossAppSettings) -> None:
        """Initialize the client.

        Args:
            settings: Cross-app settings with peer_url, secret and timeout.
        """
        self._settings = settings
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        """True when both the peer URL and the shared secret are set."""
        secret = self._settings.secret
        return bool(self._settings.peer_url) and secret is not None and bool(secret.get_secret_value())

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._settings.peer_url or "",
                timeout=self._settings.peer_timeout,
                headers={
                    CROSS_APP_SECRET_HEADER: self._settings.secret.get_secret_value()
                    if self._settings.secret
                    else "",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_memories(
        self,
        user_id: str,
        query: str | None = None,
        limit: int = 5,
    ) -> PeerContext:
        """Fetch the user's memories from the peer.

        Returns:
            PeerContext. success is False when the peer could not be used.
        """
        if not self.is_configured:
            logger.debug("Peer application not configured, skipping fetch")
            return PeerContext()

        try:
            response = await self._get_client().post(
                RETRIEVE_PATH,
                json={
                    "user_id": user_id,
                    "query": query,
                    "limit": limit,
                    "include_carl_memories": True,
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Peer application returned %d", e.response.status_code)
            return PeerContext()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to fetch memories from peer application: %s", e)
            return PeerContext()

        if not isinstance(data, dict):
            logger.error("Peer application answered with a non-object payload")
            return PeerContext()

        memories = [
            *(_to_peer_memory(item, "category") for item in data.get("user_memories") or []),
            *(_to_peer_memory(item, "memory_type") for item in data.get("carl_memories") or []),
        ]
        memories = [m for m in memories if m is not None]

        logger.info("Peer application returned %d memories for user=%s", len(memories), user_id)
        return PeerContext(memories=memories, success=True)

    async def check_connection(self) -> bool:
        """True when the peer answers its health endpoint."""
        if not self.is_configured:
            return False

        try:
            response = await self._get_client().get(HEALTH_PATH)
        except httpx.HTTPError as e:
            logger.warning("Peer application unreachable: %s", e)
            return False
        return response.is_success


def _to_peer_memory(item: Any, category_key: str) -> PeerMemory | None:
    """Convert one peer record, skipping items without id or content."""
    if not isinstance(item, dict) or not item.get("id") or not item.get("content"):
        return None

    summary = item.get("summary")
    category = item.get(category_key)
    importance = item.get("current_importance", item.get("effectiveness_score"))
    if isinstance(importance, bool) or not isinstance(importance, (int, float)):
        importance = 0.5

    return PeerMemory(
        id=str(item["id"]),
        content=str(item["content"]),
        summary=summary if isinstance(summary, str) else None,
        category=category if isinstance(category, str) else None,
        importance=float(importance),
    )
