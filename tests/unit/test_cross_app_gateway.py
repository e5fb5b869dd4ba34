# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the cross-app gateway and the peer client."""

from typing import Callable
from unittest.mock import AsyncMock

import httpx
import pytest
from pydantic import SecretStr

from tutor_memory.core.config import CrossAppSettings
from tutor_memory.core.exceptions import AuthenticationError, ConfigurationError, ValidationError
from tutor_memory.core.memory import MemoryRetriever
from tutor_memory.core.sync import (
    CROSS_APP_SECRET_HEADER,
    CrossAppGateway,
    CrossAppRetrieveRequest,
    PeerMemoryClient,
    shape_response,
    verify_cross_app_secret,
)
from tutor_memory.models.memory import MemoryContext, MemoryKind, MemoryRecord

SECRET = "shared-secret-for-tests"


@pytest.fixture
def cross_app_settings() -> CrossAppSettings:
    """Cross-app settings with a provisioned secret and a peer URL."""
    return CrossAppSettings(secret=SecretStr(SECRET), peer_url="http://peer.test")


@pytest.mark.unit
class TestVerifySecret:
    """Test cases for verify_cross_app_secret."""

    def test_accepts_matching_secret(self, cross_app_settings: CrossAppSettings) -> None:
        """Test that the right secret passes."""
        verify_cross_app_secret(SECRET, cross_app_settings)

    @pytest.mark.parametrize("supplied", [None, "", "wrong", SECRET + "x"])
    def test_rejects_wrong_secret(self, cross_app_settings: CrossAppSettings, supplied: str | None) -> None:
        """Test that missing or wrong secrets fail authentication."""
        with pytest.raises(AuthenticationError):
            verify_cross_app_secret(supplied, cross_app_settings)

    def test_unprovisioned_secret_is_configuration_error(self) -> None:
        """Test that a missing server secret is reported separately."""
        with pytest.raises(ConfigurationError):
            verify_cross_app_secret(SECRET, CrossAppSettings(secret=None))


@pytest.mark.unit
class TestParseRequest:
    """Test cases for CrossAppGateway.parse_request."""

    def test_valid_body(self, cross_app_settings: CrossAppSettings) -> None:
        """Test that a valid body is normalized."""
        gateway = CrossAppGateway(AsyncMock(spec=MemoryRetriever), cross_app_settings)

        request = gateway.parse_request({"user_id": "brandon", "limit": 500, "query": "  "})

        assert request.user_id == "brandon"
        assert request.limit == 100
        assert request.query is None
        assert request.include_carl_memories is True

    @pytest.mark.parametrize(
        "body",
        [
            [],
            {"user_id": "bad id"},
            {"user_id": "brandon", "email": "not-an-email"},
            {"user_id": "brandon", "query": "x" * 2001},
            {"user_id": "brandon", "include_carl_memories": "yes"},
        ],
    )
    def test_invalid_bodies(self, cross_app_settings: CrossAppSettings, body: object) -> None:
        """Test that malformed bodies are rejected."""
        gateway = CrossAppGateway(AsyncMock(spec=MemoryRetriever), cross_app_settings)

        with pytest.raises(ValidationError):
            gateway.parse_request(body)


@pytest.mark.unit
class TestRetrieve:
    """Test cases for CrossAppGateway.retrieve."""

    @pytest.mark.asyncio
    async def test_email_fallback(
        self,
        cross_app_settings: CrossAppSettings,
        make_record: Callable[..., MemoryRecord],
    ) -> None:
        """Test that an unknown id is retried with the email's local part."""
        found = MemoryContext(
            user_facts=[
                make_record("Likes chess", user_id="brandon"),
                make_record("Studies physics", user_id="brandon"),
            ]
        )
        retriever = AsyncMock(spec=MemoryRetriever)
        retriever.retrieve_context.side_effect = lambda user_id, **kwargs: (
            found if user_id == "brandon" else MemoryContext()
        )
        gateway = CrossAppGateway(retriever, cross_app_settings)

        response = await gateway.retrieve(
            CrossAppRetrieveRequest(user_id="nonexistent", email="Brandon@example.com")
        )

        assert [m.content for m in response.user_memories] == ["Likes chess", "Studies physics"]
        assert retriever.retrieve_context.await_count == 2

    @pytest.mark.asyncio
    async def test_no_fallback_without_email(self, cross_app_settings: CrossAppSettings) -> None:
        """Test that an empty result without email is returned as is."""
        retriever = AsyncMock(spec=MemoryRetriever)
        retriever.retrieve_context.return_value = MemoryContext()
        gateway = CrossAppGateway(retriever, cross_app_settings)

        response = await gateway.retrieve(CrossAppRetrieveRequest(user_id="nonexistent"))

        assert response.user_memories == []
        assert response.success is True
        retriever.retrieve_context.assert_awaited_once()

    def test_shape_response_can_drop_relational(self, make_record: Callable[..., MemoryRecord]) -> None:
        """Test that relational memories are omitted on request."""
        context = MemoryContext(
            relational_memories=[make_record("Likes jokes", kind=MemoryKind.RELATIONAL_MEMORY)]
        )

        assert len(shape_response(context).carl_memories) == 1
        assert shape_response(context, include_relational=False).carl_memories == []


@pytest.mark.unit
class TestPeerMemoryClient:
    """Test cases for PeerMemoryClient."""

    @staticmethod
    def _client(settings: CrossAppSettings, handler: Callable[[httpx.Request], httpx.Response]) -> PeerMemoryClient:
        client = PeerMemoryClient(settings)
        client._client = httpx.AsyncClient(
            base_url=settings.peer_url or "",
            transport=httpx.MockTransport(handler),
            headers={CROSS_APP_SECRET_HEADER: SECRET},
        )
        return client

    @pytest.mark.asyncio
    async def test_fetch_memories(self, cross_app_settings: CrossAppSettings) -> None:
        """Test that both memory lists of the peer are collected."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "user_memories": [{"id": "u1", "content": "Likes chess", "category": "hobby"}],
                    "carl_memories": [
                        {"id": "c1", "content": "Enjoys puns", "memory_type": "rapport", "effectiveness_score": 0.7},
                        {"id": "", "content": "dropped"},
                    ],
                    "success": True,
                },
            )

        client = self._client(cross_app_settings, handler)

        context = await client.fetch_memories("brandon", query="chess", limit=5)
        await client.close()

        assert context.success is True
        assert [m.id for m in context.memories] == ["u1", "c1"]
        assert context.memories[1].importance == 0.7
        assert seen[0].url.path == "/api/v1/memories/retrieve"
        assert seen[0].headers[CROSS_APP_SECRET_HEADER] == SECRET

    @pytest.mark.asyncio
    async def test_peer_error_gives_empty_context(self, cross_app_settings: CrossAppSettings) -> None:
        """Test that peer failures never raise."""
        client = self._client(cross_app_settings, lambda request: httpx.Response(503))

        context = await client.fetch_memories("brandon")

        assert context.success is False
        assert context.memories == []

    @pytest.mark.asyncio
    async def test_unconfigured_peer(self) -> None:
        """Test that a client without URL or secret does nothing."""
        client = PeerMemoryClient(CrossAppSettings())

        assert client.is_configured is False
        assert (await client.fetch_memories("brandon")).success is False
        assert await client.check_connection() is False

    @pytest.mark.asyncio
    async def test_check_connection(self, cross_app_settings: CrossAppSettings) -> None:
        """Test the peer health probe."""
        client = self._client(cross_app_settings, lambda request: httpx.Response(200, json={"status": "ok"}))

        assert await client.check_connection() is True
