# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the health endpoint."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from tutor_memory.api.app import create_app
from tutor_memory.infrastructure.vectors import QdrantError


@pytest.mark.integration
class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_healthy(self) -> None:
        """Test that reachable stores report healthy."""
        qdrant = MagicMock()
        qdrant.ping = AsyncMock(return_value=True)

        with (
            patch("tutor_memory.api.routes.health.check_database_connection", new=AsyncMock(return_value=True)),
            patch("tutor_memory.api.routes.health.get_qdrant", return_value=qdrant),
        ):
            response = TestClient(create_app()).get("/health")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["components"]["database"]["status"] == "healthy"
        assert body["components"]["qdrant"]["status"] == "healthy"

    def test_degraded_when_stores_down(self) -> None:
        """Test that unreachable stores degrade the status."""
        with (
            patch("tutor_memory.api.routes.health.check_database_connection", new=AsyncMock(return_value=False)),
            patch("tutor_memory.api.routes.health.get_qdrant", side_effect=QdrantError("not initialized")),
        ):
            response = TestClient(create_app()).get("/health")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "degraded"
        assert body["components"]["database"]["status"] == "unhealthy"
        assert body["components"]["qdrant"]["status"] == "unhealthy"
