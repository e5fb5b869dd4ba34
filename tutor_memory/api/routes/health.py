# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Health check endpoint.

Reports liveness together with database and Qdrant reachability.
"""

import logging
import time
from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from tutor_memory import __version__
from tutor_memory.core.config import get_settings
from tutor_memory.core.exceptions import StoreUnavailableError
from tutor_memory.infrastructure.database import check_database_connection
from tutor_memory.infrastructure.vectors import get_qdrant
from tutor_memory.utils.datetime import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

# Track server start time for uptime calculation
_server_start_time = time.time()


class ComponentHealth(BaseModel):
    """Individual component health status."""

    status: str = Field(description="Component status")
    latency_ms: float | None = Field(None, description="Response latency in ms")
    message: str | None = Field(None, description="Additional status message")


class ComponentsHealth(BaseModel):
    """All components health status."""

    database: ComponentHealth | None = None
    qdrant: ComponentHealth | None = None


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str = Field(description="Overall health status")
    timestamp: datetime = Field(description="Current server timestamp")
    version: str = Field(description="API version")
    environment: str = Field(description="Deployment environment")
    uptime_seconds: int = Field(description="Server uptime in seconds")
    components: ComponentsHealth = Field(default_factory=ComponentsHealth)


async def check_database() -> ComponentHealth:
    """Check PostgreSQL reachability."""
    start = time.time()
    if not await check_database_connection():
        return ComponentHealth(status="unhealthy", message="Database unreachable")

    latency = (time.time() - start) * 1000
    return ComponentHealth(status="healthy", latency_ms=round(latency, 2))


async def check_qdrant() -> ComponentHealth:
    """Check Qdrant reachability."""
    try:
        client = get_qdrant()
    except StoreUnavailableError as e:
        return ComponentHealth(status="unhealthy", message=e.message)

    start = time.time()
    if not await client.ping():
        logger.error("Qdrant health check failed")
        return ComponentHealth(status="unhealthy", message="Qdrant unreachable")

    latency = (time.time() - start) * 1000
    return ComponentHealth(status="healthy", latency_ms=round(latency, 2))


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check if the API is alive and its stores are reachable.

    Returns:
        HealthResponse with per-component status. The overall status is
        "healthy" when every component is, "degraded" otherwise.
    """
    settings = get_settings()

    db_health = await check_database()
    qdrant_health = await check_qdrant()

    if all(c.status == "healthy" for c in (db_health, qdrant_health)):
        overall_status = "healthy"
    else:
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        timestamp=utc_now(),
        version=__version__,
        environment=settings.environment,
        uptime_seconds=int(time.time() - _server_start_time),
        components=ComponentsHealth(database=db_health, qdrant=qdrant_health),
    )
