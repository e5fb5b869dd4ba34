# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory API endpoints.

This module provides:
- POST /memories/retrieve - Serve a user's memory context to a trusted peer
- GET /memory/status - Per-kind memory counts and peer link state
- POST /memory/feedback - Report which retrieved memories were cited

The retrieve endpoint sits behind CrossAppAuthMiddleware. Every error body
has the shape {"error": ..., "success": false}.

Example:
    POST /api/v1/memories/retrieve
    X-Cross-App-Secret: <secret>
    {"user_id": "brandon", "email": "Brandon@example.com", "limit": 5}
"""

import json
import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from tutor_memory.api.dependencies import get_cross_app_gateway, get_memory_service
from tutor_memory.core.exceptions import ValidationError
from tutor_memory.core.memory import MemoryService
from tutor_memory.core.sync import CrossAppGateway, CrossAppRetrieveResponse, ErrorResponse
from tutor_memory.core.sync.validation import validate_user_id
from tutor_memory.utils.datetime import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class MemoryStatusResponse(BaseModel):
    """Memory counts for one user."""

    user_id: str = Field(description="User identifier")
    user_memories: int = Field(description="Number of user facts")
    carl_memories: int = Field(description="Number of relational memories")
    peer_memories: int = Field(default=0, description="Memories held by the peer application")
    total_memories: int = Field(description="Total local memories")
    peer_sync_connected: bool = Field(description="Whether the peer application is reachable")
    timestamp: datetime = Field(description="When the status was taken")
    success: bool = True
    error: str | None = None


class FeedbackRequest(BaseModel):
    """Citation report for one turn."""

    session_id: str | None = Field(default=None, description="Session the turn belongs to")
    user_id: str = Field(description="User identifier")
    retrieved_memory_ids: list[str] = Field(default_factory=list)
    cited_memory_ids: list[str] = Field(default_factory=list)


class FeedbackUpdates(BaseModel):
    """Counts of applied feedback."""

    positive: int
    negative: int
    total: int


class FeedbackResponse(BaseModel):
    """Response of the feedback endpoint."""

    success: bool = True
    updates: FeedbackUpdates


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/memories/retrieve",
    response_model=CrossAppRetrieveResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def retrieve_memories(
    request: Request,
    gateway: Annotated[CrossAppGateway, Depends(get_cross_app_gateway)],
) -> CrossAppRetrieveResponse | JSONResponse:
    """Return a user's memory context to an authenticated peer application.

    Falls back to the email's local part when the user id has no memories.
    The limit (clamped to [1, 100]) applies per kind: up to `limit` user
    memories and `limit` relational memories are returned.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error("Invalid JSON body", 400)

    try:
        retrieve_request = gateway.parse_request(body)
    except ValidationError as e:
        return _error(e.message, 400)

    try:
        return await gateway.retrieve(retrieve_request)
    except Exception as e:
        logger.exception("Cross-app retrieve failed for user=%s: %s", retrieve_request.user_id, e)
        return _error("Internal server error", 500)


@router.get(
    "/memory/status",
    response_model=MemoryStatusResponse,
    responses={400: {"model": ErrorResponse}},
)
async def get_memory_status(
    service: Annotated[MemoryService, Depends(get_memory_service)],
    user_id: str = Query(..., description="User identifier"),
) -> MemoryStatusResponse:
    """Get per-kind memory counts for a user.

    Store or peer failures produce a zeroed status with success=false
    rather than an error code.
    """
    validate_user_id(user_id)

    try:
        counts = await service.get_status_counts(user_id)
        connected = await service.peer_connected()
    except Exception as e:
        logger.warning("Memory status degraded for user=%s: %s", user_id, e)
        return MemoryStatusResponse(
            user_id=user_id,
            user_memories=0,
            carl_memories=0,
            total_memories=0,
            peer_sync_connected=False,
            timestamp=utc_now(),
            success=False,
            error="Failed to get memory status",
        )

    return MemoryStatusResponse(
        user_id=user_id,
        user_memories=counts.user_facts,
        carl_memories=counts.relational_memories,
        total_memories=counts.total,
        peer_sync_connected=connected,
        timestamp=utc_now(),
    )


@router.post(
    "/memory/feedback",
    response_model=FeedbackResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def submit_feedback(
    body: FeedbackRequest,
    service: Annotated[MemoryService, Depends(get_memory_service)],
) -> FeedbackResponse:
    """Record which retrieved memories the tutor actually used."""
    validate_user_id(body.user_id)

    result = await service.record_feedback(
        body.user_id,
        body.retrieved_memory_ids,
        body.cited_memory_ids,
    )

    return FeedbackResponse(
        updates=FeedbackUpdates(
            positive=result.positive,
            negative=result.negative,
            total=result.total,
        ),
    )
