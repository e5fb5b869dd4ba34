# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Wire schema of the cross-application memory exchange.

The response is flat and vendor-neutral so any cooperating application can
consume it without knowing this service's internal record shape.
"""

from pydantic import BaseModel, Field

CROSS_APP_SECRET_HEADER = "X-Cross-App-Secret"


class CrossAppRetrieveRequest(BaseModel):
    """Validated body of a cross-app retrieve call.

    Attributes:
        limit: Maximum records per kind, so a response holds up to `limit`
            user memories and `limit` relational memories.
    """

    user_id: str
    email: str | None = None
    query: str | None = None
    limit: int = 10
    include_carl_memories: bool = True


class UserMemoryItem(BaseModel):
    """A user fact as exchanged between applications."""

    id: str
    content: str
    summary: str
    category: str
    emotional_arousal: float
    dominant_emotion: str | None = None
    memory_strength: float
    current_importance: float


class RelationalMemoryItem(BaseModel):
    """A relational memory as exchanged between applications."""

    id: str
    content: str
    summary: str
    memory_type: str
    effectiveness_score: float


class TeachingStrategyItem(BaseModel):
    """A grouped teaching strategy."""

    topic: str
    strategy_used: str
    success_score: float
    evidence: str


class TeachingApproachItem(BaseModel):
    """A teaching approach recorded as effective."""

    approach: str
    effectiveness: float


class CrossAppRetrieveResponse(BaseModel):
    """Successful cross-app retrieve response."""

    user_memories: list[UserMemoryItem] = Field(default_factory=list)
    carl_memories: list[RelationalMemoryItem] = Field(default_factory=list)
    teaching_strategies: list[TeachingStrategyItem] = Field(default_factory=list)
    teaching_approaches: list[TeachingApproachItem] = Field(default_factory=list)
    success: bool = True


class ErrorResponse(BaseModel):
    """Error body shared by all endpoints of the memory API."""

    error: str
    success: bool = False
