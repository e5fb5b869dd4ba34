# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Cross-application sync gateway.

Lets a trusted cooperating application read a user's memory context.
Trust rests on a shared secret compared in constant time. Input is
validated strictly before the retriever is touched.

Users are sometimes known under different ids in the two applications.
When the primary lookup finds nothing and an email was given, the lookup
is retried once with the lowercased local part of the email.
"""

import logging
from typing import Any

from tutor_memory.core.config.settings import CrossAppSettings, get_settings
from tutor_memory.core.exceptions import AuthenticationError, ConfigurationError, ValidationError
from tutor_memory.core.memory.retriever import MemoryRetriever
from tutor_memory.core.sync.schemas import (
    CrossAppRetrieveRequest,
    CrossAppRetrieveResponse,
    RelationalMemoryItem,
    TeachingApproachItem,
    TeachingStrategyItem,
    UserMemoryItem,
)
from tutor_memory.core.sync.validation import (
    clamp_limit,
    constant_time_compare,
    email_local_part,
    validate_email,
    validate_query,
    validate_user_id,
)
from tutor_memory.models.memory import MemoryContext

logger = logging.getLogger(__name__)


def verify_cross_app_secret(supplied: str | None, settings: CrossAppSettings) -> None:
    """Check a caller's shared secret.

    Args:
        supplied: Value of the X-Cross-App-Secret header.
        settings: Cross-app settings holding the expected secret.

    Raises:
        ConfigurationError: If no secret is provisioned on this side.
        AuthenticationError: If the supplied secret is missing or wrong.
    """
    secret = settings.secret
    if secret is None or not secret.get_secret_value():
        raise ConfigurationError("Cross-app secret is not configured")

    if not supplied or not constant_time_compare(supplied, secret.get_secret_value()):
        raise AuthenticationError("Unauthorized")


def shape_response(context: MemoryContext, include_relational: bool = True) -> CrossAppRetrieveResponse:
    """Convert a MemoryContext into the flat wire schema."""
    return CrossAppRetrieveResponse(
        user_memories=[
            UserMemoryItem(
                id=r.id,
                content=r.content,
                summary=r.summary,
                category=r.category,
                emotional_arousal=r.emotional_arousal,
                dominant_emotion=r.dominant_emotion,
                memory_strength=r.memory_strength,
                current_importance=r.current_importance,
            )
            for r in context.user_facts
        ],
        carl_memories=[
            RelationalMemoryItem(
                id=r.id,
                content=r.content,
                summary=r.summary,
                memory_type=r.category,
                effectiveness_score=r.current_importance,
            )
            for r in context.relational_memories
        ]
        if include_relational
        else [],
        teaching_strategies=[
            TeachingStrategyItem(
                topic=s.topic,
                strategy_used=s.strategy_used,
                success_score=s.success_score,
                evidence=s.evidence,
            )
            for s in context.teaching_strategies
        ],
        teaching_approaches=[
            TeachingApproachItem(approach=a.approach, effectiveness=a.effectiveness)
            for a in context.teaching_approaches
        ],
    )


class CrossAppGateway:
    """Authenticated, validated access to the retriever for peer applications."""

    def __init__(
        self,
        retriever: MemoryRetriever,
        cross_app_settings: CrossAppSettings | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            retriever: Memory retriever.
            cross_app_settings: Secret and limits. Uses get_settings() if None.
        """
        self._retriever = retriever
        self._settings = cross_app_settings or get_settings().cross_app

    def parse_request(self, body: Any) -> CrossAppRetrieveRequest:
        """Validate a raw JSON body.

        Raises:
            ValidationError: If any field is missing or malformed.
        """
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")

        include = body.get("include_carl_memories", True)
        if not isinstance(include, bool):
            raise ValidationError("include_carl_memories must be a boolean", field="include_carl_memories")

        return CrossAppRetrieveRequest(
            user_id=validate_user_id(body.get("user_id")),
            email=validate_email(body.get("email")),
            query=validate_query(body.get("query"), self._settings.max_query_length),
            limit=clamp_limit(
                body.get("limit"),
                minimum=self._settings.min_limit,
                maximum=self._settings.max_limit,
            ),
            include_carl_memories=include,
        )

    async def retrieve(self, request: CrossAppRetrieveRequest) -> CrossAppRetrieveResponse:
        """Serve the user's context, falling back to the email identity.

        Args:
            request: Validated request.

        Returns:
            The shaped response.
        """
        context = await self._retriever.retrieve_context(
            request.user_id,
            query=request.query,
            limit=request.limit,
        )

        if context.is_empty and request.email:
            fallback_id = email_local_part(request.email)
            if fallback_id != request.user_id and fallback_id:
                logger.info(
                    "No memories for user=%s, retrying with email identity=%s",
                    request.user_id,
                    fallback_id,
                )
                context = await self._retriever.retrieve_context(
                    fallback_id,
                    query=request.query,
                    limit=request.limit,
                )

        logger.info(
            "Cross-app retrieve for user=%s: facts=%d, relational=%d",
            request.user_id,
            len(context.user_facts),
            len(context.relational_memories),
        )
        return shape_response(context, request.include_carl_memories)
