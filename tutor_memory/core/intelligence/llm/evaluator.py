# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Evaluator gateway: completions that must answer with a JSON object."""

import json
import logging
import re
from typing import Any

from tutor_memory.core.exceptions import MalformedResponseError
from tutor_memory.core.intelligence.llm.client import LLMClient

logger = logging.getLogger(__name__)

# Outermost {...} span, across newlines
_JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")

EVALUATOR_SYSTEM_PROMPT = (
    "You are a careful memory curator for a tutoring assistant. "
    "Respond only with a single JSON object."
)


def extract_json_object(text: str) -> dict[str, Any]:
    """Extract the JSON object embedded in a model answer.

    Models often wrap JSON in prose or code fences, so the outermost
    brace-delimited span is parsed.

    Args:
        text: Raw model output.

    Returns:
        The parsed object.

    Raises:
        MalformedResponseError: If no object is present or it does not parse.
    """
    match = _JSON_OBJECT_PATTERN.search(text or "")
    if match is None:
        raise MalformedResponseError("No JSON object in evaluator answer", upstream="evaluator")

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise MalformedResponseError(
            "Evaluator answer is not valid JSON",
            original_error=e,
            upstream="evaluator",
        ) from e

    if not isinstance(parsed, dict):
        raise MalformedResponseError("Evaluator answer is not a JSON object", upstream="evaluator")
    return parsed


class EvaluatorGateway:
    """Structured-judgment gateway over an LLMClient.

    Example:
        >>> gateway = EvaluatorGateway(LLMClient(), timeout=15.0)
        >>> verdict = await gateway.evaluate(prompt)
    """

    def __init__(self, client: LLMClient, timeout: float | None = None) -> None:
        """Initialize the gateway.

        Args:
            client: Completion client.
            timeout: Per-evaluation timeout. Falls back to the client's.
        """
        self._client = client
        self._timeout = timeout

    async def evaluate(self, prompt: str) -> dict[str, Any]:
        """Evaluate a prompt and return the JSON object from the answer.

        Args:
            prompt: Evaluation prompt.

        Returns:
            Parsed JSON object.

        Raises:
            UpstreamUnavailableError: On timeout, rate limit, provider error
                or an unusable answer.
        """
        response = await self._client.complete(
            prompt,
            system_prompt=EVALUATOR_SYSTEM_PROMPT,
            temperature=0.0,
            timeout=self._timeout,
        )
        result = extract_json_object(response.content)
        logger.debug("Evaluator answered with keys=%s", sorted(result))
        return result
