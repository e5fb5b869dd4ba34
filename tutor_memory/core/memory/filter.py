# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory filter: decides whether a candidate is worth remembering.

Each candidate is judged by the evaluator against four criteria:
permanence, uniqueness against a sample of existing memories,
actionability, and importance.

The filter fails open. When the evaluator times out, is rate limited,
errors, or answers with something unusable, the candidate is saved and
the decision says filtering failed. Losing a memory is worse than storing
a redundant one.

Example:
    >>> memory_filter = MemoryFilter(evaluator)
    >>> decision = await memory_filter.evaluate_candidate(
    ...     "I'm a visual learner", "personal_fact", [], "brandon"
    ... )
    >>> decision.should_save
    True
"""

import asyncio
import logging
from typing import Any

from tutor_memory.core.config.settings import MemorySettings, get_settings
from tutor_memory.core.exceptions import (
    GatewayTimeoutError,
    MalformedResponseError,
    UpstreamUnavailableError,
)
from tutor_memory.core.intelligence.protocols import Evaluator
from tutor_memory.core.memory.scoring import clamp_unit
from tutor_memory.models.memory import FilterDecision, MemoryCandidate

logger = logging.getLogger(__name__)

FILTER_PROMPT_TEMPLATE = """You are the memory filter of a patient AI tutor. Decide whether this fact is worth remembering long-term about a student.

PROPOSED MEMORY: "{content}"
CATEGORY: {category}

EXISTING MEMORIES (sample of what is already known):
{existing}

Apply strict criteria:

1. PERMANENCE: Is this a lasting trait, preference, or fact?
   - YES: "I'm a visual learner", "My major is physics", "I struggle with calculus"
   - NO: "I'm confused right now", "Thanks!", "Let me think about that"

2. UNIQUENESS: Is this substantially different from the existing memories?
   - Nearly identical to an existing memory: MERGE with it or SKIP
   - Adds new information: SAVE

3. ACTIONABILITY: Can the tutor use this to teach better in the future?
   - YES: learning preferences, subject difficulties, background knowledge, goals
   - NO: greetings, acknowledgments, temporary states

4. IMPORTANCE: Rate 0.0-1.0 (1.0 = critical for future tutoring)

Respond with valid JSON only:
{{
  "should_save": true or false,
  "reason": "brief explanation",
  "merge_with": "exact text of the existing memory to merge with, or null",
  "adjusted_importance": 0.0-1.0
}}"""

REASON_PARSE_FAILED = "Filter parsing failed, saving by default"
REASON_TIMEOUT = "Filter timed out, saving by default"
REASON_ERROR = "Filter error, saving by default"


def build_filter_prompt(content: str, category: str, existing_sample: list[str]) -> str:
    """Render the evaluation prompt for one candidate."""
    if existing_sample:
        existing = "\n".join(f"{i}. {memory}" for i, memory in enumerate(existing_sample, 1))
    else:
        existing = "None yet"
    return FILTER_PROMPT_TEMPLATE.format(content=content, category=category, existing=existing)


def parse_decision(payload: dict[str, Any]) -> FilterDecision:
    """Convert an evaluator answer into a FilterDecision.

    Args:
        payload: JSON object returned by the evaluator.

    Returns:
        The decision. Importance is clamped to [0, 1].

    Raises:
        MalformedResponseError: If should_save is missing or not a boolean.
    """
    should_save = payload.get("should_save")
    if not isinstance(should_save, bool):
        raise MalformedResponseError("Evaluator answer lacks a boolean should_save", upstream="evaluator")

    merge_with = payload.get("merge_with")
    if not isinstance(merge_with, str) or not merge_with.strip():
        merge_with = None

    adjusted = payload.get("adjusted_importance")
    if isinstance(adjusted, bool) or not isinstance(adjusted, (int, float)):
        adjusted = None
    else:
        adjusted = clamp_unit(float(adjusted))

    return FilterDecision(
        should_save=should_save,
        reason=str(payload.get("reason") or ""),
        merge_with=merge_with,
        adjusted_importance=adjusted,
    )


def merge_memories(existing: str, incoming: str) -> str:
    """Merge an incoming memory into an existing one.

    - incoming already contained in existing: existing is kept
    - existing contained in incoming: incoming replaces it
    - otherwise both are kept: "{existing}. Additionally: {incoming}"

    Containment is case-insensitive.

    Args:
        existing: Content of the stored memory.
        incoming: Content of the new candidate.

    Returns:
        The merged content.
    """
    existing_lower = existing.lower()
    incoming_lower = incoming.lower()

    if incoming_lower in existing_lower:
        return existing
    if existing_lower in incoming_lower:
        return incoming
    return f"{existing}. Additionally: {incoming}"


class MemoryFilter:
    """Evaluator-backed filter for memory candidates.

    Attributes:
        batch_size: Candidates evaluated concurrently per batch.
        sample_size: Existing memories shown to the evaluator.
        timeout: Bound on a single evaluation.
    """

    def __init__(
        self,
        evaluator: Evaluator,
        memory_settings: MemorySettings | None = None,
    ) -> None:
        """Initialize the filter.

        Args:
            evaluator: Gateway that judges prompts.
            memory_settings: Memory policy. Uses get_settings() if None.
        """
        settings = memory_settings or get_settings().memory
        self._evaluator = evaluator
        self.batch_size = settings.filter_batch_size
        self.sample_size = settings.dedup_sample_size
        self.timeout = settings.evaluator_timeout

    def _visible_sample(self, existing_sample: list[str]) -> list[str]:
        """Most recent part of the sample, which includes fresh accepts."""
        if self.sample_size <= 0:
            return []
        return existing_sample[-self.sample_size :]

    async def evaluate_candidate(
        self,
        content: str,
        category: str,
        existing_sample: list[str],
        user_id: str,
    ) -> FilterDecision:
        """Decide whether one candidate should be saved.

        Never raises for evaluator failures; those produce a save decision
        whose reason states that filtering failed.

        Args:
            content: Candidate text.
            category: Candidate category.
            existing_sample: Contents of memories already stored for the user.
            user_id: Owning user, for logging.

        Returns:
            FilterDecision for the candidate.
        """
        prompt = build_filter_prompt(content, category, self._visible_sample(existing_sample))

        try:
            payload = await asyncio.wait_for(self._evaluator.evaluate(prompt), timeout=self.timeout)
            decision = parse_decision(payload)
        except MalformedResponseError as e:
            logger.warning("Memory filter could not parse answer for user=%s: %s", user_id, e)
            return FilterDecision(should_save=True, reason=REASON_PARSE_FAILED)
        except (asyncio.TimeoutError, GatewayTimeoutError):
            logger.warning("Memory filter timed out for user=%s after %.1fs", user_id, self.timeout)
            return FilterDecision(should_save=True, reason=REASON_TIMEOUT)
        except UpstreamUnavailableError as e:
            logger.error("Memory filter error for user=%s: %s", user_id, e)
            return FilterDecision(should_save=True, reason=REASON_ERROR)
        except Exception as e:
            logger.exception("Unexpected memory filter error for user=%s: %s", user_id, e)
            return FilterDecision(should_save=True, reason=REASON_ERROR)

        logger.info(
            "Memory filter %s for user=%s: %r - %s",
            "SAVE" if decision.should_save else "SKIP",
            user_id,
            content[:50],
            decision.reason,
        )
        return decision

    async def batch_filter(
        self,
        candidates: list[MemoryCandidate],
        existing_sample: list[str],
        user_id: str,
    ) -> list[tuple[MemoryCandidate, FilterDecision]]:
        """Filter candidates in fixed-width concurrent batches.

        Candidates of one batch are judged concurrently against the same
        snapshot of the sample. Contents accepted in batch N are added to the
        sample before batch N+1 is judged, so later batches see them.

        Args:
            candidates: Candidates from one conversation.
            existing_sample: Contents of stored memories. Not mutated.
            user_id: Owning user.

        Returns:
            (candidate, decision) pairs in input order.
        """
        sample = list(existing_sample)
        results: list[tuple[MemoryCandidate, FilterDecision]] = []

        for start in range(0, len(candidates), self.batch_size):
            batch = candidates[start : start + self.batch_size]
            snapshot = list(sample)
            decisions = await asyncio.gather(
                *(
                    self.evaluate_candidate(c.content, c.category, snapshot, user_id)
                    for c in batch
                )
            )
            batch_results = list(zip(batch, decisions))
            results.extend(batch_results)
            sample.extend(c.content for c, d in batch_results if d.should_save)

        saved = sum(1 for _, d in results if d.should_save)
        skipped = len(results) - saved
        reduction = round(skipped / len(results) * 100) if results else 0
        logger.info(
            "Memory filter batch for user=%s: %d saved, %d skipped (%d%% reduction)",
            user_id,
            saved,
            skipped,
            reduction,
        )
        return results
