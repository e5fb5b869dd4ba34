# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the memory filter.

Tests:
- Decision parsing
- Fail-open behavior on timeout, errors and malformed answers
- Batch evaluation against growing samples
- Content merge rules
"""

import asyncio
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from tutor_memory.core.config import LLMSettings, MemorySettings
from tutor_memory.core.exceptions import (
    GatewayRateLimitedError,
    GatewayTimeoutError,
    MalformedResponseError,
)
from tutor_memory.core.intelligence.llm import EvaluatorGateway, LLMClient
from tutor_memory.core.memory.filter import (
    REASON_ERROR,
    REASON_PARSE_FAILED,
    REASON_TIMEOUT,
    MemoryFilter,
    build_filter_prompt,
    merge_memories,
    parse_decision,
)
from tutor_memory.models.memory import MemoryCandidate


def _evaluator(answer: dict[str, Any] | None = None, **kwargs: Any) -> AsyncMock:
    evaluator = AsyncMock()
    if answer is not None:
        evaluator.evaluate.return_value = answer
    for key, value in kwargs.items():
        setattr(evaluator.evaluate, key, value)
    return evaluator


@pytest.mark.unit
class TestParseDecision:
    """Test cases for parse_decision."""

    def test_full_answer(self) -> None:
        """Test parsing of a complete evaluator answer."""
        decision = parse_decision(
            {
                "should_save": True,
                "reason": "Lasting learning preference",
                "merge_with": None,
                "adjusted_importance": 0.8,
            }
        )

        assert decision.should_save is True
        assert decision.reason == "Lasting learning preference"
        assert decision.merge_with is None
        assert decision.adjusted_importance == 0.8

    def test_importance_is_clamped(self) -> None:
        """Test that out-of-range importance is clamped."""
        assert parse_decision({"should_save": True, "adjusted_importance": 3}).adjusted_importance == 1.0

    def test_blank_merge_target_ignored(self) -> None:
        """Test that an empty merge target means no merge."""
        assert parse_decision({"should_save": True, "merge_with": "  "}).merge_with is None

    def test_missing_should_save_is_malformed(self) -> None:
        """Test that a non-boolean should_save is rejected."""
        with pytest.raises(MalformedResponseError):
            parse_decision({"should_save": "yes"})


@pytest.mark.unit
class TestBuildFilterPrompt:
    """Test cases for build_filter_prompt."""

    def test_lists_existing_memories(self) -> None:
        """Test that existing memories are numbered in the prompt."""
        prompt = build_filter_prompt("Likes chess", "hobby", ["Plays piano", "Studies physics"])

        assert '"Likes chess"' in prompt
        assert "1. Plays piano" in prompt
        assert "2. Studies physics" in prompt

    def test_empty_sample(self) -> None:
        """Test the placeholder for a user without memories."""
        assert "None yet" in build_filter_prompt("Likes chess", "hobby", [])


@pytest.mark.unit
class TestEvaluateCandidate:
    """Test cases for MemoryFilter.evaluate_candidate."""

    @pytest.mark.asyncio
    async def test_save_decision(self, memory_settings: MemorySettings) -> None:
        """Test that the evaluator's decision is returned."""
        evaluator = _evaluator({"should_save": True, "reason": "durable", "adjusted_importance": 0.7})
        memory_filter = MemoryFilter(evaluator, memory_settings)

        decision = await memory_filter.evaluate_candidate(
            "I'm a visual learner", "personal_fact", [], "brandon"
        )

        assert decision.should_save is True
        assert decision.adjusted_importance == 0.7
        evaluator.evaluate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_timeout_saves_by_default(self, memory_settings: MemorySettings) -> None:
        """Test that a slow evaluator does not lose the memory."""

        async def slow(prompt: str) -> dict:
            await asyncio.sleep(5)
            return {"should_save": False, "reason": "late"}

        evaluator = AsyncMock()
        evaluator.evaluate = slow
        memory_filter = MemoryFilter(evaluator, memory_settings)

        decision = await memory_filter.evaluate_candidate("Likes chess", "hobby", [], "brandon")

        assert decision.should_save is True
        assert decision.reason == REASON_TIMEOUT

    @pytest.mark.asyncio
    async def test_gateway_timeout_saves_by_default(self, memory_settings: MemorySettings) -> None:
        """Test that a gateway timeout error fails open."""
        evaluator = _evaluator(side_effect=GatewayTimeoutError("timed out"))
        memory_filter = MemoryFilter(evaluator, memory_settings)

        decision = await memory_filter.evaluate_candidate("Likes chess", "hobby", [], "brandon")

        assert decision.should_save is True
        assert decision.reason == REASON_TIMEOUT

    @pytest.mark.asyncio
    async def test_rate_limit_saves_by_default(self, memory_settings: MemorySettings) -> None:
        """Test that a rate-limited evaluator fails open."""
        evaluator = _evaluator(side_effect=GatewayRateLimitedError("slow down"))
        memory_filter = MemoryFilter(evaluator, memory_settings)

        decision = await memory_filter.evaluate_candidate("Likes chess", "hobby", [], "brandon")

        assert decision.should_save is True
        assert decision.reason == REASON_ERROR

    @pytest.mark.asyncio
    async def test_malformed_answer_saves_by_default(self, memory_settings: MemorySettings) -> None:
        """Test that an unusable answer fails open."""
        evaluator = _evaluator({"verdict": "keep"})
        memory_filter = MemoryFilter(evaluator, memory_settings)

        decision = await memory_filter.evaluate_candidate("Likes chess", "hobby", [], "brandon")

        assert decision.should_save is True
        assert decision.reason == REASON_PARSE_FAILED

    @pytest.mark.asyncio
    async def test_untyped_evaluator_error_saves_by_default(self, memory_settings: MemorySettings) -> None:
        """Test that an evaluator raising an unexpected exception still fails open."""
        evaluator = _evaluator(side_effect=RuntimeError("provider SDK blew up"))
        memory_filter = MemoryFilter(evaluator, memory_settings)

        decision = await memory_filter.evaluate_candidate("Likes chess", "hobby", [], "brandon")

        assert decision.should_save is True
        assert decision.reason == REASON_ERROR

    @pytest.mark.asyncio
    async def test_empty_completion_saves_by_default(self, memory_settings: MemorySettings) -> None:
        """Test that a provider answer without choices fails open through the real gateway."""
        client = LLMClient(model="test-model", llm_settings=LLMSettings())
        memory_filter = MemoryFilter(EvaluatorGateway(client, timeout=1.0), memory_settings)

        with patch(
            "tutor_memory.core.intelligence.llm.client.acompletion",
            new=AsyncMock(return_value=SimpleNamespace(choices=[], usage=None)),
        ):
            decision = await memory_filter.evaluate_candidate("Likes chess", "hobby", [], "brandon")

        assert decision.should_save is True
        assert decision.reason == REASON_PARSE_FAILED

    @pytest.mark.asyncio
    async def test_only_recent_sample_shown(self, memory_settings: MemorySettings) -> None:
        """Test that the prompt holds at most sample_size existing memories."""
        evaluator = _evaluator({"should_save": False, "reason": "dup"})
        memory_filter = MemoryFilter(evaluator, memory_settings)

        await memory_filter.evaluate_candidate(
            "Likes chess", "hobby", ["m1", "m2", "m3", "m4", "m5"], "brandon"
        )

        prompt = evaluator.evaluate.await_args.args[0]
        assert "m1" not in prompt
        assert "m2" not in prompt
        assert "1. m3" in prompt
        assert "3. m5" in prompt


@pytest.mark.unit
class TestBatchFilter:
    """Test cases for MemoryFilter.batch_filter."""

    @pytest.mark.asyncio
    async def test_results_in_input_order(self, memory_settings: MemorySettings) -> None:
        """Test that decisions pair with their candidates."""

        async def judge(prompt: str) -> dict:
            return {"should_save": "chess" in prompt, "reason": "r"}

        evaluator = AsyncMock()
        evaluator.evaluate = AsyncMock(side_effect=judge)
        memory_filter = MemoryFilter(evaluator, memory_settings)
        candidates = [
            MemoryCandidate(content="Likes chess"),
            MemoryCandidate(content="Said thanks"),
            MemoryCandidate(content="Plays chess on weekends"),
        ]

        results = await memory_filter.batch_filter(candidates, [], "brandon")

        assert [c.content for c, _ in results] == [c.content for c in candidates]
        assert [d.should_save for _, d in results] == [True, False, True]

    @pytest.mark.asyncio
    async def test_later_batches_see_accepted_candidates(self, memory_settings: MemorySettings) -> None:
        """Test that batch N+1 is judged against contents accepted in batch N."""
        evaluator = _evaluator({"should_save": True, "reason": "new"})
        memory_filter = MemoryFilter(evaluator, memory_settings)
        candidates = [
            MemoryCandidate(content="Likes chess"),
            MemoryCandidate(content="Studies physics"),
            MemoryCandidate(content="Plays piano"),
        ]
        existing: list[str] = []

        await memory_filter.batch_filter(candidates, existing, "brandon")

        prompts = [call.args[0] for call in evaluator.evaluate.await_args_list]
        # First batch (size 2) sees nothing, the third candidate sees both
        assert "None yet" in prompts[0]
        assert "None yet" in prompts[1]
        assert "Likes chess" in prompts[2] and "Studies physics" in prompts[2]
        assert existing == []

    @pytest.mark.asyncio
    async def test_batch_members_share_snapshot(self, memory_settings: MemorySettings) -> None:
        """Test that candidates of one batch do not see each other."""
        evaluator = _evaluator({"should_save": True, "reason": "new"})
        memory_filter = MemoryFilter(evaluator, memory_settings)
        candidates = [MemoryCandidate(content="Likes chess"), MemoryCandidate(content="Studies physics")]

        await memory_filter.batch_filter(candidates, ["Plays piano"], "brandon")

        second_prompt = evaluator.evaluate.await_args_list[1].args[0]
        assert "Plays piano" in second_prompt
        assert "Likes chess" not in second_prompt.split("EXISTING MEMORIES")[1]

    @pytest.mark.asyncio
    async def test_empty_candidates(self, memory_settings: MemorySettings) -> None:
        """Test that no candidates means no evaluator calls."""
        evaluator = _evaluator({"should_save": True, "reason": "new"})
        memory_filter = MemoryFilter(evaluator, memory_settings)

        assert await memory_filter.batch_filter([], [], "brandon") == []
        evaluator.evaluate.assert_not_awaited()


@pytest.mark.unit
class TestMergeMemories:
    """Test cases for merge_memories."""

    def test_incoming_subset_keeps_existing(self) -> None:
        """Test that an already-known detail leaves the memory unchanged."""
        existing = "I'm a visual learner who loves diagrams"

        assert merge_memories(existing, "visual learner") == existing

    def test_incoming_superset_replaces(self) -> None:
        """Test that a more detailed version replaces the old one."""
        incoming = "I'm a visual learner who loves diagrams"

        assert merge_memories("I'm a Visual Learner", incoming) == incoming

    def test_unrelated_contents_concatenated(self) -> None:
        """Test that distinct details are both kept."""
        merged = merge_memories("Likes chess", "Plays on weekends")

        assert merged == "Likes chess. Additionally: Plays on weekends"
