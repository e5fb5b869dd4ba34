# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for memory strength scoring and decay."""

from datetime import timedelta

import pytest

from tutor_memory.core.config import MemorySettings
from tutor_memory.core.memory.scoring import (
    NEUTRAL_AROUSAL,
    DecayPolicy,
    StrengthWeights,
    apply_decay,
    calculate_memory_strength,
    citation_score,
    combine_arousal_scores,
)


@pytest.mark.unit
class TestCombineArousal:
    """Test cases for combining biometric and text arousal."""

    def test_neutral_when_nothing_known(self) -> None:
        """Test that missing signals give the neutral arousal."""
        assert combine_arousal_scores(None, None) == NEUTRAL_AROUSAL

    def test_single_signal_used_as_is(self) -> None:
        """Test that one known signal is returned unchanged."""
        assert combine_arousal_scores(0.9, None) == 0.9
        assert combine_arousal_scores(None, 0.2) == 0.2

    def test_biometric_dominates(self) -> None:
        """Test weighting when both signals are known."""
        combined = combine_arousal_scores(1.0, 0.0, biometric_weight=0.7)

        assert combined == pytest.approx(0.7)

    def test_result_is_clamped(self) -> None:
        """Test that out-of-range inputs are clamped."""
        assert combine_arousal_scores(1.5, None) == 1.0
        assert combine_arousal_scores(None, -0.4) == 0.0


@pytest.mark.unit
class TestCalculateMemoryStrength:
    """Test cases for calculate_memory_strength."""

    def test_fresh_memory(self) -> None:
        """Test strength of a never-cited memory with neutral arousal."""
        strength = calculate_memory_strength(times_cited=0, llm_importance=0.8)

        assert strength == pytest.approx(0.39)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {},
            {"times_cited": 10_000, "biometric_arousal": 1.0, "llm_importance": 1.0},
            {"times_retrieved_unused": 10_000, "llm_importance": 0.0, "text_arousal": 0.0},
            {"biometric_arousal": 0.3, "text_arousal": 0.9, "times_cited": 3},
        ],
    )
    def test_bounded(self, kwargs: dict) -> None:
        """Test that strength always lies in [0, 1]."""
        assert 0.0 <= calculate_memory_strength(**kwargs) <= 1.0

    def test_non_decreasing_in_citations(self) -> None:
        """Test that more citations never weaken a memory."""
        strengths = [calculate_memory_strength(times_cited=n) for n in range(0, 30)]

        assert strengths == sorted(strengths)
        assert strengths[-1] > strengths[0]

    def test_non_increasing_in_unused(self) -> None:
        """Test that unused retrievals never strengthen a memory."""
        strengths = [calculate_memory_strength(times_retrieved_unused=n) for n in range(0, 40)]

        assert strengths == sorted(strengths, reverse=True)
        assert strengths[-1] < strengths[0]

    def test_weights_from_settings(self) -> None:
        """Test that tuned settings change the formula."""
        settings = MemorySettings(weight_citations=0.0, weight_arousal=0.0, weight_importance=1.0)
        weights = StrengthWeights.from_settings(settings)

        assert calculate_memory_strength(llm_importance=0.6, weights=weights) == pytest.approx(0.6)

    def test_citation_score_saturates(self) -> None:
        """Test that the citation term reaches 1 at saturation."""
        assert citation_score(0, 10) == 0.0
        assert citation_score(10, 10) == pytest.approx(1.0)
        assert citation_score(500, 10) == 1.0


@pytest.mark.unit
class TestApplyDecay:
    """Test cases for apply_decay."""

    def test_no_elapsed_time_keeps_strength(self) -> None:
        """Test that a memory touched just now keeps its strength."""
        assert apply_decay(0.8, timedelta(0)) == pytest.approx(0.8)

    def test_never_exceeds_strength(self) -> None:
        """Test that decay never raises importance."""
        for days in (0, 1, 7, 30, 365, 5000):
            assert apply_decay(0.6, timedelta(days=days)) <= 0.6

    def test_non_increasing_in_time(self) -> None:
        """Test that older memories are never more important."""
        values = [apply_decay(0.9, timedelta(days=d)) for d in range(0, 400, 10)]

        assert values == sorted(values, reverse=True)

    def test_approaches_floor(self) -> None:
        """Test that importance never falls below the floor."""
        policy = DecayPolicy(floor=0.05, stability_days=30)

        value = apply_decay(0.9, timedelta(days=10_000), policy=policy)

        assert value == pytest.approx(0.05, abs=1e-6)
        assert value >= 0.05

    def test_citations_slow_decay(self) -> None:
        """Test that frequently cited memories decay slower."""
        elapsed = timedelta(days=60)

        assert apply_decay(0.9, elapsed, times_cited=20) > apply_decay(0.9, elapsed, times_cited=0)

    def test_strength_below_floor_unchanged(self) -> None:
        """Test that weak memories are left alone."""
        assert apply_decay(0.01, timedelta(days=100)) == 0.01
