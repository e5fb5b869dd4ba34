# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory strength scoring and decay.

Pure functions, no I/O. Strength combines three signals:
- how often the memory was cited (log scale, saturating)
- how emotionally charged the moment was (voice prosody and/or text)
- how important the evaluator judged the topic

and is reduced slightly every time a memory was served but not used.

Importance decays lazily at read time along a forgetting curve that
approaches a floor instead of zero. Frequently cited memories decay slower.

Example:
    >>> weights = StrengthWeights()
    >>> calculate_memory_strength(times_cited=0, llm_importance=0.8, weights=weights)
    0.39
"""

import math
from dataclasses import dataclass
from datetime import timedelta

from tutor_memory.core.config.settings import MemorySettings

NEUTRAL_AROUSAL = 0.5


@dataclass(frozen=True)
class StrengthWeights:
    """Weights of the strength formula.

    Attributes:
        citations: Weight of normalized citation frequency.
        arousal: Weight of combined emotional arousal.
        importance: Weight of evaluator importance.
        unused_penalty: Strength removed per unused retrieval.
        citation_saturation: Citation count mapped to a full citation score.
        biometric_arousal_weight: Share of biometric arousal when both are known.
    """

    citations: float = 0.4
    arousal: float = 0.3
    importance: float = 0.3
    unused_penalty: float = 0.02
    citation_saturation: int = 10
    biometric_arousal_weight: float = 0.7

    @classmethod
    def from_settings(cls, settings: MemorySettings) -> "StrengthWeights":
        """Build weights from memory settings."""
        return cls(
            citations=settings.weight_citations,
            arousal=settings.weight_arousal,
            importance=settings.weight_importance,
            unused_penalty=settings.unused_penalty,
            citation_saturation=settings.citation_saturation,
            biometric_arousal_weight=settings.biometric_arousal_weight,
        )


@dataclass(frozen=True)
class DecayPolicy:
    """Shape of the forgetting curve.

    Attributes:
        floor: Importance the curve approaches and never crosses.
        stability_days: Time constant for a memory that was never cited.
    """

    floor: float = 0.05
    stability_days: float = 30.0

    @classmethod
    def from_settings(cls, settings: MemorySettings) -> "DecayPolicy":
        """Build the policy from memory settings."""
        return cls(floor=settings.decay_floor, stability_days=settings.decay_stability_days)


def clamp_unit(value: float) -> float:
    """Clamp a value to [0, 1]."""
    return max(0.0, min(1.0, value))


def combine_arousal_scores(
    biometric: float | None,
    text: float | None,
    biometric_weight: float = 0.7,
) -> float:
    """Combine voice-prosody and text arousal into one score.

    Biometric arousal comes from real voice data and dominates when both
    signals exist. A single known signal is used as is; with neither the
    neutral value is returned.

    Args:
        biometric: Arousal from voice prosody, if known.
        text: Arousal estimated from text, if known.
        biometric_weight: Share given to the biometric signal.

    Returns:
        Combined arousal in [0, 1].
    """
    if biometric is not None and text is not None:
        combined = biometric * biometric_weight + text * (1.0 - biometric_weight)
        return clamp_unit(combined)
    if biometric is not None:
        return clamp_unit(biometric)
    if text is not None:
        return clamp_unit(text)
    return NEUTRAL_AROUSAL


def citation_score(times_cited: int, saturation: int) -> float:
    """Normalize a citation count to [0, 1] on a log scale."""
    cited = max(0, times_cited)
    return min(1.0, math.log1p(cited) / math.log1p(max(1, saturation)))


def calculate_memory_strength(
    times_cited: int = 0,
    biometric_arousal: float | None = None,
    text_arousal: float | None = None,
    llm_importance: float = 0.5,
    times_retrieved_unused: int = 0,
    weights: StrengthWeights | None = None,
) -> float:
    """Calculate the strength of a memory.

    Args:
        times_cited: Times the memory was served in a context.
        biometric_arousal: Arousal from voice prosody, if known.
        text_arousal: Arousal estimated from text, if known.
        llm_importance: Importance assigned by the evaluator.
        times_retrieved_unused: Times the memory was served but not used.
        weights: Formula weights. Defaults to StrengthWeights().

    Returns:
        Strength in [0, 1]. Non-decreasing in times_cited and
        non-increasing in times_retrieved_unused.
    """
    w = weights or StrengthWeights()

    arousal = combine_arousal_scores(
        biometric_arousal, text_arousal, w.biometric_arousal_weight
    )
    strength = (
        w.citations * citation_score(times_cited, w.citation_saturation)
        + w.arousal * arousal
        + w.importance * clamp_unit(llm_importance)
        - w.unused_penalty * max(0, times_retrieved_unused)
    )
    return round(clamp_unit(strength), 6)


def apply_decay(
    memory_strength: float,
    elapsed: timedelta,
    times_cited: int = 0,
    policy: DecayPolicy | None = None,
) -> float:
    """Decay a strength along the forgetting curve.

    importance = floor + (strength - floor) * exp(-days / stability), where
    stability grows with the log of the citation count.

    Args:
        memory_strength: Strength at the reference time.
        elapsed: Time since the memory was last cited or updated.
        times_cited: Citation count, slows decay.
        policy: Curve shape. Defaults to DecayPolicy().

    Returns:
        Current importance. Never above memory_strength, non-increasing in
        elapsed time and never below the floor unless memory_strength is.
    """
    p = policy or DecayPolicy()

    strength = clamp_unit(memory_strength)
    if strength <= p.floor:
        return strength

    days = max(0.0, elapsed.total_seconds() / 86400.0)
    stability = p.stability_days * (1.0 + math.log1p(max(0, times_cited)))
    decayed = p.floor + (strength - p.floor) * math.exp(-days / stability)
    return min(strength, decayed)
