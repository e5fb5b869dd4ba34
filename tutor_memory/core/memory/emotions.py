# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Voice prosody emotion processing for memory scoring.

Converts per-emotion prosody scores (emotion name -> 0..1) from a voice
session into the arousal signal used by the strength formula, plus a
valence, a dominant emotion and a high-priority flag for moments that
should always be remembered.
"""

from dataclasses import dataclass, field

HIGH_AROUSAL_EMOTIONS = frozenset(
    {
        "Excitement",
        "Determination",
        "Anger",
        "Fear",
        "Distress",
        "Pain",
        "Awe",
        "Ecstasy",
        "Triumph",
    }
)

MEDIUM_AROUSAL_EMOTIONS = frozenset(
    {
        "Interest",
        "Concentration",
        "Curiosity",
        "Anxiety",
        "Surprise",
        "Contemplation",
        "Realization",
    }
)

LOW_AROUSAL_EMOTIONS = frozenset({"Calmness", "Boredom", "Tiredness", "Confusion", "Doubt"})

POSITIVE_EMOTIONS = frozenset(
    {
        "Joy",
        "Excitement",
        "Interest",
        "Pride",
        "Love",
        "Determination",
        "Awe",
        "Contentment",
        "Satisfaction",
        "Relief",
        "Triumph",
        "Admiration",
    }
)

NEGATIVE_EMOTIONS = frozenset(
    {
        "Sadness",
        "Fear",
        "Anger",
        "Distress",
        "Pain",
        "Anxiety",
        "Frustration",
        "Disappointment",
        "Guilt",
        "Shame",
        "Contempt",
        "Disgust",
    }
)

# Contribution of each arousal family to the arousal sum
HIGH_AROUSAL_WEIGHT = 1.0
MEDIUM_AROUSAL_WEIGHT = 0.6
LOW_AROUSAL_WEIGHT = -0.3

BASELINE_AROUSAL = 0.5
HIGH_PRIORITY_AROUSAL = 0.7

MEMORY_EMOTIONS: dict[str, str] = {
    "Excitement": "excitement",
    "Joy": "joy",
    "Triumph": "pride",
    "Ecstasy": "joy",
    "Contentment": "warmth",
    "Love": "love",
    "Admiration": "warmth",
    "Pride": "pride",
    "Interest": "curiosity",
    "Curiosity": "curiosity",
    "Concentration": "focus",
    "Contemplation": "curiosity",
    "Realization": "insight",
    "Awe": "awe",
    "Determination": "determination",
    "Anxiety": "anxiety",
    "Fear": "fear",
    "Sadness": "sadness",
    "Anger": "frustration",
    "Frustration": "frustration",
    "Pain": "pain",
    "Distress": "distress",
    "Disappointment": "disappointment",
    "Calmness": "neutral",
    "Boredom": "neutral",
    "Confusion": "confusion",
}


@dataclass
class ProcessedEmotions:
    """Memory-relevant summary of prosody scores.

    Attributes:
        arousal: Emotional intensity, 0..1.
        valence: Emotional direction, -1 (negative) to 1 (positive).
        dominant_emotion: Strongest emotion, or "neutral".
        dominant_score: Score of the dominant emotion.
        is_high_priority: Whether the moment should always be remembered.
        priority_reason: Which trigger raised the priority.
        top_emotions: Five strongest emotions, strongest first.
    """

    arousal: float = BASELINE_AROUSAL
    valence: float = 0.0
    dominant_emotion: str = "neutral"
    dominant_score: float = 0.0
    is_high_priority: bool = False
    priority_reason: str = "no_emotion_data"
    top_emotions: list[tuple[str, float]] = field(default_factory=list)


def process_prosody_emotions(scores: dict[str, float] | None) -> ProcessedEmotions:
    """Convert prosody emotion scores into memory metrics.

    Args:
        scores: Emotion name to score in [0, 1].

    Returns:
        ProcessedEmotions. Empty input yields the neutral baseline.
    """
    if not scores:
        return ProcessedEmotions()

    ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    dominant_emotion, dominant_score = ranked[0]

    arousal = BASELINE_AROUSAL
    matched = 0
    for emotion, score in ranked:
        if emotion in HIGH_AROUSAL_EMOTIONS:
            arousal += score * HIGH_AROUSAL_WEIGHT
        elif emotion in MEDIUM_AROUSAL_EMOTIONS:
            arousal += score * MEDIUM_AROUSAL_WEIGHT
        elif emotion in LOW_AROUSAL_EMOTIONS:
            arousal += score * LOW_AROUSAL_WEIGHT
        else:
            continue
        matched += 1

    if matched:
        arousal = max(0.0, min(1.0, arousal / matched))

    positive = sum(score for emotion, score in ranked if emotion in POSITIVE_EMOTIONS)
    negative = sum(score for emotion, score in ranked if emotion in NEGATIVE_EMOTIONS)
    total = positive + negative
    valence = (positive - negative) / total if total > 0 else 0.0

    is_high_priority = False
    priority_reason = "normal"

    if arousal > HIGH_PRIORITY_AROUSAL:
        is_high_priority = True
        priority_reason = f"high_arousal_{arousal:.2f}"

    if negative > 0.6 and dominant_score > 0.4:
        is_high_priority = True
        priority_reason = f"strong_negative_{dominant_emotion}"

    if scores.get("Determination", 0.0) > 0.3 and scores.get("Excitement", 0.0) > 0.3:
        is_high_priority = True
        priority_reason = "breakthrough_moment"

    if scores.get("Pain", 0.0) > 0.4 or scores.get("Distress", 0.0) > 0.5:
        is_high_priority = True
        priority_reason = "emotional_struggle"

    return ProcessedEmotions(
        arousal=arousal,
        valence=valence,
        dominant_emotion=dominant_emotion,
        dominant_score=dominant_score,
        is_high_priority=is_high_priority,
        priority_reason=priority_reason,
        top_emotions=ranked[:5],
    )


def average_emotion_history(history: list[dict[str, float]]) -> ProcessedEmotions:
    """Average a sequence of prosody samples, then process the mean.

    Used at the end of a voice session to get its overall emotional tone.
    """
    if not history:
        return process_prosody_emotions({})

    combined: dict[str, float] = {}
    for sample in history:
        for emotion, score in sample.items():
            combined[emotion] = combined.get(emotion, 0.0) + score

    return process_prosody_emotions(
        {emotion: total / len(history) for emotion, total in combined.items()}
    )


def map_to_memory_emotion(emotion: str) -> str:
    """Map a prosody emotion name to the stored dominant_emotion label."""
    return MEMORY_EMOTIONS.get(emotion, "neutral")
