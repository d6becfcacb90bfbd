# ABOUTME: Heuristic detectors that turn learning history into advisory insights.
# ABOUTME: Covers difficulty trends, tag preferences, learning plateaus, and engagement drops.

from __future__ import annotations

import time
from typing import List, Optional, Sequence

from src.common.config import CollectorConfig

from .metrics import linear_trend, variance
from .records import GameSessionData, InsightType, LearningInsight, PlayerLearningProfile


class InsightThresholds:
    TREND_WINDOW = 5
    TREND_SLOPE = 0.1
    PLATEAU_WINDOW = 10
    PLATEAU_VARIANCE = 0.05
    ENGAGEMENT_WINDOW = 3
    ENGAGEMENT_SLOPE = -0.2


def detect_difficulty_trend(profile: PlayerLearningProfile, now: float) -> Optional[LearningInsight]:
    if len(profile.learning_curve) < InsightThresholds.TREND_WINDOW:
        return None

    recent = profile.curve_values(InsightThresholds.TREND_WINDOW)
    trend = linear_trend(recent)
    if trend > InsightThresholds.TREND_SLOPE:
        confidence = 0.8
        description = "Player performance is improving steadily."
        action = "Raise difficulty gradually to keep the challenge engaging."
    elif trend < -InsightThresholds.TREND_SLOPE:
        confidence = 0.7
        description = "Player performance is declining."
        action = "Lower difficulty and increase support systems."
    else:
        return None

    return LearningInsight(
        insight_type=InsightType.DIFFICULTY_TREND,
        confidence=confidence,
        description=description,
        recommended_action=action,
        supporting_data={"trend": round(trend, 4), "recent_performance": recent},
        generated_at=now,
    )


def detect_pattern_preference(profile: PlayerLearningProfile, now: float) -> Optional[LearningInsight]:
    if not profile.strong_pattern_types:
        return None

    strengths = [t.value for t in profile.strong_pattern_types]
    return LearningInsight(
        insight_type=InsightType.PATTERN_PREFERENCE,
        confidence=0.9,
        description=f"Player is strong with {', '.join(strengths)} patterns.",
        recommended_action="Build new challenges on top of the player's strong patterns.",
        supporting_data={
            "strengths": strengths,
            "weaknesses": [t.value for t in profile.weak_pattern_types],
        },
        generated_at=now,
    )


def detect_learning_plateau(profile: PlayerLearningProfile, now: float) -> Optional[LearningInsight]:
    if len(profile.learning_curve) < InsightThresholds.PLATEAU_WINDOW:
        return None

    recent = profile.curve_values(InsightThresholds.PLATEAU_WINDOW)
    spread = variance(recent)
    if spread >= InsightThresholds.PLATEAU_VARIANCE:
        return None

    return LearningInsight(
        insight_type=InsightType.LEARNING_PLATEAU,
        confidence=0.7,
        description="Player learning has plateaued.",
        recommended_action="Introduce a new pattern type or challenge.",
        supporting_data={"variance": round(spread, 4), "plateau_period": len(recent)},
        generated_at=now,
    )


def detect_engagement_drop(sessions: Sequence[GameSessionData], now: float) -> Optional[LearningInsight]:
    recent = list(sessions)[-InsightThresholds.ENGAGEMENT_WINDOW:]
    if len(recent) < InsightThresholds.ENGAGEMENT_WINDOW:
        return None

    engagement = [s.metrics.engagement_level for s in recent]
    trend = linear_trend(engagement)
    if trend >= InsightThresholds.ENGAGEMENT_SLOPE:
        return None

    return LearningInsight(
        insight_type=InsightType.ENGAGEMENT_DROP,
        confidence=0.8,
        description="Player engagement is dropping.",
        recommended_action="Refresh the experience with new elements or suggest a break.",
        supporting_data={"trend": round(trend, 4), "recent_engagement": engagement},
        generated_at=now,
    )


def generate_insights(
    profile: Optional[PlayerLearningProfile],
    sessions: Sequence[GameSessionData],
    config: CollectorConfig,
    now: Optional[float] = None,
) -> List[LearningInsight]:
    """Run every detector once enough sessions exist; too little history yields no insights."""
    if profile is None or profile.sessions_completed < config.insight_generation_threshold:
        return []

    now = time.time() if now is None else now
    insights: List[LearningInsight] = []
    for detector in (detect_difficulty_trend, detect_pattern_preference, detect_learning_plateau):
        insight = detector(profile, now)
        if insight:
            insights.append(insight)

    engagement = detect_engagement_drop(sessions, now)
    if engagement:
        insights.append(engagement)
    return insights
