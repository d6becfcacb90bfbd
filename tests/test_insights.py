# ABOUTME: Tests the four insight detectors and the session-count gate.
# ABOUTME: Feeds synthetic learning curves and session engagement histories.

from src.common.config import CollectorConfig
from src.common.schemas import PatternTag
from src.learning.insights import (
    detect_difficulty_trend,
    detect_engagement_drop,
    detect_learning_plateau,
    detect_pattern_preference,
    generate_insights,
)
from src.learning.records import (
    GameSessionData,
    InsightType,
    LearningCurvePoint,
    PlayerLearningProfile,
    SessionMetrics,
)

NOW = 1_700_000_000.0


def _profile(curve=(), strong=(), sessions=10):
    return PlayerLearningProfile(
        player_id="p1",
        sessions_completed=sessions,
        strong_pattern_types=tuple(strong),
        learning_curve=tuple(LearningCurvePoint(i + 1, v, float(i)) for i, v in enumerate(curve)),
    )


def _sessions(engagements):
    return [
        GameSessionData(
            session_id=f"s{i}",
            player_id="p1",
            start_timestamp=float(i),
            end_timestamp=float(i) + 1,
            metrics=SessionMetrics(engagement_level=e),
        )
        for i, e in enumerate(engagements)
    ]


def test_improving_and_declining_trends():
    improving = detect_difficulty_trend(_profile([0.1, 0.3, 0.5, 0.7, 0.9]), NOW)
    assert improving.insight_type == InsightType.DIFFICULTY_TREND
    assert improving.confidence == 0.8
    assert improving.generated_at == NOW

    declining = detect_difficulty_trend(_profile([0.9, 0.7, 0.5, 0.3, 0.1]), NOW)
    assert declining.confidence == 0.7

    assert detect_difficulty_trend(_profile([0.5, 0.6, 0.5, 0.6, 0.5]), NOW) is None
    assert detect_difficulty_trend(_profile([0.1, 0.9]), NOW) is None


def test_pattern_preference_requires_strong_tags():
    assert detect_pattern_preference(_profile(), NOW) is None
    insight = detect_pattern_preference(_profile(strong=[PatternTag.LINE]), NOW)
    assert insight.confidence == 0.9
    assert insight.supporting_data["strengths"] == ["line"]


def test_plateau_needs_ten_flat_samples():
    assert detect_learning_plateau(_profile([0.5] * 9), NOW) is None
    plateau = detect_learning_plateau(_profile([0.5] * 10), NOW)
    assert plateau.insight_type == InsightType.LEARNING_PLATEAU
    assert detect_learning_plateau(_profile([0.0, 1.0] * 5), NOW) is None


def test_engagement_drop_uses_last_three_sessions():
    drop = detect_engagement_drop(_sessions([0.95, 0.9, 0.6, 0.3]), NOW)
    assert drop.insight_type == InsightType.ENGAGEMENT_DROP
    assert drop.confidence == 0.8
    assert detect_engagement_drop(_sessions([0.9, 0.3]), NOW) is None
    assert detect_engagement_drop(_sessions([0.6, 0.55, 0.5]), NOW) is None


def test_gate_counts_completed_sessions():
    config = CollectorConfig(insight_generation_threshold=5)
    rich_history = _profile([0.5] * 10, strong=[PatternTag.CLUSTER], sessions=4)
    assert generate_insights(rich_history, [], config, NOW) == []
    assert generate_insights(None, [], config, NOW) == []

    ready = _profile([0.5] * 10, strong=[PatternTag.CLUSTER], sessions=5)
    kinds = [i.insight_type for i in generate_insights(ready, _sessions([0.9, 0.6, 0.3]), config, NOW)]
    assert kinds == [InsightType.PATTERN_PREFERENCE, InsightType.LEARNING_PLATEAU, InsightType.ENGAGEMENT_DROP]
