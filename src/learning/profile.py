# ABOUTME: Pure functions that fold a finalized session into a player's learning profile.
# ABOUTME: Derives learning style, tag strengths, recommendation knobs, and per-primitive experience.

from __future__ import annotations

from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from src.common.config import CollectorConfig, GenerationConfig
from src.common.schemas import MasteryLevel, PatternExperience, PatternTag, PlayerPatternData

from .metrics import tag_success_rates
from .records import (
    DEFAULT_PREFERRED_TAGS,
    DifficultyProgression,
    GameSessionData,
    LearningCurvePoint,
    LearningStyle,
    PatternPerformanceData,
    PlayerLearningProfile,
    RecommendedSettings,
)

STRONG_TAG_RATE = 0.8
WEAK_TAG_RATE = 0.5

ADAPTABILITY_MEMORY = 0.8
LEARNING_RATE_MEMORY = 0.8
COMPLEXITY_STEP_UP = 0.5
COMPLEXITY_STEP_DOWN = 0.25
COMPLEXITY_FLOOR = 1.0


def classify_learning_style(session: GameSessionData) -> LearningStyle:
    metrics = session.metrics
    if metrics.hints_usage_rate > 2:
        return LearningStyle.VISUAL
    if metrics.mistake_rate < 1 and metrics.average_completion_time > 60:
        return LearningStyle.SYSTEMATIC
    if metrics.average_completion_time < 45 and metrics.hints_usage_rate < 1:
        return LearningStyle.INTUITIVE
    return LearningStyle.TRIAL_ERROR


def _success_rate(rows: Sequence[PatternPerformanceData]) -> float:
    if not rows:
        return 0.0
    return float(np.mean([r.player_success for r in rows]))


def classify_difficulty_preference(session: GameSessionData) -> DifficultyProgression:
    rows = session.pattern_performances
    if not rows:
        return DifficultyProgression.GRADUAL

    easy = _success_rate([r for r in rows if r.difficulty_level < 3])
    hard = _success_rate([r for r in rows if r.difficulty_level >= 6])
    if hard > 0.7:
        return DifficultyProgression.CHALLENGING
    if abs(easy - hard) < 0.2:
        return DifficultyProgression.VARIED
    return DifficultyProgression.GRADUAL


def split_tag_strengths(
    rows: Sequence[PatternPerformanceData],
) -> Tuple[Tuple[PatternTag, ...], Tuple[PatternTag, ...]]:
    strong: List[PatternTag] = []
    weak: List[PatternTag] = []
    for tag, rate in tag_success_rates(rows):
        if rate >= STRONG_TAG_RATE:
            strong.append(tag)
        elif rate < WEAK_TAG_RATE:
            weak.append(tag)
    return tuple(strong), tuple(weak)


def nudge_recommendations(
    settings: RecommendedSettings,
    session: GameSessionData,
    strong_tags: Sequence[PatternTag],
    complexity_limit: float,
) -> RecommendedSettings:
    """Move each knob by at most one fixed step; knobs never jump."""
    metrics = session.metrics

    multiplier = settings.difficulty_multiplier
    if metrics.engagement_level > 0.8:
        multiplier = min(1.2, multiplier + 0.1)
    elif metrics.engagement_level < 0.4:
        multiplier = max(0.8, multiplier - 0.1)

    hint_frequency = settings.hint_frequency
    if metrics.hints_usage_rate > 3:
        hint_frequency = max(1, hint_frequency - 1)
    elif metrics.hints_usage_rate < 1:
        hint_frequency = min(5, hint_frequency + 1)

    return RecommendedSettings(
        difficulty_multiplier=round(multiplier, 2),
        hint_frequency=hint_frequency,
        pattern_complexity_limit=complexity_limit,
        preferred_pattern_tags=tuple(strong_tags) or DEFAULT_PREFERRED_TAGS,
    )


def derive_mastery(encounters: int, successes: int) -> MasteryLevel:
    if successes >= 10:
        return MasteryLevel.MASTER
    if encounters >= 4:
        return MasteryLevel.COMPETENT
    if encounters >= 2:
        return MasteryLevel.LEARNING
    return MasteryLevel.NOVICE


def _advance_mastery(current: MasteryLevel, derived: MasteryLevel) -> MasteryLevel:
    return derived if derived.rank > current.rank else current


def update_experience(
    experience: Optional[PatternExperience],
    pattern_id: str,
    rows: Sequence[PatternPerformanceData],
    progression_limit: int,
) -> PatternExperience:
    previous = experience or PatternExperience(pattern_id=pattern_id)
    encounters = previous.encounter_count + len(rows)
    successes = previous.success_count + sum(1 for r in rows if r.player_success)
    total_time = previous.average_time_to_solve * previous.encounter_count + sum(r.completion_time for r in rows)
    progression = (previous.learning_progression + tuple(r.learning_curve for r in rows))[-progression_limit:]

    return PatternExperience(
        pattern_id=pattern_id,
        encounter_count=encounters,
        success_count=successes,
        success_rate=successes / encounters if encounters else 0.0,
        average_time_to_solve=total_time / encounters if encounters else 0.0,
        learning_progression=progression,
        last_encountered=max([previous.last_encountered] + [r.timestamp for r in rows]),
        mastery_level=_advance_mastery(previous.mastery_level, derive_mastery(encounters, successes)),
    )


def _next_complexity_ceiling(
    current: float,
    rows: Sequence[PatternPerformanceData],
    complexity_limit: float,
) -> float:
    rate = _success_rate(rows)
    ceiling = current
    if rate >= 0.7:
        cleared = [r.pattern_complexity for r in rows if r.player_success]
        hardest = max(cleared) if cleared else current
        if hardest > current:
            ceiling = current + min(COMPLEXITY_STEP_UP, hardest - current)
    elif rate < 0.4:
        ceiling = current - COMPLEXITY_STEP_DOWN
    return float(min(max(ceiling, COMPLEXITY_FLOOR), complexity_limit))


def update_pattern_data(
    data: PlayerPatternData,
    rows: Sequence[PatternPerformanceData],
    preferred_tags: Sequence[PatternTag],
    complexity_limit: float,
    progression_limit: int,
) -> PlayerPatternData:
    """Return a new PlayerPatternData with this session's performance rows folded in."""
    if not rows:
        return data

    grouped: Dict[str, List[PatternPerformanceData]] = OrderedDict()
    for row in rows:
        grouped.setdefault(row.pattern_id, []).append(row)

    seen = dict(data.seen_patterns)
    for pattern_id, pattern_rows in grouped.items():
        seen[pattern_id] = update_experience(seen.get(pattern_id), pattern_id, pattern_rows, progression_limit)

    session_adaptation = float(np.mean([r.adaptation_rate for r in rows]))
    adaptability = ADAPTABILITY_MEMORY * data.adaptability_score + (1 - ADAPTABILITY_MEMORY) * session_adaptation

    session_learning = float(np.mean([r.learning_curve for r in rows]))
    if data.seen_patterns:
        learning_rate = LEARNING_RATE_MEMORY * data.average_learning_rate + (1 - LEARNING_RATE_MEMORY) * session_learning
    else:
        learning_rate = session_learning

    return PlayerPatternData(
        seen_patterns=seen,
        adaptability_score=float(np.clip(adaptability, 0.0, 1.0)),
        max_handled_complexity=_next_complexity_ceiling(data.max_handled_complexity, rows, complexity_limit),
        preferred_tags=tuple(preferred_tags),
        average_learning_rate=learning_rate,
    )


def _append_curve(
    curve: Tuple[LearningCurvePoint, ...],
    session: GameSessionData,
    limit: int,
) -> Tuple[LearningCurvePoint, ...]:
    points = list(curve)
    for result in session.stage_results:
        points.append(LearningCurvePoint(result.stage, 1.0 if result.success else 0.0, result.timestamp))
    if session.pattern_performances:
        stages = session.stages_played
        mean_stage = int(round(float(np.mean(stages)))) if stages else 0
        points.append(LearningCurvePoint(mean_stage, session.metrics.engagement_level, session.end_timestamp))
    return tuple(points[-limit:])


def update_learning_profile(
    profile: Optional[PlayerLearningProfile],
    session: GameSessionData,
    config: CollectorConfig,
    complexity_limit: Optional[float] = None,
) -> PlayerLearningProfile:
    """
    Fold a finalized session into the player's learning profile.

    Totals and learning-curve samples always update. Style, preference, tag
    strengths, recommendation knobs and pattern data only move when the session
    recorded at least one pattern performance, so an empty session cannot
    drag the profile toward default values.
    """

    if complexity_limit is None:
        complexity_limit = GenerationConfig().complexity_limit
    base = profile or PlayerLearningProfile(player_id=session.player_id)
    updated = base.evolve(
        total_games_played=base.total_games_played + len(session.stage_results),
        total_play_time=base.total_play_time + session.total_play_time,
        sessions_completed=base.sessions_completed + 1,
        learning_curve=_append_curve(base.learning_curve, session, config.learning_curve_limit),
    )
    if not session.pattern_performances:
        return updated

    strong, weak = split_tag_strengths(session.pattern_performances)
    pattern_data = update_pattern_data(
        base.pattern_data,
        session.pattern_performances,
        strong,
        complexity_limit,
        config.progression_limit,
    )
    return updated.evolve(
        dominant_learning_style=classify_learning_style(session),
        preferred_difficulty_progression=classify_difficulty_preference(session),
        optimal_session_length=float(min(max(session.total_play_time / 60.0, 5.0), 30.0)),
        strong_pattern_types=strong,
        weak_pattern_types=weak,
        recommended_settings=nudge_recommendations(
            base.recommended_settings, session, strong, pattern_data.max_handled_complexity
        ),
        pattern_data=pattern_data,
    )
