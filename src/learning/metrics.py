# ABOUTME: Computes per-performance learning signals and session-level aggregates.
# ABOUTME: Also provides the trend and variance statistics used by insight detectors.

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np

from src.common.schemas import PatternTag

from .records import PatternPerformanceData, PerformanceMetrics, SessionMetrics, StageResult

LEARNING_CURVE_WINDOW = 5
TAG_HISTORY_WINDOW = 3
NEW_TAG_EXPERIENCE = 0.3
FIRST_SUCCESS_CURVE = 0.5
FIRST_FAILURE_CURVE = 0.2

SPEED_REFERENCE_SECONDS = 120.0
HINT_REFERENCE = 5.0
MISTAKE_REFERENCE = 3.0


def time_improvement(times: Sequence[float]) -> float:
    """Relative speed-up between the first and last solve time, in [0, 1]."""
    if len(times) < 2:
        return 0.5
    first, last = float(times[0]), float(times[-1])
    if first <= last:
        # Slower or unchanged.
        return 0.3
    return min((first - last) / first, 1.0)


def learning_curve(history: Sequence[PatternPerformanceData], pattern_id: str, success: bool) -> float:
    recent = [p for p in history if p.pattern_id == pattern_id][-LEARNING_CURVE_WINDOW:]
    if not recent:
        return FIRST_SUCCESS_CURVE if success else FIRST_FAILURE_CURVE

    success_rate = float(np.mean([p.player_success for p in recent]))
    improvement = time_improvement([p.completion_time for p in recent])
    return min((success_rate + improvement) / 2, 1.0)


def tag_experience(history: Sequence[PatternPerformanceData], tag: PatternTag) -> float:
    rows = [p for p in history if tag in p.pattern_tags]
    if not rows:
        return NEW_TAG_EXPERIENCE
    return float(np.mean([p.player_success for p in rows[-TAG_HISTORY_WINDOW:]]))


def adaptation_rate(
    history: Sequence[PatternPerformanceData],
    tags: Iterable[PatternTag],
    metrics: PerformanceMetrics,
) -> float:
    tags = list(tags)
    experience = float(np.mean([tag_experience(history, t) for t in tags])) if tags else NEW_TAG_EXPERIENCE
    hint_penalty = min(metrics.hints_used * 0.1, 0.3)
    mistake_penalty = min(metrics.mistakes_count * 0.05, 0.2)
    return max(experience - hint_penalty - mistake_penalty, 0.0)


def confidence_level(metrics: PerformanceMetrics) -> float:
    speed = max(0.0, (SPEED_REFERENCE_SECONDS - metrics.completion_time) / SPEED_REFERENCE_SECONDS)
    hints = max(0.0, (HINT_REFERENCE - metrics.hints_used) / HINT_REFERENCE)
    mistakes = max(0.0, (MISTAKE_REFERENCE - metrics.mistakes_count) / MISTAKE_REFERENCE)
    return min((speed + hints + mistakes) / 3, 1.0)


def compute_session_metrics(
    performances: Sequence[PatternPerformanceData],
    stage_results: Sequence[StageResult],
) -> SessionMetrics:
    """Aggregate the session's performance rows; an empty session yields all-zero metrics."""
    if not performances:
        return SessionMetrics()

    times = np.array([p.completion_time for p in performances], dtype=float)
    hints = np.array([p.hints_used for p in performances], dtype=float)
    mistakes = np.array([p.mistakes_count for p in performances], dtype=float)
    success = np.array([p.player_success for p in performances], dtype=float)
    confidence = np.array([p.confidence_level for p in performances], dtype=float)
    adaptation = np.array([p.adaptation_rate for p in performances], dtype=float)

    play_minutes = sum(r.play_time for r in stage_results) / 60.0
    progression = len(stage_results) / play_minutes if play_minutes > 0 else 0.0

    engagement = (confidence.mean() + adaptation.mean() + success.mean()) / 3
    return SessionMetrics(
        average_completion_time=float(times.mean()),
        hints_usage_rate=float(hints.mean()),
        mistake_rate=float(mistakes.mean()),
        progression_speed=float(progression),
        engagement_level=float(np.clip(engagement, 0.0, 1.0)),
    )


def linear_trend(values: Sequence[float]) -> float:
    """Least-squares slope of ``values`` against x = 1..n; 0 for fewer than two points."""
    if len(values) < 2:
        return 0.0
    x = np.arange(1, len(values) + 1, dtype=float)
    slope, _ = np.polyfit(x, np.asarray(values, dtype=float), 1)
    return float(slope)


def variance(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.var(np.asarray(values, dtype=float)))


def tag_success_rates(performances: Sequence[PatternPerformanceData]) -> List[Tuple[PatternTag, float]]:
    """(tag, success_rate) pairs in first-seen order."""
    totals: Dict[PatternTag, Tuple[int, int]] = {}
    for p in performances:
        for tag in p.pattern_tags:
            wins, count = totals.get(tag, (0, 0))
            totals[tag] = (wins + int(p.player_success), count + 1)
    return [(tag, wins / count) for tag, (wins, count) in totals.items()]
