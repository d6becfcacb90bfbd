# ABOUTME: Converts a base stage difficulty into a player-specific difficulty budget.
# ABOUTME: Combines adaptability, complexity, and recent-performance factors under a hard clamp.

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from src.common.config import GenerationConfig
from src.common.schemas import PlayerProfile

MIN_DIFFICULTY_RATIO = 0.5
MAX_DIFFICULTY_RATIO = 1.5


@dataclass(frozen=True)
class PersonalizationFactors:
    adaptability: float
    complexity: float
    performance: float

    @property
    def combined(self) -> float:
        return self.adaptability * self.complexity * self.performance


def _clip01(value: float) -> float:
    return max(0.0, min(1.0, value))


def recent_performance_average(recent: Sequence[float], window: int) -> float:
    if not recent:
        return 0.5
    values = list(recent)[-window:]
    return sum(values) / len(values)


def compute_factors(profile: PlayerProfile, config: GenerationConfig) -> PersonalizationFactors:
    data = profile.pattern_data
    if data is None:
        return PersonalizationFactors(1.0, 1.0, 1.0)

    adaptability = 0.7 + _clip01(data.adaptability_score) * 0.6
    complexity = min(max(data.max_handled_complexity, 0.0) / config.complexity_baseline, config.complexity_factor_cap)
    performance_avg = _clip01(recent_performance_average(profile.recent_performance, config.recent_performance_window))
    performance = 0.8 + performance_avg * 0.4
    return PersonalizationFactors(adaptability, complexity, performance)


def personalize_difficulty(base_difficulty: float, profile: PlayerProfile, config: GenerationConfig) -> float:
    """
    Player-specific difficulty, always within [0.5x, 1.5x] of ``base_difficulty``.

    New players (no pattern data) get a flat reduction instead of the factor product.
    """

    if profile.pattern_data is None:
        personalized = base_difficulty * config.new_player_multiplier
    else:
        personalized = base_difficulty * compute_factors(profile, config).combined

    lower = base_difficulty * MIN_DIFFICULTY_RATIO
    upper = base_difficulty * MAX_DIFFICULTY_RATIO
    return max(lower, min(personalized, upper))
