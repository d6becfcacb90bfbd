# ABOUTME: Picks a primitive combination that fits a personalized difficulty budget.
# ABOUTME: Scores learnable candidates and greedily accepts those passing combination rules.

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from src.common.config import GenerationConfig
from src.common.schemas import MasteryLevel, PatternPrimitive, PlayerPatternData

from .catalog import PrimitiveCatalog
from .requirements import StageRequirement


@dataclass(frozen=True)
class ScoredCandidate:
    primitive: PatternPrimitive
    score: float


@dataclass(frozen=True)
class SelectionResult:
    primitives: Tuple[PatternPrimitive, ...]
    remaining_budget: float
    candidates_considered: int

    @property
    def is_empty(self) -> bool:
        return not self.primitives


def prerequisites_met(
    primitive: PatternPrimitive,
    pattern_data: Optional[PlayerPatternData],
    required_level: MasteryLevel,
) -> bool:
    prerequisites = primitive.spawn_rules.prerequisite_patterns
    if not prerequisites:
        return True
    if pattern_data is None:
        return False
    for prerequisite in prerequisites:
        experience = pattern_data.experience(prerequisite)
        if experience is None or not experience.mastery_level.at_least(required_level):
            return False
    return True


def is_learnable_for_player(
    primitive: PatternPrimitive,
    pattern_data: Optional[PlayerPatternData],
    config: GenerationConfig,
) -> bool:
    """Step-one candidate filter: learnability bar plus advisory prerequisite check."""
    if pattern_data is None:
        return primitive.learnability >= config.new_player_learnability and prerequisites_met(
            primitive, None, MasteryLevel(config.prerequisite_mastery)
        )

    if pattern_data.experience(primitive.id) is not None:
        # Already demonstrated capability with it.
        return True

    bar = 0.6 - 0.3 * pattern_data.adaptability_score
    return primitive.learnability >= bar and prerequisites_met(
        primitive, pattern_data, MasteryLevel(config.prerequisite_mastery)
    )


def score_primitive(
    primitive: PatternPrimitive,
    pattern_data: Optional[PlayerPatternData],
    config: GenerationConfig,
) -> float:
    score = primitive.learnability * 40
    score += primitive.novelty * config.novelty_weight * 30

    if pattern_data is None:
        return score

    experience = pattern_data.experience(primitive.id)
    if experience is None:
        score += pattern_data.adaptability_score * config.adaptability_bonus
    else:
        score += config.bonus_for(experience.mastery_level)

    preferred = set(pattern_data.preferred_tags)
    score += sum(1 for tag in primitive.tags if tag in preferred) * config.preferred_tag_bonus
    return score


def is_compatible(candidate: PatternPrimitive, selected: Sequence[PatternPrimitive]) -> bool:
    """Combination rules: no forbidden tag pairing either way, and the concurrency cap holds."""
    for other in selected:
        if candidate.forbids(other) or other.forbids(candidate):
            return False

    cap = candidate.spawn_rules.max_simultaneous
    if cap is not None:
        sharing = sum(1 for other in selected if other.shares_tags_with(candidate))
        if sharing + 1 > cap:
            return False
    return True


def rank_candidates(
    candidates: Sequence[PatternPrimitive],
    pattern_data: Optional[PlayerPatternData],
    config: GenerationConfig,
    rng: Optional[random.Random] = None,
) -> List[ScoredCandidate]:
    pool = list(candidates)
    if rng is not None:
        # Seeded shuffle decides the order of equal scores; the sort below is stable.
        rng.shuffle(pool)
    scored = [ScoredCandidate(p, score_primitive(p, pattern_data, config)) for p in pool]
    scored.sort(key=lambda c: c.score, reverse=True)
    return scored


def select_primitives(
    budget: float,
    pattern_data: Optional[PlayerPatternData],
    requirement: StageRequirement,
    catalog: PrimitiveCatalog,
    config: GenerationConfig,
    rng: Optional[random.Random] = None,
) -> SelectionResult:
    """
    Greedy walk over candidates in descending score order.

    A candidate is accepted when its difficulty fits the remaining budget and it
    is compatible with everything already accepted. The walk stops when the
    budget is spent, candidates run out, or ``max_patterns`` is reached.
    """

    learnable = [p for p in catalog if is_learnable_for_player(p, pattern_data, config)]
    ranked = rank_candidates(learnable, pattern_data, config, rng)

    selected: List[PatternPrimitive] = []
    remaining = budget
    for candidate in ranked:
        if remaining <= 0 or len(selected) >= requirement.max_patterns:
            break
        primitive = candidate.primitive
        if primitive.base_difficulty > remaining:
            continue
        if not is_compatible(primitive, selected):
            continue
        selected.append(primitive)
        remaining -= primitive.base_difficulty

    return SelectionResult(tuple(selected), remaining, len(ranked))
