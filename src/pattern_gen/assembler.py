# ABOUTME: Packages a validated primitive selection into an immutable StagePattern.
# ABOUTME: Computes aggregate metrics, a deterministic identifier, and support-system decisions.

from __future__ import annotations

from typing import Optional, Sequence

from src.common.errors import ConfigurationError
from src.common.schemas import (
    MasteryLevel,
    PatternPrimitive,
    PlayerPatternData,
    StagePattern,
    SupportDecision,
)

from .validator import combination_complexity, mean_learnability

SEED_FRAGMENT_LENGTH = 8


def pattern_identifier(stage: int, seed: str) -> str:
    return f"stage-{stage}-{seed[:SEED_FRAGMENT_LENGTH]}"


def decide_support(primitive: PatternPrimitive, pattern_data: Optional[PlayerPatternData]) -> SupportDecision:
    """Offer a primitive's aids until the player reaches competent mastery with it."""
    experience = None if pattern_data is None else pattern_data.experience(primitive.id)
    needs_support = experience is None or not experience.mastery_level.at_least(MasteryLevel.COMPETENT)
    systems = primitive.support_systems
    return SupportDecision(
        primitive_id=primitive.id,
        visual_telegraph=needs_support and systems.visual_telegraph,
        hint=needs_support and systems.hint_available,
        practice_mode=needs_support and systems.practice_mode,
    )


def assemble_stage_pattern(
    primitives: Sequence[PatternPrimitive],
    stage: int,
    seed: str,
    pattern_data: Optional[PlayerPatternData] = None,
) -> StagePattern:
    if not primitives:
        raise ConfigurationError("Cannot assemble a stage pattern without primitives.")

    min_moves = [p.spawn_rules.requires_min_moves for p in primitives if p.spawn_rules.requires_min_moves]
    return StagePattern(
        id=pattern_identifier(stage, seed),
        primitives=tuple(primitives),
        total_difficulty=sum(p.base_difficulty for p in primitives),
        total_learnability=mean_learnability(primitives),
        combination_complexity=combination_complexity(primitives),
        seed=seed,
        stage_number=stage,
        min_moves=max(min_moves) if min_moves else None,
        support=tuple(decide_support(p, pattern_data) for p in primitives),
    )
