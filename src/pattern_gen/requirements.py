# ABOUTME: Maps a stage number to its target difficulty, win-rate band, and pattern count limits.
# ABOUTME: Implements the tutorial, early-monetization, mid-game, and endgame stage bands.

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from src.common.errors import ConfigurationError


class StageBand(str, Enum):
    TUTORIAL = "tutorial"
    EARLY_MONETIZATION = "early_monetization"
    MID_GAME = "mid_game"
    ENDGAME = "endgame"


@dataclass(frozen=True)
class BandSpec:
    band: StageBand
    first_stage: int
    last_stage: Optional[int]
    win_rate_range: Tuple[float, float]
    base_difficulty: float
    difficulty_step: float

    def contains(self, stage: int) -> bool:
        return stage >= self.first_stage and (self.last_stage is None or stage <= self.last_stage)

    def difficulty_for(self, stage: int) -> float:
        return self.base_difficulty + (stage - self.first_stage) * self.difficulty_step


_BAND_TABLE: Tuple[BandSpec, ...] = (
    BandSpec(StageBand.TUTORIAL, 1, 5, (0.80, 0.95), 2.0, 0.3),
    BandSpec(StageBand.EARLY_MONETIZATION, 6, 20, (0.55, 0.75), 3.5, 0.4),
    BandSpec(StageBand.MID_GAME, 21, 40, (0.40, 0.60), 6.0, 0.3),
    BandSpec(StageBand.ENDGAME, 41, None, (0.35, 0.50), 10.0, 0.2),
)


def chain_bands(bands: Tuple[BandSpec, ...]) -> Tuple[BandSpec, ...]:
    """
    Lift each band's starting difficulty above the previous band's final stage.

    A band whose nominal base already exceeds the previous band's last value keeps
    it; otherwise it starts one of its own steps above that value.
    """

    chained = []
    for spec in bands:
        if chained and chained[-1].last_stage is not None:
            previous_last = chained[-1].difficulty_for(chained[-1].last_stage)
            if spec.base_difficulty <= previous_last:
                spec = replace(spec, base_difficulty=previous_last + spec.difficulty_step)
        chained.append(spec)
    return tuple(chained)


STAGE_BANDS: Tuple[BandSpec, ...] = chain_bands(_BAND_TABLE)

MAX_PATTERNS_CAP = 3


@dataclass(frozen=True)
class StageRequirement:
    stage: int
    band: StageBand
    target_difficulty: float
    target_win_rate: float
    win_rate_range: Tuple[float, float]
    min_patterns: int
    max_patterns: int


def band_for_stage(stage: int) -> BandSpec:
    validate_stage(stage)
    for spec in STAGE_BANDS:
        if spec.contains(stage):
            return spec
    raise ConfigurationError(f"No stage band covers stage {stage}.")


def validate_stage(stage: int) -> None:
    if isinstance(stage, bool) or not isinstance(stage, int):
        raise ConfigurationError(f"Stage number must be an integer, got {stage!r}.")
    if stage < 1:
        raise ConfigurationError(f"Stage number must be >= 1, got {stage}.")


def compute_stage_requirement(stage: int, rng: Optional[random.Random] = None) -> StageRequirement:
    """
    Compute the requirement for ``stage``.

    Difficulty and pattern limits depend only on the stage number; the target
    win rate is drawn inside the band's range from ``rng`` (the generation
    seed's generator), falling back to the band midpoint when no rng is given.
    """

    spec = band_for_stage(stage)
    low, high = spec.win_rate_range
    draw = rng.random() if rng is not None else 0.5
    return StageRequirement(
        stage=stage,
        band=spec.band,
        target_difficulty=spec.difficulty_for(stage),
        target_win_rate=low + draw * (high - low),
        win_rate_range=spec.win_rate_range,
        min_patterns=1,
        max_patterns=min(MAX_PATTERNS_CAP, stage // 5 + 1),
    )
