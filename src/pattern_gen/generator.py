# ABOUTME: Composes requirement, personalization, selection, validation, and assembly into one call.
# ABOUTME: Produces reproducible StagePatterns from a catalog, a player profile, and a seed.

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional

from src.common.config import GenerationConfig
from src.common.errors import ConfigurationError
from src.common.events import PATTERN_GENERATED, EventChannel
from src.common.schemas import PlayerProfile, StagePattern

from .assembler import assemble_stage_pattern
from .catalog import PrimitiveCatalog, default_catalog
from .personalization import personalize_difficulty
from .requirements import StageRequirement, compute_stage_requirement, validate_stage
from .seeding import derive_seed, seeded_rng
from .selector import select_primitives
from .validator import validate_selection

logger = logging.getLogger(__name__)


class PatternGenerator:
    """
    Generates stage patterns personalized to a player.

    Generation reads only the catalog, the profile snapshot, and the seed, so
    identical inputs always produce an identical StagePattern.
    """

    def __init__(
        self,
        catalog: Optional[PrimitiveCatalog] = None,
        config: Optional[GenerationConfig] = None,
        channel: Optional[EventChannel] = None,
    ) -> None:
        self._catalog = catalog if catalog is not None else default_catalog()
        self._config = config or GenerationConfig()
        self._channel = channel

    @property
    def catalog(self) -> PrimitiveCatalog:
        return self._catalog

    @property
    def config(self) -> GenerationConfig:
        return self._config

    def update_config(self, **overrides: Any) -> GenerationConfig:
        try:
            self._config = replace(self._config, **overrides)
        except TypeError as exc:
            raise ConfigurationError(f"Invalid generation override: {exc}") from exc
        logger.info("[generator] Config updated: %s", sorted(overrides))
        return self._config

    def stage_requirement(self, stage: int, profile: PlayerProfile, seed: Optional[str] = None) -> StageRequirement:
        validate_stage(stage)
        if seed is None:
            seed = derive_seed(stage, profile.player_id)
        return compute_stage_requirement(stage, seeded_rng(seed))

    def generate_stage_pattern(
        self,
        stage: int,
        profile: PlayerProfile,
        seed: Optional[str] = None,
    ) -> StagePattern:
        validate_stage(stage)
        if seed is None:
            seed = derive_seed(stage, profile.player_id)
        rng = seeded_rng(seed)

        requirement = compute_stage_requirement(stage, rng)
        budget = personalize_difficulty(requirement.target_difficulty, profile, self._config)

        selection = select_primitives(
            budget, profile.pattern_data, requirement, self._catalog, self._config, rng
        )
        if selection.is_empty:
            logger.warning(
                "[generator] No primitive fit budget %.2f for stage %d (%d candidates); repairing",
                budget,
                stage,
                selection.candidates_considered,
            )

        primitives, report = validate_selection(
            selection.primitives, profile.pattern_data, self._catalog, self._config
        )
        for repair in report.repairs:
            logger.info("[generator] stage %d: %s", stage, repair)

        pattern = assemble_stage_pattern(primitives, stage, seed, profile.pattern_data)
        logger.debug(
            "[generator] %s -> %s (difficulty=%.2f, complexity=%.2f)",
            pattern.id,
            pattern.primitive_ids,
            pattern.total_difficulty,
            pattern.combination_complexity,
        )

        if self._channel is not None:
            self._channel.publish(
                PATTERN_GENERATED,
                {"pattern": pattern, "player_id": profile.player_id, "requirement": requirement},
            )
        return pattern
