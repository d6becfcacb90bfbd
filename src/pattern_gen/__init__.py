# ABOUTME: Exposes the stage pattern generation pipeline.
# ABOUTME: Groups the primitive catalog, requirement and personalization steps, and the generator.

from .catalog import PrimitiveCatalog, default_catalog, default_primitives, load_catalog
from .generator import PatternGenerator
from .personalization import personalize_difficulty
from .requirements import StageBand, StageRequirement, compute_stage_requirement
from .validator import combination_complexity

__all__ = [
    "PrimitiveCatalog",
    "default_catalog",
    "default_primitives",
    "load_catalog",
    "PatternGenerator",
    "personalize_difficulty",
    "StageBand",
    "StageRequirement",
    "compute_stage_requirement",
    "combination_complexity",
]
