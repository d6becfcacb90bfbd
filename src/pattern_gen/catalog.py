# ABOUTME: Registers difficulty primitives and indexes them by tag and difficulty band.
# ABOUTME: Ships the default primitive library and a YAML loader for custom catalogs.

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import yaml

from src.common.errors import ConfigurationError
from src.common.schemas import (
    DifficultyBand,
    PatternPrimitive,
    PatternTag,
    SpawnRules,
    SupportSystems,
)


class PrimitiveCatalog:
    """
    Read-only library of primitives, built once and shared between callers.

    Indices by tag and by difficulty band are computed at construction; the
    catalog exposes tuples so callers cannot mutate them.
    """

    def __init__(self, primitives: Iterable[PatternPrimitive]) -> None:
        ordered: Dict[str, PatternPrimitive] = {}
        for primitive in primitives:
            if primitive.id in ordered:
                raise ConfigurationError(f"Duplicate primitive id '{primitive.id}' in catalog.")
            ordered[primitive.id] = primitive
        if not ordered:
            raise ConfigurationError("Primitive catalog must contain at least one primitive.")

        self._primitives: Mapping[str, PatternPrimitive] = ordered
        by_tag: Dict[PatternTag, List[PatternPrimitive]] = {tag: [] for tag in PatternTag}
        by_band: Dict[DifficultyBand, List[PatternPrimitive]] = {band: [] for band in DifficultyBand}
        for primitive in ordered.values():
            for tag in primitive.tags:
                by_tag[tag].append(primitive)
            by_band[primitive.band].append(primitive)
        self._by_tag = {tag: tuple(items) for tag, items in by_tag.items()}
        self._by_band = {band: tuple(items) for band, items in by_band.items()}

    def __len__(self) -> int:
        return len(self._primitives)

    def __iter__(self) -> Iterator[PatternPrimitive]:
        return iter(self._primitives.values())

    def __contains__(self, primitive_id: object) -> bool:
        return primitive_id in self._primitives

    def get(self, primitive_id: str) -> Optional[PatternPrimitive]:
        return self._primitives.get(primitive_id)

    def all(self) -> Tuple[PatternPrimitive, ...]:
        return tuple(self._primitives.values())

    def by_tag(self, tag: PatternTag) -> Tuple[PatternPrimitive, ...]:
        return self._by_tag.get(PatternTag(tag), ())

    def by_band(self, band: DifficultyBand) -> Tuple[PatternPrimitive, ...]:
        return self._by_band.get(DifficultyBand(band), ())

    def most_learnable(self) -> PatternPrimitive:
        # max() keeps the first of equal learnabilities, so catalog order breaks ties.
        return max(self._primitives.values(), key=lambda p: p.learnability)


def default_primitives() -> List[PatternPrimitive]:
    """The built-in primitive library, ordered from easiest to hardest."""

    return [
        PatternPrimitive(
            id="line3_horizontal",
            tags=(PatternTag.LINE, PatternTag.COMBO_OPPORTUNITY),
            base_difficulty=1.2,
            learnability=0.9,
            novelty=0.1,
            params={"length": 3, "direction": "horizontal"},
            spawn_rules=SpawnRules(max_simultaneous=2),
            support_systems=SupportSystems(visual_telegraph=True, hint_available=True),
        ),
        PatternPrimitive(
            id="line3_vertical",
            tags=(PatternTag.LINE, PatternTag.COMBO_OPPORTUNITY),
            base_difficulty=1.2,
            learnability=0.9,
            novelty=0.1,
            params={"length": 3, "direction": "vertical"},
            spawn_rules=SpawnRules(max_simultaneous=2),
            support_systems=SupportSystems(visual_telegraph=True, hint_available=True),
        ),
        PatternPrimitive(
            id="cluster4_square",
            tags=(PatternTag.CLUSTER, PatternTag.AREA_CLEAR),
            base_difficulty=2.1,
            learnability=0.8,
            novelty=0.3,
            params={"size": 4, "shape": "square"},
            spawn_rules=SpawnRules(requires_min_moves=5),
            support_systems=SupportSystems(visual_telegraph=True),
        ),
        PatternPrimitive(
            id="line5_diagonal",
            tags=(PatternTag.LINE, PatternTag.COMBO_OPPORTUNITY),
            base_difficulty=3.2,
            learnability=0.7,
            novelty=0.5,
            params={"length": 5, "direction": "diagonal"},
            spawn_rules=SpawnRules(requires_min_moves=8, max_simultaneous=1),
            support_systems=SupportSystems(visual_telegraph=True, practice_mode=True),
        ),
        PatternPrimitive(
            id="gravity_shift_diagonal",
            tags=(PatternTag.GRAVITY, PatternTag.TIMING_SENSITIVE),
            base_difficulty=4.5,
            learnability=0.6,
            novelty=0.7,
            params={"shift_direction": "diagonal", "duration": 3},
            spawn_rules=SpawnRules(forbidden_with_tags=(PatternTag.TELEPORT,), max_simultaneous=1),
            support_systems=SupportSystems(
                practice_mode=True, tutorial_phases=("basic_gravity", "timing_practice")
            ),
        ),
        PatternPrimitive(
            id="cluster9_complex",
            tags=(PatternTag.CLUSTER, PatternTag.AREA_CLEAR, PatternTag.SPATIAL_REASONING),
            base_difficulty=5.8,
            learnability=0.5,
            novelty=0.8,
            params={"size": 9, "shape": "complex"},
            spawn_rules=SpawnRules(prerequisite_patterns=("cluster4_square",), max_simultaneous=1),
            support_systems=SupportSystems(practice_mode=True, hint_available=True),
        ),
        PatternPrimitive(
            id="teleport_maze",
            tags=(PatternTag.TELEPORT, PatternTag.SPATIAL_REASONING),
            base_difficulty=6.8,
            learnability=0.4,
            novelty=0.9,
            params={"teleport_count": 3, "maze_complexity": "medium"},
            spawn_rules=SpawnRules(prerequisite_patterns=("gravity_shift_diagonal",), max_simultaneous=1),
            support_systems=SupportSystems(practice_mode=True, hint_available=True),
        ),
    ]


def default_catalog() -> PrimitiveCatalog:
    return PrimitiveCatalog(default_primitives())


def load_catalog(catalog_path: Path) -> PrimitiveCatalog:
    """Build a catalog from a YAML file with a top-level ``primitives`` list."""

    with open(catalog_path) as f:
        cfg = yaml.safe_load(f) or {}
    entries = cfg.get("primitives") if isinstance(cfg, Mapping) else None
    if not entries:
        raise ConfigurationError(f"No primitives defined in {catalog_path}.")
    return PrimitiveCatalog(PatternPrimitive.from_dict(entry) for entry in entries)
