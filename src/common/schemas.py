# ABOUTME: Defines canonical data structures shared by pattern generation and learning.
# ABOUTME: Centralizes primitive, stage pattern, experience, and player profile definitions.

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import ConfigurationError


class PatternTag(str, Enum):
    LINE = "line"
    CLUSTER = "cluster"
    GRAVITY = "gravity"
    TIMING_SENSITIVE = "timing_sensitive"
    TELEPORT = "teleport"
    SPATIAL_REASONING = "spatial_reasoning"
    COMBO_OPPORTUNITY = "combo_opportunity"
    AREA_CLEAR = "area_clear"


class DifficultyBand(str, Enum):
    EASY = "easy"  # <= 2.0
    MEDIUM = "medium"  # <= 4.0
    HARD = "hard"  # <= 6.0
    EXPERT = "expert"  # > 6.0

    @classmethod
    def for_difficulty(cls, difficulty: float) -> "DifficultyBand":
        if difficulty <= 2.0:
            return cls.EASY
        if difficulty <= 4.0:
            return cls.MEDIUM
        if difficulty <= 6.0:
            return cls.HARD
        return cls.EXPERT


class MasteryLevel(str, Enum):
    NOVICE = "novice"
    LEARNING = "learning"
    COMPETENT = "competent"
    MASTER = "master"

    @property
    def rank(self) -> int:
        return _MASTERY_ORDER.index(self)

    def at_least(self, other: "MasteryLevel") -> bool:
        return self.rank >= other.rank


_MASTERY_ORDER = (MasteryLevel.NOVICE, MasteryLevel.LEARNING, MasteryLevel.COMPETENT, MasteryLevel.MASTER)


def _check_unit_interval(name: str, value: float, owner: str) -> None:
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{owner}: {name} must be within [0, 1], got {value}.")


def _parse_tags(values) -> Tuple[PatternTag, ...]:
    try:
        return tuple(PatternTag(v) for v in values or ())
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


@dataclass(frozen=True)
class SpawnRules:
    """Constraints applied when a primitive is combined with others."""

    requires_min_moves: Optional[int] = None
    forbidden_with_tags: Tuple[PatternTag, ...] = ()
    prerequisite_patterns: Tuple[str, ...] = ()
    max_simultaneous: Optional[int] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SpawnRules":
        min_moves = payload.get("requires_min_moves")
        max_simultaneous = payload.get("max_simultaneous")
        return cls(
            requires_min_moves=None if min_moves is None else int(min_moves),
            forbidden_with_tags=_parse_tags(payload.get("forbidden_with_tags")),
            prerequisite_patterns=tuple(str(p) for p in payload.get("prerequisite_patterns", ()) or ()),
            max_simultaneous=None if max_simultaneous is None else int(max_simultaneous),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requires_min_moves": self.requires_min_moves,
            "forbidden_with_tags": [t.value for t in self.forbidden_with_tags],
            "prerequisite_patterns": list(self.prerequisite_patterns),
            "max_simultaneous": self.max_simultaneous,
        }


@dataclass(frozen=True)
class SupportSystems:
    """Flags describing which player-support aids a primitive can offer."""

    visual_telegraph: bool = False
    hint_available: bool = False
    practice_mode: bool = False
    tutorial_phases: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SupportSystems":
        return cls(
            visual_telegraph=bool(payload.get("visual_telegraph", False)),
            hint_available=bool(payload.get("hint_available", False)),
            practice_mode=bool(payload.get("practice_mode", False)),
            tutorial_phases=tuple(str(p) for p in payload.get("tutorial_phases", ()) or ()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "visual_telegraph": self.visual_telegraph,
            "hint_available": self.hint_available,
            "practice_mode": self.practice_mode,
            "tutorial_phases": list(self.tutorial_phases),
        }


@dataclass(frozen=True)
class PatternPrimitive:
    """Atomic, reusable difficulty unit registered in the catalog."""

    id: str
    tags: Tuple[PatternTag, ...]
    base_difficulty: float
    learnability: float
    novelty: float
    params: Mapping[str, Any] = field(default_factory=dict)
    spawn_rules: SpawnRules = field(default_factory=SpawnRules)
    support_systems: SupportSystems = field(default_factory=SupportSystems)

    def __post_init__(self) -> None:
        if not self.id:
            raise ConfigurationError("Primitive id must be a non-empty string.")
        if self.base_difficulty < 0:
            raise ConfigurationError(f"{self.id}: base_difficulty must be >= 0, got {self.base_difficulty}.")
        _check_unit_interval("learnability", self.learnability, self.id)
        _check_unit_interval("novelty", self.novelty, self.id)

    @property
    def band(self) -> DifficultyBand:
        return DifficultyBand.for_difficulty(self.base_difficulty)

    def shares_tags_with(self, other: "PatternPrimitive") -> bool:
        return bool(set(self.tags) & set(other.tags))

    def forbids(self, other: "PatternPrimitive") -> bool:
        return bool(set(self.spawn_rules.forbidden_with_tags) & set(other.tags))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PatternPrimitive":
        try:
            return cls(
                id=str(payload["id"]),
                tags=_parse_tags(payload.get("tags")),
                base_difficulty=float(payload["base_difficulty"]),
                learnability=float(payload["learnability"]),
                novelty=float(payload.get("novelty", 0.0)),
                params=dict(payload.get("params", {}) or {}),
                spawn_rules=SpawnRules.from_dict(payload.get("spawn_rules", {}) or {}),
                support_systems=SupportSystems.from_dict(payload.get("support_systems", {}) or {}),
            )
        except KeyError as exc:
            raise ConfigurationError(f"Primitive definition is missing field {exc}.") from exc

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tags": [t.value for t in self.tags],
            "base_difficulty": self.base_difficulty,
            "learnability": self.learnability,
            "novelty": self.novelty,
            "params": dict(self.params),
            "spawn_rules": self.spawn_rules.to_dict(),
            "support_systems": self.support_systems.to_dict(),
        }


@dataclass(frozen=True)
class SupportDecision:
    """Which support aids should accompany one primitive in a generated stage."""

    primitive_id: str
    visual_telegraph: bool
    hint: bool
    practice_mode: bool

    @property
    def any(self) -> bool:
        return self.visual_telegraph or self.hint or self.practice_mode


@dataclass(frozen=True)
class StagePattern:
    """Immutable, reproducible description of the primitives composing one stage attempt."""

    id: str
    primitives: Tuple[PatternPrimitive, ...]
    total_difficulty: float
    total_learnability: float
    combination_complexity: float
    seed: str
    stage_number: int
    min_moves: Optional[int] = None
    support: Tuple[SupportDecision, ...] = ()

    @property
    def primitive_ids(self) -> List[str]:
        return [p.id for p in self.primitives]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "stage_number": self.stage_number,
            "seed": self.seed,
            "primitives": [p.to_dict() for p in self.primitives],
            "total_difficulty": self.total_difficulty,
            "total_learnability": self.total_learnability,
            "combination_complexity": self.combination_complexity,
            "min_moves": self.min_moves,
            "support": [
                {
                    "primitive_id": s.primitive_id,
                    "visual_telegraph": s.visual_telegraph,
                    "hint": s.hint,
                    "practice_mode": s.practice_mode,
                }
                for s in self.support
            ],
        }


@dataclass(frozen=True)
class PatternExperience:
    """A player's accumulated history with one primitive."""

    pattern_id: str
    encounter_count: int = 0
    success_count: int = 0
    success_rate: float = 0.0
    average_time_to_solve: float = 0.0
    learning_progression: Tuple[float, ...] = ()
    last_encountered: float = 0.0
    mastery_level: MasteryLevel = MasteryLevel.NOVICE

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PatternExperience":
        return cls(
            pattern_id=str(payload["pattern_id"]),
            encounter_count=int(payload.get("encounter_count", 0)),
            success_count=int(payload.get("success_count", 0)),
            success_rate=float(payload.get("success_rate", 0.0)),
            average_time_to_solve=float(payload.get("average_time_to_solve", 0.0)),
            learning_progression=tuple(float(v) for v in payload.get("learning_progression", ()) or ()),
            last_encountered=float(payload.get("last_encountered", 0.0)),
            mastery_level=MasteryLevel(payload.get("mastery_level", MasteryLevel.NOVICE.value)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern_id": self.pattern_id,
            "encounter_count": self.encounter_count,
            "success_count": self.success_count,
            "success_rate": self.success_rate,
            "average_time_to_solve": self.average_time_to_solve,
            "learning_progression": list(self.learning_progression),
            "last_encountered": self.last_encountered,
            "mastery_level": self.mastery_level.value,
        }


@dataclass(frozen=True)
class PlayerPatternData:
    """Durable personalization profile consumed by the generator."""

    seen_patterns: Mapping[str, PatternExperience] = field(default_factory=dict)
    adaptability_score: float = 0.5
    max_handled_complexity: float = 3.0
    preferred_tags: Tuple[PatternTag, ...] = ()
    average_learning_rate: float = 0.0

    def __post_init__(self) -> None:
        _check_unit_interval("adaptability_score", self.adaptability_score, "PlayerPatternData")

    def experience(self, pattern_id: str) -> Optional[PatternExperience]:
        return self.seen_patterns.get(pattern_id)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PlayerPatternData":
        seen = payload.get("seen_patterns", {}) or {}
        return cls(
            seen_patterns={str(k): PatternExperience.from_dict(v) for k, v in seen.items()},
            adaptability_score=float(payload.get("adaptability_score", 0.5)),
            max_handled_complexity=float(payload.get("max_handled_complexity", 3.0)),
            preferred_tags=_parse_tags(payload.get("preferred_tags")),
            average_learning_rate=float(payload.get("average_learning_rate", 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seen_patterns": {k: v.to_dict() for k, v in self.seen_patterns.items()},
            "adaptability_score": self.adaptability_score,
            "max_handled_complexity": self.max_handled_complexity,
            "preferred_tags": [t.value for t in self.preferred_tags],
            "average_learning_rate": self.average_learning_rate,
        }


@dataclass(frozen=True)
class PlayerProfile:
    """Inbound player description supplied by the progression system."""

    player_id: str
    total_games_played: int = 0
    average_score: float = 0.0
    current_skill_level: float = 0.5
    pattern_data: Optional[PlayerPatternData] = None
    recent_performance: Tuple[float, ...] = ()

    @property
    def is_new(self) -> bool:
        return self.pattern_data is None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PlayerProfile":
        pattern_data = payload.get("pattern_data")
        return cls(
            player_id=str(payload["player_id"]),
            total_games_played=int(payload.get("total_games_played", 0)),
            average_score=float(payload.get("average_score", 0.0)),
            current_skill_level=float(payload.get("current_skill_level", 0.5)),
            pattern_data=None if pattern_data is None else PlayerPatternData.from_dict(pattern_data),
            recent_performance=tuple(float(v) for v in payload.get("recent_performance", ()) or ()),
        )
