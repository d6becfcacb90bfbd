# ABOUTME: Holds configuration dataclasses for generation, learning collection, and storage.
# ABOUTME: Loads engine settings from YAML and rejects unknown or malformed keys.

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .errors import ConfigurationError
from .schemas import MasteryLevel


def _default_mastery_bonus() -> Mapping[str, float]:
    return {
        MasteryLevel.NOVICE.value: 5.0,
        MasteryLevel.LEARNING.value: 10.0,
        MasteryLevel.COMPETENT.value: 15.0,
        MasteryLevel.MASTER.value: 25.0,
    }


@dataclass(frozen=True)
class GenerationConfig:
    """Tuning values for stage pattern generation."""

    novelty_weight: float = 0.2
    learnability_threshold: float = 0.3
    new_player_learnability: float = 0.7
    new_player_multiplier: float = 0.8
    adaptability_bonus: float = 20.0
    preferred_tag_bonus: float = 8.0
    mastery_bonus: Mapping[str, float] = field(default_factory=_default_mastery_bonus)
    complexity_baseline: float = 5.0
    complexity_factor_cap: float = 1.5
    default_complexity_ceiling: float = 3.0
    complexity_limit: float = 8.0
    recent_performance_window: int = 5
    prerequisite_mastery: str = MasteryLevel.COMPETENT.value

    def __post_init__(self) -> None:
        if not 0.0 <= self.learnability_threshold <= 1.0:
            raise ConfigurationError("learnability_threshold must be within [0, 1].")
        if self.recent_performance_window < 1:
            raise ConfigurationError("recent_performance_window must be >= 1.")
        try:
            MasteryLevel(self.prerequisite_mastery)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

    def bonus_for(self, level: MasteryLevel) -> float:
        return float(self.mastery_bonus.get(level.value, self.mastery_bonus[MasteryLevel.NOVICE.value]))


@dataclass(frozen=True)
class CollectorConfig:
    """Limits and thresholds used by the learning data collector."""

    session_history_limit: int = 100
    action_buffer_size: int = 1000
    performance_analysis_window: int = 10
    insight_generation_threshold: int = 5
    learning_curve_limit: int = 50
    progression_limit: int = 20

    def __post_init__(self) -> None:
        for f in fields(self):
            if getattr(self, f.name) < 1:
                raise ConfigurationError(f"{f.name} must be >= 1.")


@dataclass(frozen=True)
class StorageConfig:
    path: Optional[Path] = None
    retries: int = 2


@dataclass(frozen=True)
class EngineConfig:
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    catalog_path: Optional[Path] = None


def _build_section(cls, payload: Optional[Mapping[str, Any]], section: str):
    payload = dict(payload or {})
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ConfigurationError(f"Unknown keys in '{section}' config: {', '.join(unknown)}.")
    try:
        return cls(**payload)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid '{section}' config: {exc}") from exc


def config_from_mapping(cfg: Optional[Mapping[str, Any]]) -> EngineConfig:
    """Build an EngineConfig from a parsed YAML mapping."""

    cfg = dict(cfg or {})
    unknown = sorted(set(cfg) - {"generation", "collector", "storage", "catalog_path"})
    if unknown:
        raise ConfigurationError(f"Unknown config sections: {', '.join(unknown)}.")

    generation_cfg = dict(cfg.get("generation") or {})
    if "mastery_bonus" in generation_cfg:
        merged = dict(_default_mastery_bonus())
        merged.update({str(k): float(v) for k, v in generation_cfg["mastery_bonus"].items()})
        generation_cfg["mastery_bonus"] = merged

    storage = _build_section(StorageConfig, cfg.get("storage"), "storage")
    if storage.path is not None:
        storage = replace(storage, path=Path(storage.path))

    catalog_path = cfg.get("catalog_path")
    return EngineConfig(
        generation=_build_section(GenerationConfig, generation_cfg, "generation"),
        collector=_build_section(CollectorConfig, cfg.get("collector"), "collector"),
        storage=storage,
        catalog_path=None if catalog_path is None else Path(catalog_path),
    )


def load_engine_config(config_path: Path) -> EngineConfig:
    """Read an engine YAML file; a relative catalog path resolves against its directory."""

    with open(config_path) as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, Mapping):
        raise ConfigurationError(f"Config at {config_path} must be a mapping.")

    config = config_from_mapping(cfg)
    base_dir = Path(config_path).parent
    if config.catalog_path is not None and not config.catalog_path.is_absolute():
        config = replace(config, catalog_path=base_dir / config.catalog_path)
    return config
