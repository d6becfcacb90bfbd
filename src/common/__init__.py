# ABOUTME: Makes the shared common package importable across generation and learning.
# ABOUTME: Re-exports schema types, configuration, errors, and the event channel.

from .config import CollectorConfig, EngineConfig, GenerationConfig, StorageConfig, load_engine_config
from .errors import ConfigurationError, EngineError, SessionStateError, StorageError
from .events import EventChannel
from .schemas import (
    DifficultyBand,
    MasteryLevel,
    PatternExperience,
    PatternPrimitive,
    PatternTag,
    PlayerPatternData,
    PlayerProfile,
    SpawnRules,
    StagePattern,
    SupportDecision,
    SupportSystems,
)

__all__ = [
    "CollectorConfig",
    "EngineConfig",
    "GenerationConfig",
    "StorageConfig",
    "load_engine_config",
    "ConfigurationError",
    "EngineError",
    "SessionStateError",
    "StorageError",
    "EventChannel",
    "DifficultyBand",
    "MasteryLevel",
    "PatternExperience",
    "PatternPrimitive",
    "PatternTag",
    "PlayerPatternData",
    "PlayerProfile",
    "SpawnRules",
    "StagePattern",
    "SupportDecision",
    "SupportSystems",
]
