# ABOUTME: Exposes the learning loop: telemetry records, the collector, and persistence.
# ABOUTME: Feeds finalized sessions back into the personalization profile used by generation.

from .collector import CollectorState, LearningDataCollector
from .insights import generate_insights
from .profile import update_learning_profile, update_pattern_data
from .records import (
    ActionType,
    GameSessionData,
    InsightType,
    LearningInsight,
    PatternPerformanceData,
    PerformanceMetrics,
    PlayerLearningProfile,
)
from .storage import InMemoryStore, JsonFileStore, LearningStore, build_store

__all__ = [
    "CollectorState",
    "LearningDataCollector",
    "generate_insights",
    "update_learning_profile",
    "update_pattern_data",
    "ActionType",
    "GameSessionData",
    "InsightType",
    "LearningInsight",
    "PatternPerformanceData",
    "PerformanceMetrics",
    "PlayerLearningProfile",
    "InMemoryStore",
    "JsonFileStore",
    "LearningStore",
    "build_store",
]
