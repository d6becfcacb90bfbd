# ABOUTME: Defines telemetry records, session data, insights, and learning profiles.
# ABOUTME: Records serialize to plain dicts so they can be stored as JSON or exported to pandas.

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from src.common.errors import ConfigurationError
from src.common.schemas import PatternTag, PlayerPatternData


class ActionType(str, Enum):
    MOVE = "move"
    HINT = "hint"
    PAUSE = "pause"
    RESTART = "restart"
    SPECIAL_USE = "special_use"


class InsightType(str, Enum):
    DIFFICULTY_TREND = "difficulty_trend"
    PATTERN_PREFERENCE = "pattern_preference"
    LEARNING_PLATEAU = "learning_plateau"
    ENGAGEMENT_DROP = "engagement_drop"


class LearningStyle(str, Enum):
    VISUAL = "visual"
    TRIAL_ERROR = "trial_error"
    SYSTEMATIC = "systematic"
    INTUITIVE = "intuitive"


class DifficultyProgression(str, Enum):
    GRADUAL = "gradual"
    CHALLENGING = "challenging"
    VARIED = "varied"


@dataclass(frozen=True)
class PlayerAction:
    timestamp: float
    action_type: ActionType
    action_data: Mapping[str, Any] = field(default_factory=dict)
    game_context: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PlayerAction":
        return cls(
            timestamp=float(payload["timestamp"]),
            action_type=ActionType(payload["action_type"]),
            action_data=dict(payload.get("action_data", {}) or {}),
            game_context=dict(payload.get("game_context", {}) or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "action_type": self.action_type.value,
            "action_data": dict(self.action_data),
            "game_context": dict(self.game_context),
        }


@dataclass(frozen=True)
class PerformanceMetrics:
    """Outcome of one pattern attempt as reported by the game loop. Times are seconds."""

    completion_time: float
    attempts_required: int = 1
    hints_used: int = 0
    mistakes_count: int = 0

    def __post_init__(self) -> None:
        if self.completion_time < 0:
            raise ConfigurationError(f"completion_time must be >= 0, got {self.completion_time}.")
        if self.attempts_required < 1:
            raise ConfigurationError(f"attempts_required must be >= 1, got {self.attempts_required}.")
        if self.hints_used < 0 or self.mistakes_count < 0:
            raise ConfigurationError("hints_used and mistakes_count must be >= 0.")


@dataclass(frozen=True)
class PatternPerformanceData:
    pattern_id: str
    pattern_tags: Tuple[PatternTag, ...]
    difficulty_level: float
    learnability_score: float
    timestamp: float
    player_success: bool
    completion_time: float
    attempts_required: int
    hints_used: int
    mistakes_count: int
    learning_curve: float
    adaptation_rate: float
    confidence_level: float
    pattern_complexity: float = 0.0

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PatternPerformanceData":
        return cls(
            pattern_id=str(payload["pattern_id"]),
            pattern_tags=tuple(PatternTag(t) for t in payload.get("pattern_tags", ()) or ()),
            difficulty_level=float(payload["difficulty_level"]),
            learnability_score=float(payload["learnability_score"]),
            timestamp=float(payload["timestamp"]),
            player_success=bool(payload["player_success"]),
            completion_time=float(payload["completion_time"]),
            attempts_required=int(payload.get("attempts_required", 1)),
            hints_used=int(payload.get("hints_used", 0)),
            mistakes_count=int(payload.get("mistakes_count", 0)),
            learning_curve=float(payload["learning_curve"]),
            adaptation_rate=float(payload["adaptation_rate"]),
            confidence_level=float(payload["confidence_level"]),
            pattern_complexity=float(payload.get("pattern_complexity", 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern_id": self.pattern_id,
            "pattern_tags": [t.value for t in self.pattern_tags],
            "difficulty_level": self.difficulty_level,
            "learnability_score": self.learnability_score,
            "timestamp": self.timestamp,
            "player_success": self.player_success,
            "completion_time": self.completion_time,
            "attempts_required": self.attempts_required,
            "hints_used": self.hints_used,
            "mistakes_count": self.mistakes_count,
            "learning_curve": self.learning_curve,
            "adaptation_rate": self.adaptation_rate,
            "confidence_level": self.confidence_level,
            "pattern_complexity": self.pattern_complexity,
        }


@dataclass(frozen=True)
class StageResult:
    stage: int
    success: bool
    score: float
    play_time: float
    timestamp: float

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "StageResult":
        return cls(
            stage=int(payload["stage"]),
            success=bool(payload["success"]),
            score=float(payload.get("score", 0.0)),
            play_time=float(payload.get("play_time", 0.0)),
            timestamp=float(payload.get("timestamp", 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "success": self.success,
            "score": self.score,
            "play_time": self.play_time,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class SessionMetrics:
    average_completion_time: float = 0.0
    hints_usage_rate: float = 0.0
    mistake_rate: float = 0.0
    progression_speed: float = 0.0
    engagement_level: float = 0.0

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SessionMetrics":
        return cls(**{k: float(v) for k, v in payload.items()})

    def to_dict(self) -> Dict[str, float]:
        return {
            "average_completion_time": self.average_completion_time,
            "hints_usage_rate": self.hints_usage_rate,
            "mistake_rate": self.mistake_rate,
            "progression_speed": self.progression_speed,
            "engagement_level": self.engagement_level,
        }


@dataclass(frozen=True)
class GameSessionData:
    """A finalized recording window. Built once at session end and never mutated."""

    session_id: str
    player_id: str
    start_timestamp: float
    end_timestamp: float
    stage_results: Tuple[StageResult, ...] = ()
    player_actions: Tuple[PlayerAction, ...] = ()
    pattern_performances: Tuple[PatternPerformanceData, ...] = ()
    metrics: SessionMetrics = field(default_factory=SessionMetrics)

    @property
    def stages_played(self) -> List[int]:
        return [r.stage for r in self.stage_results]

    @property
    def total_score(self) -> float:
        return sum(r.score for r in self.stage_results)

    @property
    def total_play_time(self) -> float:
        return sum(r.play_time for r in self.stage_results)

    @property
    def success_rate(self) -> float:
        if not self.pattern_performances:
            return 0.0
        return sum(1 for p in self.pattern_performances if p.player_success) / len(self.pattern_performances)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "GameSessionData":
        return cls(
            session_id=str(payload["session_id"]),
            player_id=str(payload["player_id"]),
            start_timestamp=float(payload["start_timestamp"]),
            end_timestamp=float(payload["end_timestamp"]),
            stage_results=tuple(StageResult.from_dict(r) for r in payload.get("stage_results", ())),
            player_actions=tuple(PlayerAction.from_dict(a) for a in payload.get("player_actions", ())),
            pattern_performances=tuple(
                PatternPerformanceData.from_dict(p) for p in payload.get("pattern_performances", ())
            ),
            metrics=SessionMetrics.from_dict(payload.get("metrics", {}) or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "player_id": self.player_id,
            "start_timestamp": self.start_timestamp,
            "end_timestamp": self.end_timestamp,
            "stage_results": [r.to_dict() for r in self.stage_results],
            "player_actions": [a.to_dict() for a in self.player_actions],
            "pattern_performances": [p.to_dict() for p in self.pattern_performances],
            "metrics": self.metrics.to_dict(),
        }


@dataclass(frozen=True)
class LearningInsight:
    insight_type: InsightType
    confidence: float
    description: str
    recommended_action: str
    supporting_data: Mapping[str, Any]
    generated_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "insight_type": self.insight_type.value,
            "confidence": self.confidence,
            "description": self.description,
            "recommended_action": self.recommended_action,
            "supporting_data": dict(self.supporting_data),
            "generated_at": self.generated_at,
        }


@dataclass(frozen=True)
class LearningCurvePoint:
    stage: int
    performance: float
    timestamp: float

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "LearningCurvePoint":
        return cls(int(payload["stage"]), float(payload["performance"]), float(payload.get("timestamp", 0.0)))

    def to_dict(self) -> Dict[str, Any]:
        return {"stage": self.stage, "performance": self.performance, "timestamp": self.timestamp}


DEFAULT_PREFERRED_TAGS = (PatternTag.LINE, PatternTag.CLUSTER)


@dataclass(frozen=True)
class RecommendedSettings:
    difficulty_multiplier: float = 1.0
    hint_frequency: int = 3
    pattern_complexity_limit: float = 3.0
    preferred_pattern_tags: Tuple[PatternTag, ...] = DEFAULT_PREFERRED_TAGS

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RecommendedSettings":
        return cls(
            difficulty_multiplier=float(payload.get("difficulty_multiplier", 1.0)),
            hint_frequency=int(payload.get("hint_frequency", 3)),
            pattern_complexity_limit=float(payload.get("pattern_complexity_limit", 3.0)),
            preferred_pattern_tags=tuple(
                PatternTag(t) for t in payload.get("preferred_pattern_tags", DEFAULT_PREFERRED_TAGS)
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "difficulty_multiplier": self.difficulty_multiplier,
            "hint_frequency": self.hint_frequency,
            "pattern_complexity_limit": self.pattern_complexity_limit,
            "preferred_pattern_tags": [t.value for t in self.preferred_pattern_tags],
        }


@dataclass(frozen=True)
class PlayerLearningProfile:
    """Long-lived per-player learning summary, replaced wholesale at each session end."""

    player_id: str
    total_games_played: int = 0
    total_play_time: float = 0.0
    sessions_completed: int = 0
    dominant_learning_style: LearningStyle = LearningStyle.TRIAL_ERROR
    preferred_difficulty_progression: DifficultyProgression = DifficultyProgression.GRADUAL
    optimal_session_length: float = 15.0
    strong_pattern_types: Tuple[PatternTag, ...] = ()
    weak_pattern_types: Tuple[PatternTag, ...] = ()
    learning_curve: Tuple[LearningCurvePoint, ...] = ()
    recommended_settings: RecommendedSettings = field(default_factory=RecommendedSettings)
    pattern_data: PlayerPatternData = field(default_factory=PlayerPatternData)

    @property
    def improvement_areas(self) -> Tuple[PatternTag, ...]:
        return self.weak_pattern_types

    def curve_values(self, last: Optional[int] = None) -> List[float]:
        points = self.learning_curve if last is None else self.learning_curve[-last:]
        return [p.performance for p in points]

    def evolve(self, **changes: Any) -> "PlayerLearningProfile":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PlayerLearningProfile":
        return cls(
            player_id=str(payload["player_id"]),
            total_games_played=int(payload.get("total_games_played", 0)),
            total_play_time=float(payload.get("total_play_time", 0.0)),
            sessions_completed=int(payload.get("sessions_completed", 0)),
            dominant_learning_style=LearningStyle(payload.get("dominant_learning_style", "trial_error")),
            preferred_difficulty_progression=DifficultyProgression(
                payload.get("preferred_difficulty_progression", "gradual")
            ),
            optimal_session_length=float(payload.get("optimal_session_length", 15.0)),
            strong_pattern_types=tuple(PatternTag(t) for t in payload.get("strong_pattern_types", ())),
            weak_pattern_types=tuple(PatternTag(t) for t in payload.get("weak_pattern_types", ())),
            learning_curve=tuple(LearningCurvePoint.from_dict(p) for p in payload.get("learning_curve", ())),
            recommended_settings=RecommendedSettings.from_dict(payload.get("recommended_settings", {}) or {}),
            pattern_data=PlayerPatternData.from_dict(payload.get("pattern_data", {}) or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "total_games_played": self.total_games_played,
            "total_play_time": self.total_play_time,
            "sessions_completed": self.sessions_completed,
            "dominant_learning_style": self.dominant_learning_style.value,
            "preferred_difficulty_progression": self.preferred_difficulty_progression.value,
            "optimal_session_length": self.optimal_session_length,
            "strong_pattern_types": [t.value for t in self.strong_pattern_types],
            "weak_pattern_types": [t.value for t in self.weak_pattern_types],
            "improvement_areas": [t.value for t in self.improvement_areas],
            "learning_curve": [p.to_dict() for p in self.learning_curve],
            "recommended_settings": self.recommended_settings.to_dict(),
            "pattern_data": self.pattern_data.to_dict(),
        }
