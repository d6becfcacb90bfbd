# ABOUTME: Records live gameplay telemetry for one active session and closes the personalization loop.
# ABOUTME: Finalizes sessions into history, updates learning profiles, emits insights, and persists data.

from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional

import numpy as np

from src.common.config import CollectorConfig, GenerationConfig
from src.common.errors import SessionStateError, StorageError
from src.common.events import (
    ACTION_RECORDED,
    PATTERN_APPLIED,
    PLAYER_GAME_PAUSED,
    PLAYER_HINT_USED,
    PLAYER_MOVE,
    SESSION_COMPLETED,
    EventChannel,
)
from src.common.schemas import PlayerProfile, StagePattern

from .insights import generate_insights
from .metrics import adaptation_rate, compute_session_metrics, confidence_level, learning_curve
from .profile import update_learning_profile
from .records import (
    ActionType,
    GameSessionData,
    LearningInsight,
    PatternPerformanceData,
    PerformanceMetrics,
    PlayerAction,
    PlayerLearningProfile,
    StageResult,
)
from .storage import InMemoryStore, LearningStore

logger = logging.getLogger(__name__)


class CollectorState(str, Enum):
    IDLE = "idle"
    SESSION_ACTIVE = "session_active"


class LearningDataCollector:
    """
    Owns the single active session of one player and the learning history behind it.

    One instance serves one live game. Recording calls are synchronous and only
    valid while a session is active; misuse raises SessionStateError and leaves
    the collector untouched.
    """

    def __init__(
        self,
        config: Optional[CollectorConfig] = None,
        channel: Optional[EventChannel] = None,
        store: Optional[LearningStore] = None,
        clock: Callable[[], float] = time.time,
        generation_config: Optional[GenerationConfig] = None,
    ) -> None:
        self.config = config or CollectorConfig()
        self._channel = channel
        self._store = store if store is not None else InMemoryStore()
        self._clock = clock
        self._complexity_limit = (generation_config or GenerationConfig()).complexity_limit

        self._history: Deque[GameSessionData] = deque(maxlen=self.config.session_history_limit)
        self._profiles: Dict[str, PlayerLearningProfile] = {}
        self._last_insights: List[LearningInsight] = []
        self._bound_handlers: List[tuple] = []
        self._applied_pattern: Optional[StagePattern] = None

        self._session_id: Optional[str] = None
        self._player_id: Optional[str] = None
        self._started_at = 0.0
        self._actions: Deque[PlayerAction] = deque(maxlen=self.config.action_buffer_size)
        self._performances: List[PatternPerformanceData] = []
        self._stage_results: List[StageResult] = []

    @property
    def state(self) -> CollectorState:
        return CollectorState.IDLE if self._session_id is None else CollectorState.SESSION_ACTIVE

    @property
    def last_insights(self) -> List[LearningInsight]:
        return list(self._last_insights)

    def initialize(self) -> None:
        """Restore stored learning data. A failed load starts from empty history."""
        try:
            snapshot = self._store.load()
            if snapshot:
                self.load_snapshot(snapshot)
        except StorageError:
            logger.exception("[collector] Could not load stored learning data; starting empty")
            return
        logger.info(
            "[collector] Initialized with %d sessions and %d profiles", len(self._history), len(self._profiles)
        )

    def _require_active(self, operation: str) -> None:
        if self._session_id is None:
            raise SessionStateError(f"{operation} requires an active session; call start_session first.")

    def start_session(self, player_id: str) -> str:
        if self._session_id is not None:
            raise SessionStateError(
                f"Session {self._session_id} is still active; end it before starting another."
            )

        now = self._clock()
        self._session_id = f"session-{player_id}-{int(now * 1000)}-{uuid.uuid4().hex[:9]}"
        self._player_id = player_id
        self._started_at = now
        self._actions.clear()
        self._performances = []
        self._stage_results = []
        logger.info("[collector] Session started: %s", self._session_id)
        return self._session_id

    def record_player_action(
        self,
        action_type: ActionType,
        action_data: Optional[Mapping[str, Any]] = None,
        game_context: Optional[Mapping[str, Any]] = None,
    ) -> PlayerAction:
        self._require_active("record_player_action")
        action = PlayerAction(
            timestamp=self._clock(),
            action_type=ActionType(action_type),
            action_data=dict(action_data or {}),
            game_context=dict(game_context or {}),
        )
        self._actions.append(action)
        if self._channel is not None:
            self._channel.publish(ACTION_RECORDED, action)
        return action

    def record_pattern_performance(
        self,
        pattern: StagePattern,
        success: bool,
        metrics: PerformanceMetrics,
    ) -> List[PatternPerformanceData]:
        """Append one row per primitive, with learning signals computed against the rows so far."""
        self._require_active("record_pattern_performance")

        now = self._clock()
        rows = []
        for primitive in pattern.primitives:
            row = PatternPerformanceData(
                pattern_id=primitive.id,
                pattern_tags=tuple(primitive.tags),
                difficulty_level=primitive.base_difficulty,
                learnability_score=primitive.learnability,
                timestamp=now,
                player_success=bool(success),
                completion_time=metrics.completion_time,
                attempts_required=metrics.attempts_required,
                hints_used=metrics.hints_used,
                mistakes_count=metrics.mistakes_count,
                learning_curve=learning_curve(self._performances, primitive.id, success),
                adaptation_rate=adaptation_rate(self._performances, primitive.tags, metrics),
                confidence_level=confidence_level(metrics),
                pattern_complexity=pattern.combination_complexity,
            )
            self._performances.append(row)
            rows.append(row)

        logger.debug("[collector] Recorded %d primitive outcome(s) for %s", len(rows), pattern.id)
        return rows

    def record_stage_completion(self, stage: int, success: bool, score: float, play_time: float) -> StageResult:
        self._require_active("record_stage_completion")
        result = StageResult(
            stage=int(stage),
            success=bool(success),
            score=float(score),
            play_time=float(play_time),
            timestamp=self._clock(),
        )
        self._stage_results.append(result)
        logger.debug("[collector] Stage %d %s", stage, "cleared" if success else "failed")
        return result

    def _snapshot_session(self, end_timestamp: float) -> GameSessionData:
        performances = tuple(self._performances)
        stage_results = tuple(self._stage_results)
        return GameSessionData(
            session_id=self._session_id,
            player_id=self._player_id,
            start_timestamp=self._started_at,
            end_timestamp=end_timestamp,
            stage_results=stage_results,
            player_actions=tuple(self._actions),
            pattern_performances=performances,
            metrics=compute_session_metrics(performances, stage_results),
        )

    def end_session(self) -> GameSessionData:
        self._require_active("end_session")

        session = self._snapshot_session(self._clock())
        self._history.append(session)

        profile = update_learning_profile(
            self._profiles.get(session.player_id), session, self.config, self._complexity_limit
        )
        self._profiles[session.player_id] = profile
        insights = generate_insights(
            profile, self.get_session_history(session.player_id, limit=None), self.config, session.end_timestamp
        )
        self._last_insights = insights

        self._session_id = None
        self._player_id = None
        self._actions.clear()
        self._performances = []
        self._stage_results = []
        self._applied_pattern = None

        self.save()
        if self._channel is not None:
            self._channel.publish(SESSION_COMPLETED, {"session": session, "insights": insights})

        logger.info(
            "[collector] Session ended: %s (engagement=%.2f, insights=%d)",
            session.session_id,
            session.metrics.engagement_level,
            len(insights),
        )
        return session

    def save(self) -> bool:
        """Persist every profile and session; failures are logged and never interrupt play."""
        try:
            self._store.save(self.export_all_data())
        except StorageError:
            logger.exception("[collector] Failed to persist learning data")
            return False
        return True

    @property
    def applied_pattern(self) -> Optional[StagePattern]:
        """Most recent pattern the game loop reported as placed on the board this session."""
        return self._applied_pattern

    @property
    def current_session(self) -> Optional[GameSessionData]:
        """In-progress view of the active session, or None when idle."""
        if self._session_id is None:
            return None
        return self._snapshot_session(0.0)

    def get_learning_profile(self, player_id: str) -> Optional[PlayerLearningProfile]:
        return self._profiles.get(player_id)

    def get_session_history(self, player_id: str, limit: Optional[int] = 10) -> List[GameSessionData]:
        sessions = [s for s in self._history if s.player_id == player_id]
        return sessions if limit is None else sessions[-limit:]

    def build_player_profile(self, player_id: str) -> PlayerProfile:
        """Convert the learning profile into the generator's inbound PlayerProfile."""
        learning = self._profiles.get(player_id)
        if learning is None:
            return PlayerProfile(player_id=player_id)

        recent = tuple(learning.curve_values(self.config.performance_analysis_window))
        sessions = self.get_session_history(player_id, limit=None)
        average_score = float(np.mean([s.total_score for s in sessions])) if sessions else 0.0
        pattern_data = learning.pattern_data if learning.pattern_data.seen_patterns else None
        return PlayerProfile(
            player_id=player_id,
            total_games_played=learning.total_games_played,
            average_score=average_score,
            current_skill_level=float(np.mean(recent)) if recent else 0.5,
            pattern_data=pattern_data,
            recent_performance=recent,
        )

    def export_all_data(self) -> Dict[str, Any]:
        current = self.current_session
        return {
            "session_history": [s.to_dict() for s in self._history],
            "player_profiles": {pid: p.to_dict() for pid, p in self._profiles.items()},
            "current_session": None if current is None else current.to_dict(),
            "export_timestamp": self._clock(),
        }

    def load_snapshot(self, snapshot: Mapping[str, Any]) -> None:
        """Replace history and profiles with ``snapshot``; a malformed snapshot changes nothing."""
        try:
            sessions = [GameSessionData.from_dict(payload) for payload in snapshot.get("session_history", ())]
            profiles = {
                str(pid): PlayerLearningProfile.from_dict(payload)
                for pid, payload in (snapshot.get("player_profiles") or {}).items()
            }
        except (KeyError, ValueError, TypeError, AttributeError) as exc:
            raise StorageError(f"Malformed learning data snapshot: {exc!r}") from exc

        self._history.clear()
        self._history.extend(sessions)
        self._profiles = profiles

    def reset_player_data(self, player_id: str) -> None:
        self._profiles.pop(player_id, None)
        kept = [s for s in self._history if s.player_id != player_id]
        self._history.clear()
        self._history.extend(kept)
        logger.info("[collector] Reset learning data for player %s", player_id)

    def bind_game_events(self) -> None:
        """Route game-loop action topics into record_player_action and track applied patterns."""
        if self._channel is None:
            raise SessionStateError("bind_game_events requires an event channel.")
        if self._bound_handlers:
            return

        for topic, action_type in (
            (PLAYER_MOVE, ActionType.MOVE),
            (PLAYER_HINT_USED, ActionType.HINT),
            (PLAYER_GAME_PAUSED, ActionType.PAUSE),
        ):
            handler = self._make_action_handler(action_type)
            self._channel.subscribe(topic, handler)
            self._bound_handlers.append((topic, handler))
        self._channel.subscribe(PATTERN_APPLIED, self._on_pattern_applied)
        self._bound_handlers.append((PATTERN_APPLIED, self._on_pattern_applied))

    def unbind_game_events(self) -> None:
        for topic, handler in self._bound_handlers:
            self._channel.unsubscribe(topic, handler)
        self._bound_handlers = []

    def _make_action_handler(self, action_type: ActionType) -> Callable[[Mapping[str, Any]], None]:
        def handler(data: Mapping[str, Any]) -> None:
            payload = dict(data or {})
            context = payload.pop("game_context", {})
            self.record_player_action(action_type, payload, context)

        return handler

    def _on_pattern_applied(self, data: Mapping[str, Any]) -> None:
        pattern = data.get("pattern")
        if not isinstance(pattern, StagePattern):
            logger.warning("[collector] Ignoring %s payload without a StagePattern", PATTERN_APPLIED)
            return
        self._applied_pattern = pattern
        logger.debug("[collector] Pattern %s applied at stage %d", pattern.id, pattern.stage_number)
