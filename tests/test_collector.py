# ABOUTME: Tests the learning data collector session lifecycle, buffers, events, and persistence.
# ABOUTME: Replays scripted sessions to check engagement, profile updates, and insight generation.

import logging
import unittest

import pytest

from src.common.config import CollectorConfig, GenerationConfig
from src.common.errors import SessionStateError, StorageError
from src.common.events import (
    ACTION_RECORDED,
    PATTERN_APPLIED,
    PLAYER_HINT_USED,
    PLAYER_MOVE,
    SESSION_COMPLETED,
    EventChannel,
)
from src.common.schemas import PlayerProfile
from src.learning.collector import CollectorState, LearningDataCollector
from src.learning.records import ActionType, InsightType, PerformanceMetrics
from src.learning.storage import InMemoryStore
from src.pattern_gen.generator import PatternGenerator


class FakeClock:
    def __init__(self, start=1000.0, step=1.0):
        self.now = start
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


class FailingStore(InMemoryStore):
    def save(self, snapshot):
        raise StorageError("disk unavailable")


def _pattern(stage=3, seed="fixed-seed"):
    return PatternGenerator().generate_stage_pattern(stage, PlayerProfile(player_id="p1"), seed=seed)


def _play(collector, outcomes, metrics=None, stage=3):
    pattern = _pattern(stage)
    metrics = metrics or PerformanceMetrics(completion_time=54.0)
    for success in outcomes:
        collector.record_pattern_performance(pattern, success, metrics)
        collector.record_stage_completion(stage, success, 500.0 if success else 0.0, 60.0)
    return pattern


class TestSessionLifecycle(unittest.TestCase):
    def setUp(self):
        self.collector = LearningDataCollector(clock=FakeClock())

    def test_recording_while_idle_is_rejected(self):
        with self.assertRaises(SessionStateError):
            self.collector.record_player_action(ActionType.MOVE)
        with self.assertRaises(SessionStateError):
            self.collector.record_pattern_performance(_pattern(), True, PerformanceMetrics(30.0))
        with self.assertRaises(SessionStateError):
            self.collector.record_stage_completion(1, True, 100.0, 30.0)
        self.assertEqual(self.collector.state, CollectorState.IDLE)

    def test_double_start_keeps_existing_session(self):
        session_id = self.collector.start_session("p1")
        with self.assertRaises(SessionStateError):
            self.collector.start_session("p2")
        self.assertEqual(self.collector.current_session.session_id, session_id)
        self.assertEqual(self.collector.current_session.player_id, "p1")

    def test_second_end_session_is_rejected(self):
        self.collector.start_session("p1")
        session = self.collector.end_session()
        self.assertEqual(session.player_id, "p1")
        with self.assertRaises(SessionStateError):
            self.collector.end_session()
        with self.assertRaises(SessionStateError):
            self.collector.record_stage_completion(1, True, 10.0, 10.0)

    def test_session_ids_are_unique(self):
        first = self.collector.start_session("p1")
        self.collector.end_session()
        second = self.collector.start_session("p1")
        self.assertNotEqual(first, second)
        self.assertTrue(second.startswith("session-p1-"))

    def test_finalized_session_is_immutable_snapshot(self):
        self.collector.start_session("p1")
        _play(self.collector, [True, False])
        session = self.collector.end_session()
        self.assertEqual(len(session.pattern_performances), 2 * len(_pattern().primitives))
        self.assertEqual(session.stages_played, [3, 3])
        self.assertEqual(session.total_score, 500.0)
        self.assertGreater(session.end_timestamp, session.start_timestamp)
        with self.assertRaises(Exception):
            session.player_id = "other"


def test_engaged_session_scores_high_without_engagement_drop():
    collector = LearningDataCollector(clock=FakeClock())
    collector.start_session("p1")
    _play(collector, [True, True, True, True, False, True, True, True, False, True])
    session = collector.end_session()

    assert len(session.pattern_performances) == 10
    confidences = [p.confidence_level for p in session.pattern_performances]
    assert sum(confidences) / len(confidences) == pytest.approx(0.85)
    assert session.success_rate == pytest.approx(0.8)
    assert session.metrics.engagement_level >= 0.7
    assert all(i.insight_type != InsightType.ENGAGEMENT_DROP for i in collector.last_insights)


def test_signals_attached_at_record_time():
    collector = LearningDataCollector(clock=FakeClock())
    collector.start_session("p1")
    first = _play(collector, [True])
    rows = collector.record_pattern_performance(first, False, PerformanceMetrics(54.0, hints_used=1))
    assert collector.current_session.pattern_performances[0].learning_curve == 0.5
    assert rows[0].learning_curve == pytest.approx((1.0 + 0.5) / 2)
    assert rows[0].adaptation_rate == pytest.approx(1.0 - 0.1)


def test_action_buffer_evicts_oldest():
    channel = EventChannel()
    published = []
    channel.subscribe(ACTION_RECORDED, published.append)
    collector = LearningDataCollector(CollectorConfig(action_buffer_size=3), channel=channel, clock=FakeClock())
    collector.start_session("p1")
    for move in range(5):
        collector.record_player_action(ActionType.MOVE, {"move": move}, {"stage": 1})

    session = collector.end_session()
    assert [a.action_data["move"] for a in session.player_actions] == [2, 3, 4]
    assert len(published) == 5


def test_session_history_is_bounded_per_instance():
    collector = LearningDataCollector(CollectorConfig(session_history_limit=2), clock=FakeClock())
    for _ in range(3):
        collector.start_session("p1")
        collector.end_session()
    assert len(collector.get_session_history("p1")) == 2
    assert len(collector.get_session_history("p1", limit=1)) == 1


def test_session_completed_event_and_save():
    channel = EventChannel()
    completed = []
    channel.subscribe(SESSION_COMPLETED, completed.append)
    store = InMemoryStore()
    collector = LearningDataCollector(channel=channel, store=store, clock=FakeClock())
    collector.start_session("p1")
    _play(collector, [True])
    session = collector.end_session()

    assert completed[0]["session"] is session
    assert completed[0]["insights"] == []
    assert store.save_count == 1

    restored = LearningDataCollector(store=store, clock=FakeClock())
    restored.initialize()
    assert restored.get_learning_profile("p1").sessions_completed == 1
    assert restored.get_session_history("p1")[0].session_id == session.session_id


def test_storage_failure_does_not_interrupt_play(caplog):
    collector = LearningDataCollector(store=FailingStore(), clock=FakeClock())
    collector.start_session("p1")
    with caplog.at_level(logging.ERROR, logger="src.learning.collector"):
        session = collector.end_session()
    assert session.player_id == "p1"
    assert collector.state == CollectorState.IDLE
    assert "Failed to persist" in caplog.text


def test_generation_config_bounds_the_handled_complexity():
    collector = LearningDataCollector(clock=FakeClock(), generation_config=GenerationConfig(complexity_limit=1.5))
    collector.start_session("p1")
    _play(collector, [True] * 6)
    collector.end_session()
    data = collector.get_learning_profile("p1").pattern_data
    assert data.max_handled_complexity == 1.5


def test_malformed_snapshot_starts_empty(caplog):
    store = InMemoryStore(
        {
            "player_profiles": {"p": {"player_id": "p", "sessions_completed": 3}},
            "session_history": [{"player_id": "p"}],
        }
    )
    collector = LearningDataCollector(store=store, clock=FakeClock())
    with caplog.at_level(logging.ERROR, logger="src.learning.collector"):
        collector.initialize()
    assert "Could not load stored learning data" in caplog.text
    assert collector.get_learning_profile("p") is None
    assert collector.get_session_history("p", limit=None) == []

    collector.start_session("p")
    assert collector.end_session().player_id == "p"


def test_load_snapshot_keeps_existing_data_when_malformed():
    collector = LearningDataCollector(clock=FakeClock())
    collector.start_session("p1")
    collector.end_session()
    with pytest.raises(StorageError):
        collector.load_snapshot({"session_history": [], "player_profiles": {"p2": {"dominant_learning_style": "x"}}})
    assert collector.get_learning_profile("p1") is not None
    assert len(collector.get_session_history("p1")) == 1


def test_insights_appear_after_enough_sessions():
    collector = LearningDataCollector(CollectorConfig(insight_generation_threshold=3), clock=FakeClock())
    for _ in range(2):
        collector.start_session("p1")
        _play(collector, [True, True])
        collector.end_session()
        assert collector.last_insights == []

    collector.start_session("p1")
    _play(collector, [True, True])
    collector.end_session()
    kinds = {i.insight_type for i in collector.last_insights}
    assert InsightType.PATTERN_PREFERENCE in kinds


def test_build_player_profile_closes_the_loop():
    collector = LearningDataCollector(clock=FakeClock())
    assert collector.build_player_profile("p1").is_new

    collector.start_session("p1")
    pattern = _play(collector, [True, True, False])
    collector.end_session()

    profile = collector.build_player_profile("p1")
    assert not profile.is_new
    assert profile.total_games_played == 3
    assert set(profile.pattern_data.seen_patterns) == set(pattern.primitive_ids)
    assert profile.recent_performance[-1] == pytest.approx(collector.get_session_history("p1")[-1].metrics.engagement_level)

    follow_up = PatternGenerator().generate_stage_pattern(4, profile, seed="next")
    assert follow_up.primitives


def test_reset_player_data_removes_profile_and_history():
    collector = LearningDataCollector(clock=FakeClock())
    for player in ("p1", "p2"):
        collector.start_session(player)
        collector.end_session()
    collector.reset_player_data("p1")
    assert collector.get_learning_profile("p1") is None
    assert collector.get_session_history("p1") == []
    assert len(collector.get_session_history("p2")) == 1


def test_bound_game_events_record_actions():
    channel = EventChannel()
    collector = LearningDataCollector(channel=channel, clock=FakeClock())
    collector.bind_game_events()
    collector.start_session("p1")
    channel.publish(PLAYER_MOVE, {"from": [0, 1], "game_context": {"stage": 2}})
    channel.publish(PLAYER_HINT_USED, {"game_context": {"stage": 2}})

    actions = collector.current_session.player_actions
    assert [a.action_type for a in actions] == [ActionType.MOVE, ActionType.HINT]
    assert actions[0].action_data == {"from": [0, 1]}
    assert actions[0].game_context == {"stage": 2}

    collector.unbind_game_events()
    channel.publish(PLAYER_MOVE, {"game_context": {}})
    assert len(collector.current_session.player_actions) == 2


def test_applied_pattern_is_tracked_until_session_end():
    channel = EventChannel()
    collector = LearningDataCollector(channel=channel, clock=FakeClock())
    collector.bind_game_events()
    pattern = PatternGenerator().generate_stage_pattern(2, PlayerProfile(player_id="p1"), seed="applied")

    collector.start_session("p1")
    channel.publish(PATTERN_APPLIED, {"stage": 2, "pattern": pattern})
    assert collector.applied_pattern is pattern
    channel.publish(PATTERN_APPLIED, {"stage": 2})
    assert collector.applied_pattern is pattern

    collector.record_pattern_performance(collector.applied_pattern, True, PerformanceMetrics(30.0))
    collector.end_session()
    assert collector.applied_pattern is None

    collector.unbind_game_events()
    assert channel.handler_count(PATTERN_APPLIED) == 0


def test_export_all_data_includes_current_session():
    collector = LearningDataCollector(clock=FakeClock())
    collector.start_session("p1")
    snapshot = collector.export_all_data()
    assert snapshot["current_session"]["player_id"] == "p1"
    assert snapshot["session_history"] == []
