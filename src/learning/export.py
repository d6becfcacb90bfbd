# ABOUTME: Flattens learning history into pandas DataFrames for analytics.
# ABOUTME: Summarizes per-tag performance and writes parquet reports.

from __future__ import annotations

from pathlib import Path
from typing import Dict, Sequence

import pandas as pd

from .records import GameSessionData

SESSION_COLUMNS = [
    "session_id",
    "player_id",
    "start_timestamp",
    "end_timestamp",
    "stages_played",
    "total_score",
    "total_play_time",
    "average_completion_time",
    "hints_usage_rate",
    "mistake_rate",
    "progression_speed",
    "engagement_level",
]

PERFORMANCE_COLUMNS = [
    "session_id",
    "player_id",
    "pattern_id",
    "pattern_tags",
    "difficulty_level",
    "learnability_score",
    "timestamp",
    "player_success",
    "completion_time",
    "attempts_required",
    "hints_used",
    "mistakes_count",
    "learning_curve",
    "adaptation_rate",
    "confidence_level",
    "pattern_complexity",
]

TAG_SUMMARY_COLUMNS = ["player_id", "tag", "attempts", "success_rate", "mean_completion_time", "mean_confidence"]


def sessions_to_frame(sessions: Sequence[GameSessionData]) -> pd.DataFrame:
    rows = []
    for session in sessions:
        row = {
            "session_id": session.session_id,
            "player_id": session.player_id,
            "start_timestamp": session.start_timestamp,
            "end_timestamp": session.end_timestamp,
            "stages_played": len(session.stage_results),
            "total_score": session.total_score,
            "total_play_time": session.total_play_time,
        }
        row.update(session.metrics.to_dict())
        rows.append(row)
    return pd.DataFrame(rows, columns=SESSION_COLUMNS)


def performances_to_frame(sessions: Sequence[GameSessionData]) -> pd.DataFrame:
    rows = []
    for session in sessions:
        for performance in session.pattern_performances:
            row = performance.to_dict()
            row["session_id"] = session.session_id
            row["player_id"] = session.player_id
            rows.append(row)
    return pd.DataFrame(rows, columns=PERFORMANCE_COLUMNS)


def summarize_tag_performance(performances: pd.DataFrame) -> pd.DataFrame:
    """Per (player, tag) attempt counts, success rate, and mean time/confidence."""

    if performances is None or performances.empty:
        return pd.DataFrame(columns=TAG_SUMMARY_COLUMNS)

    exploded = performances.explode("pattern_tags").dropna(subset=["pattern_tags"])
    if exploded.empty:
        return pd.DataFrame(columns=TAG_SUMMARY_COLUMNS)

    exploded["player_success"] = exploded["player_success"].astype(float)
    grouped = (
        exploded.groupby(["player_id", "pattern_tags"])
        .agg(
            attempts=("player_success", "count"),
            success_rate=("player_success", "mean"),
            mean_completion_time=("completion_time", "mean"),
            mean_confidence=("confidence_level", "mean"),
        )
        .reset_index()
        .rename(columns={"pattern_tags": "tag"})
    )
    return grouped[TAG_SUMMARY_COLUMNS]


def export_learning_report(sessions: Sequence[GameSessionData], output_dir: Path) -> Dict[str, Path]:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    performances = performances_to_frame(sessions)
    frames = {
        "sessions": sessions_to_frame(sessions),
        "performances": performances,
        "tag_summary": summarize_tag_performance(performances),
    }

    paths: Dict[str, Path] = {}
    for name, frame in frames.items():
        path = output_dir / f"{name}.parquet"
        frame.to_parquet(path, index=False)
        paths[name] = path
    return paths
