# ABOUTME: Tests candidate filtering, scoring, combination rules, and greedy budget selection.
# ABOUTME: Uses the default catalog with new and experienced player pattern data.

import random

import pytest

from src.common.config import GenerationConfig
from src.common.schemas import MasteryLevel, PatternExperience, PatternTag, PlayerPatternData
from src.pattern_gen.catalog import default_catalog
from src.pattern_gen.requirements import compute_stage_requirement
from src.pattern_gen.selector import (
    is_compatible,
    is_learnable_for_player,
    rank_candidates,
    score_primitive,
    select_primitives,
)

CATALOG = default_catalog()
CONFIG = GenerationConfig()


def _p(pid):
    return CATALOG.get(pid)


def _data(adaptability=0.5, seen=None, preferred=()):
    seen = seen or {}
    return PlayerPatternData(
        seen_patterns={
            pid: PatternExperience(pattern_id=pid, encounter_count=5, mastery_level=level)
            for pid, level in seen.items()
        },
        adaptability_score=adaptability,
        preferred_tags=tuple(preferred),
    )


def test_new_player_only_sees_highly_learnable_primitives_without_prerequisites():
    learnable = {p.id for p in CATALOG if is_learnable_for_player(p, None, CONFIG)}
    assert learnable == {"line3_horizontal", "line3_vertical", "cluster4_square", "line5_diagonal"}


def test_adaptable_player_gets_lower_bar_but_prerequisites_filter():
    data = _data(adaptability=1.0)
    learnable = {p.id for p in CATALOG if is_learnable_for_player(p, data, CONFIG)}
    assert "gravity_shift_diagonal" in learnable
    assert "teleport_maze" not in learnable
    assert "cluster9_complex" not in learnable


def test_competent_prerequisite_unlocks_primitive():
    data = _data(adaptability=1.0, seen={"cluster4_square": MasteryLevel.COMPETENT})
    assert is_learnable_for_player(_p("cluster9_complex"), data, CONFIG)

    novice = _data(adaptability=1.0, seen={"cluster4_square": MasteryLevel.NOVICE})
    assert not is_learnable_for_player(_p("cluster9_complex"), novice, CONFIG)


def test_experienced_primitive_always_passes():
    data = _data(adaptability=0.0, seen={"teleport_maze": MasteryLevel.NOVICE})
    assert is_learnable_for_player(_p("teleport_maze"), data, CONFIG)


def test_score_components():
    assert score_primitive(_p("line3_horizontal"), None, CONFIG) == pytest.approx(36.6)

    unseen = score_primitive(_p("cluster4_square"), _data(adaptability=0.5), CONFIG)
    assert unseen == pytest.approx(0.8 * 40 + 0.3 * 0.2 * 30 + 10.0)

    mastered = _data(seen={"cluster4_square": MasteryLevel.MASTER}, preferred=[PatternTag.CLUSTER])
    expected = 0.8 * 40 + 0.3 * 0.2 * 30 + 25.0 + 8.0
    assert score_primitive(_p("cluster4_square"), mastered, CONFIG) == pytest.approx(expected)


def test_forbidden_tags_rejected_in_both_directions():
    gravity, teleport = _p("gravity_shift_diagonal"), _p("teleport_maze")
    assert not is_compatible(teleport, [gravity])
    assert not is_compatible(gravity, [teleport])


def test_concurrency_cap_counts_primitives_sharing_tags():
    assert not is_compatible(_p("line5_diagonal"), [_p("line3_horizontal")])
    assert is_compatible(_p("line3_vertical"), [_p("line3_horizontal")])
    assert not is_compatible(_p("line3_vertical"), [_p("line3_horizontal"), _p("line3_horizontal")])


def test_rank_is_reproducible_for_a_seed():
    first = [c.primitive.id for c in rank_candidates(list(CATALOG), None, CONFIG, random.Random(3))]
    second = [c.primitive.id for c in rank_candidates(list(CATALOG), None, CONFIG, random.Random(3))]
    assert first == second
    scores = [c.score for c in rank_candidates(list(CATALOG), None, CONFIG, random.Random(3))]
    assert scores == sorted(scores, reverse=True)


def test_tutorial_selection_picks_one_easy_primitive():
    requirement = compute_stage_requirement(3)
    result = select_primitives(2.08, None, requirement, CATALOG, CONFIG, random.Random(0))
    assert len(result.primitives) == 1
    assert result.primitives[0].id in {"line3_horizontal", "line3_vertical"}
    assert result.remaining_budget == pytest.approx(0.88)


def test_large_budget_stops_at_max_patterns():
    requirement = compute_stage_requirement(10)
    result = select_primitives(20.0, None, requirement, CATALOG, CONFIG, random.Random(1))
    assert {p.id for p in result.primitives} == {"line3_horizontal", "line3_vertical", "cluster4_square"}
    assert result.candidates_considered == 4


def test_nothing_fits_reports_empty_selection():
    requirement = compute_stage_requirement(3)
    result = select_primitives(0.5, None, requirement, CATALOG, CONFIG, random.Random(0))
    assert result.is_empty
