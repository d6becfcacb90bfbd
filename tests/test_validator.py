# ABOUTME: Tests selection repair: empty fallback, learnability repair ladder, and complexity simplification.
# ABOUTME: Builds small custom catalogs to force each rung of the repair ladder.

import unittest

from src.common.config import GenerationConfig
from src.common.schemas import PatternPrimitive, PatternTag, PlayerPatternData, SpawnRules
from src.pattern_gen.catalog import PrimitiveCatalog, default_catalog
from src.pattern_gen.validator import (
    ValidationReport,
    combination_complexity,
    complexity_ceiling,
    enforce_complexity,
    ensure_learnability,
    ensure_nonempty,
    learnability_floor,
    mean_learnability,
    validate_selection,
)


def _prim(pid, learnability, difficulty=1.0, tags=(PatternTag.LINE,), forbidden=()):
    return PatternPrimitive(
        id=pid,
        tags=tuple(tags),
        base_difficulty=difficulty,
        learnability=learnability,
        novelty=0.2,
        spawn_rules=SpawnRules(forbidden_with_tags=tuple(forbidden)),
    )


class TestValidatorHelpers(unittest.TestCase):
    def setUp(self):
        self.catalog = default_catalog()
        self.config = GenerationConfig()

    def test_combination_complexity_formula(self):
        line = self.catalog.get("line3_horizontal")
        self.assertAlmostEqual(combination_complexity([line]), 2.5)
        pair = [line, self.catalog.get("cluster4_square")]
        self.assertAlmostEqual(combination_complexity(pair), 3.3 + 0.5 * 4 + 0.6)

    def test_floor_and_ceiling_depend_on_player(self):
        self.assertEqual(learnability_floor(None, self.config), 0.7)
        self.assertEqual(learnability_floor(PlayerPatternData(), self.config), 0.3)
        self.assertEqual(complexity_ceiling(None, self.config), 3.0)
        self.assertEqual(complexity_ceiling(PlayerPatternData(max_handled_complexity=12.0), self.config), 12.0)
        lowered_limit = GenerationConfig(complexity_limit=2.0)
        self.assertEqual(complexity_ceiling(PlayerPatternData(max_handled_complexity=6.0), lowered_limit), 6.0)

    def test_empty_selection_falls_back_to_most_learnable(self):
        report = ValidationReport()
        repaired = ensure_nonempty([], self.catalog, report)
        self.assertEqual([p.id for p in repaired], ["line3_horizontal"])
        self.assertEqual(len(report.repairs), 1)


class TestLearnabilityLadder(unittest.TestCase):
    def test_swap_worst_for_comparable_easier_primitive(self):
        catalog = default_catalog()
        report = ValidationReport()
        repaired = ensure_learnability([catalog.get("gravity_shift_diagonal")], 0.7, catalog, report)
        self.assertEqual([p.id for p in repaired], ["line3_horizontal"])
        self.assertIn("replaced", report.repairs[0])

    def test_replacement_respects_combination_rules(self):
        catalog = default_catalog()
        selection = [catalog.get("line3_horizontal"), catalog.get("cluster9_complex"), catalog.get("teleport_maze")]
        repaired = ensure_learnability(selection, 0.7, catalog, ValidationReport())
        self.assertEqual(
            [p.id for p in repaired], ["line3_horizontal", "cluster9_complex", "line3_vertical"]
        )
        self.assertGreaterEqual(mean_learnability(repaired), 0.7)

    def test_trim_when_no_replacement_exists(self):
        a, b, c = _prim("a", 0.9), _prim("b", 0.2, tags=(PatternTag.CLUSTER,)), _prim("c", 0.2, tags=(PatternTag.GRAVITY,))
        catalog = PrimitiveCatalog([a, b, c])
        report = ValidationReport()
        repaired = ensure_learnability([a, b, c], 0.7, catalog, report)
        self.assertEqual(repaired, [a])
        self.assertEqual(sum(1 for r in report.repairs if r.startswith("trimmed")), 2)

    def test_collapse_to_most_learnable_as_last_resort(self):
        a = _prim("a", 0.9, difficulty=5.0, forbidden=(PatternTag.TELEPORT,))
        b = _prim("b", 0.3)
        c = _prim("c", 0.3, tags=(PatternTag.TELEPORT,))
        catalog = PrimitiveCatalog([a, b, c])
        report = ValidationReport()
        repaired = ensure_learnability([b, c], 0.7, catalog, report)
        self.assertEqual(repaired, [a])
        self.assertTrue(report.repairs[-1].startswith("collapsed"))

    def test_selection_above_floor_is_untouched(self):
        catalog = default_catalog()
        selection = [catalog.get("teleport_maze")]
        report = ValidationReport()
        self.assertEqual(ensure_learnability(selection, 0.3, catalog, report), selection)
        self.assertEqual(report.repairs, [])


class TestComplexityCeiling(unittest.TestCase):
    def test_simplify_keeps_most_learnable_until_first_exceed(self):
        catalog = default_catalog()
        selection = [catalog.get("cluster4_square"), catalog.get("line3_horizontal"), catalog.get("line3_vertical")]
        simplified = enforce_complexity(selection, 3.0, ValidationReport())
        self.assertEqual([p.id for p in simplified], ["line3_horizontal"])

    def test_single_primitive_kept_even_above_ceiling(self):
        cluster = default_catalog().get("cluster4_square")
        self.assertEqual(enforce_complexity([cluster], 1.0, ValidationReport()), [cluster])

    def test_validate_selection_reports_every_repair(self):
        catalog = default_catalog()
        primitives, report = validate_selection([], None, catalog, GenerationConfig())
        self.assertEqual([p.id for p in primitives], ["line3_horizontal"])
        self.assertEqual(len(report.repairs), 1)
