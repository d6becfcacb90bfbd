# ABOUTME: Repairs a primitive selection so it stays learnable and within the player's complexity ceiling.
# ABOUTME: Applies the empty-selection fallback, learnability repair ladder, and complexity simplification.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from src.common.config import GenerationConfig
from src.common.schemas import PatternPrimitive, PlayerPatternData

from .catalog import PrimitiveCatalog
from .selector import is_compatible

REPLACEMENT_LEARNABILITY_GAIN = 0.1
REPLACEMENT_DIFFICULTY_RATIO = 1.2


def combination_complexity(primitives: Sequence[PatternPrimitive]) -> float:
    """Sum of difficulties + 0.5 per distinct tag + 0.3 per primitive."""
    unique_tags = {tag for p in primitives for tag in p.tags}
    return sum(p.base_difficulty for p in primitives) + 0.5 * len(unique_tags) + 0.3 * len(primitives)


def mean_learnability(primitives: Sequence[PatternPrimitive]) -> float:
    if not primitives:
        return 0.0
    return sum(p.learnability for p in primitives) / len(primitives)


def learnability_floor(pattern_data: Optional[PlayerPatternData], config: GenerationConfig) -> float:
    return config.new_player_learnability if pattern_data is None else config.learnability_threshold


def complexity_ceiling(pattern_data: Optional[PlayerPatternData], config: GenerationConfig) -> float:
    if pattern_data is None:
        return config.default_complexity_ceiling
    return pattern_data.max_handled_complexity


@dataclass
class ValidationReport:
    repairs: List[str] = field(default_factory=list)

    def note(self, message: str) -> None:
        self.repairs.append(message)


def ensure_nonempty(
    primitives: Sequence[PatternPrimitive], catalog: PrimitiveCatalog, report: ValidationReport
) -> List[PatternPrimitive]:
    if primitives:
        return list(primitives)
    fallback = catalog.most_learnable()
    report.note(f"empty selection replaced by '{fallback.id}'")
    return [fallback]


def _find_replacement(
    worst: PatternPrimitive,
    rest: Sequence[PatternPrimitive],
    catalog: PrimitiveCatalog,
) -> Optional[PatternPrimitive]:
    taken = {p.id for p in rest} | {worst.id}
    for candidate in catalog:
        if candidate.id in taken:
            continue
        if candidate.learnability < worst.learnability + REPLACEMENT_LEARNABILITY_GAIN:
            continue
        if candidate.base_difficulty > worst.base_difficulty * REPLACEMENT_DIFFICULTY_RATIO:
            continue
        if is_compatible(candidate, rest):
            return candidate

    easiest = catalog.most_learnable()
    if easiest.id not in taken and easiest.learnability > worst.learnability and is_compatible(easiest, rest):
        return easiest
    return None


def ensure_learnability(
    primitives: Sequence[PatternPrimitive],
    floor: float,
    catalog: PrimitiveCatalog,
    report: ValidationReport,
) -> List[PatternPrimitive]:
    """
    Raise mean learnability to ``floor`` with a single-pass repair ladder.

    1. Swap the least learnable primitive for a comparable, easier one (or the
       catalog's most learnable primitive if that strictly helps).
    2. Trim the least learnable primitives, keeping at least one.
    3. Collapse to the catalog's most learnable primitive.
    """

    selection = list(primitives)
    if mean_learnability(selection) >= floor:
        return selection

    worst = min(selection, key=lambda p: p.learnability)
    rest = [p for p in selection if p is not worst]
    replacement = _find_replacement(worst, rest, catalog)
    if replacement is not None:
        selection[selection.index(worst)] = replacement
        report.note(f"replaced '{worst.id}' with '{replacement.id}'")
    if mean_learnability(selection) >= floor:
        return selection

    by_learnability = sorted(selection, key=lambda p: p.learnability, reverse=True)
    while len(by_learnability) > 1 and mean_learnability(by_learnability) < floor:
        dropped = by_learnability.pop()
        report.note(f"trimmed '{dropped.id}'")
    kept_ids = {p.id for p in by_learnability}
    selection = [p for p in selection if p.id in kept_ids]
    if mean_learnability(selection) >= floor:
        return selection

    easiest = catalog.most_learnable()
    if easiest.learnability > mean_learnability(selection):
        report.note(f"collapsed selection to '{easiest.id}'")
        return [easiest]
    return selection


def enforce_complexity(
    primitives: Sequence[PatternPrimitive],
    ceiling: float,
    report: ValidationReport,
) -> List[PatternPrimitive]:
    """Keep the most learnable primitives until the next one would exceed ``ceiling``."""
    if combination_complexity(primitives) <= ceiling:
        return list(primitives)

    ordered = sorted(primitives, key=lambda p: p.learnability, reverse=True)
    simplified: List[PatternPrimitive] = []
    for primitive in ordered:
        if combination_complexity(simplified + [primitive]) > ceiling:
            break
        simplified.append(primitive)

    if not simplified:
        simplified = [ordered[0]]
    dropped = [p.id for p in ordered[len(simplified):]]
    report.note(f"simplified to {len(simplified)} primitive(s), dropped {dropped}")
    return simplified


def validate_selection(
    primitives: Sequence[PatternPrimitive],
    pattern_data: Optional[PlayerPatternData],
    catalog: PrimitiveCatalog,
    config: GenerationConfig,
) -> Tuple[List[PatternPrimitive], ValidationReport]:
    report = ValidationReport()
    selection = ensure_nonempty(primitives, catalog, report)
    selection = ensure_learnability(selection, learnability_floor(pattern_data, config), catalog, report)
    selection = enforce_complexity(selection, complexity_ceiling(pattern_data, config), report)
    return selection, report
