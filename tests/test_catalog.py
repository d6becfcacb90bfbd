# ABOUTME: Tests the primitive catalog indices, default library, and YAML loader.
# ABOUTME: Confirms catalog construction rejects duplicate, empty, and out-of-range definitions.

from pathlib import Path

import pytest

from src.common.errors import ConfigurationError
from src.common.schemas import DifficultyBand, PatternPrimitive, PatternTag
from src.pattern_gen.catalog import PrimitiveCatalog, default_catalog, default_primitives, load_catalog

CONFIG_DIR = Path(__file__).resolve().parents[1] / "configs"


def _primitive(pid: str, learnability: float = 0.5, difficulty: float = 1.0) -> PatternPrimitive:
    return PatternPrimitive(
        id=pid,
        tags=(PatternTag.LINE,),
        base_difficulty=difficulty,
        learnability=learnability,
        novelty=0.1,
    )


def test_default_catalog_has_seven_primitives():
    catalog = default_catalog()
    assert len(catalog) == 7
    assert "teleport_maze" in catalog
    assert catalog.get("missing") is None


def test_tag_index_lists_line_primitives():
    catalog = default_catalog()
    line_ids = {p.id for p in catalog.by_tag(PatternTag.LINE)}
    assert line_ids == {"line3_horizontal", "line3_vertical", "line5_diagonal"}
    assert isinstance(catalog.by_tag(PatternTag.LINE), tuple)


@pytest.mark.parametrize(
    "band,expected",
    [
        (DifficultyBand.EASY, {"line3_horizontal", "line3_vertical"}),
        (DifficultyBand.MEDIUM, {"cluster4_square", "line5_diagonal"}),
        (DifficultyBand.HARD, {"gravity_shift_diagonal", "cluster9_complex"}),
        (DifficultyBand.EXPERT, {"teleport_maze"}),
    ],
)
def test_band_index(band, expected):
    assert {p.id for p in default_catalog().by_band(band)} == expected


def test_most_learnable_prefers_catalog_order_on_ties():
    assert default_catalog().most_learnable().id == "line3_horizontal"


def test_duplicate_ids_rejected():
    with pytest.raises(ConfigurationError):
        PrimitiveCatalog([_primitive("a"), _primitive("a")])


def test_empty_catalog_rejected():
    with pytest.raises(ConfigurationError):
        PrimitiveCatalog([])


@pytest.mark.parametrize("field,value", [("learnability", 1.2), ("novelty", -0.1), ("base_difficulty", -1.0)])
def test_out_of_range_primitive_rejected(field, value):
    kwargs = dict(id="bad", tags=(PatternTag.LINE,), base_difficulty=1.0, learnability=0.5, novelty=0.5)
    kwargs[field] = value
    with pytest.raises(ConfigurationError):
        PatternPrimitive(**kwargs)


def test_yaml_catalog_matches_default_library():
    loaded = load_catalog(CONFIG_DIR / "primitives.yaml")
    assert [p.to_dict() for p in loaded] == [p.to_dict() for p in default_primitives()]


def test_yaml_catalog_without_primitives_rejected(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("primitives: []\n")
    with pytest.raises(ConfigurationError):
        load_catalog(path)


def test_unknown_tag_rejected():
    with pytest.raises(ConfigurationError):
        PatternPrimitive.from_dict(
            {"id": "x", "tags": ["wormhole"], "base_difficulty": 1.0, "learnability": 0.5}
        )
