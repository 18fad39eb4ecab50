from pathlib import Path

import pytest

from tracksim.motion import MotionKind
from tracksim.scenarios import DEFAULT_BOUNDS, DEFAULT_SCENARIOS, Scenario, ScenarioCatalog

DATA_PATH = Path(__file__).parent.parent / "data"


def test_builtin_scenarios_without_file(tmp_path):
    catalog = ScenarioCatalog(tmp_path)
    assert len(catalog) == len(DEFAULT_SCENARIOS)
    assert catalog.names()[0] == "Northern Taiwan"
    assert catalog.bounds == DEFAULT_BOUNDS


def test_yaml_scenarios_and_theatre(tmp_path):
    (tmp_path / "scenarios.yaml").write_text(
        "theatre:\n"
        "  bounds: [[20.0, 117.0], [27.0, 124.0]]\n"
        "  min_zoom: 6\n"
        "scenarios:\n"
        "  - name: Penghu\n"
        "    center: {lat: 23.57, lon: 119.58}\n"
        "    radius: 0.08\n"
        "  - name: Transit\n"
        "    center: [24.1, 119.4]\n"
        "    radius: 0.3\n"
        "    layout: random\n"
        "    count: 10\n"
        "    motion: capped_forward\n"
    )
    catalog = ScenarioCatalog(tmp_path)
    assert catalog.names() == ["Penghu", "Transit"]
    assert catalog.bounds == ((20.0, 117.0), (27.0, 124.0))
    assert catalog.min_zoom == 6
    assert catalog.get("Penghu").center == (23.57, 119.58)
    transit = catalog.get(1)
    assert transit.motion == MotionKind.CAPPED_FORWARD
    assert len(transit.build_entities()) == 10


def test_empty_yaml_falls_back(tmp_path, caplog):
    (tmp_path / "scenarios.yaml").write_text("scenarios: []\n")
    catalog = ScenarioCatalog(tmp_path)
    assert len(catalog) == len(DEFAULT_SCENARIOS)
    assert "No scenarios" in caplog.text


def test_bundled_catalog():
    catalog = ScenarioCatalog(DATA_PATH)
    assert "Northern Taiwan" in catalog.names()
    assert catalog.index_of("Northern Taiwan") == 0


def test_lookup_errors(tmp_path):
    catalog = ScenarioCatalog(tmp_path)
    with pytest.raises(KeyError):
        catalog.get("Atlantis")
    with pytest.raises(IndexError):
        catalog.get(99)


def test_fixed_layout_scenario_has_twelve_tracks():
    assert len(DEFAULT_SCENARIOS[0].build_entities()) == 12


@pytest.mark.parametrize("kwargs", [{"layout": "spiral"}, {"radius": 0}])
def test_invalid_scenario(kwargs):
    params = {"name": "x", "center": (25.0, 121.0), "radius": 0.1, **kwargs}
    with pytest.raises(ValueError):
        Scenario(**params)
