import pytest

from tracksim.entities import Allegiance, Entity, PlainPoint
from tracksim.generator import EntityGenerator
from tracksim.markers import (
    TOOLTIP_CSS, IconRegistry, MarkerRenderer, build_tooltip, default_icon_registry, jet_icon,
)
from tracksim.motion import MotionIntegrator
from tracksim.styling import classify
from tracksim.surface import MapSurface, Marker

TAIPEI = (25.047, 121.532)


def _renderer(**kwargs):
    surface = MapSurface(TAIPEI)
    return surface, MarkerRenderer(surface, default_icon_registry(), **kwargs)


def _jets(count=None):
    jets = EntityGenerator(rng_seed=4).fixed_layout(TAIPEI, 0.06)
    return tuple(jets if count is None else jets[:count])


def test_one_marker_per_track():
    surface, renderer = _renderer()
    snapshot = _jets()
    renderer.render(snapshot)

    assert set(renderer.markers) == {p.id for p in snapshot}
    assert len(surface.layers_of(Marker.layer_type)) == len(snapshot)


def test_markers_follow_ticks_in_place():
    surface, renderer = _renderer()
    integrator = MotionIntegrator(rng_seed=1)
    renderer.render(integrator.reset(_jets()))
    first = dict(renderer.markers)

    snapshot = integrator.step()
    renderer.render(snapshot)

    for point in snapshot:
        marker = renderer.markers[point.id]
        assert marker is first[point.id]
        assert (marker.lat, marker.lng) == (point.lat, point.lng)
        assert marker.rotation == point.heading
    assert len(surface.layers_of(Marker.layer_type)) == len(snapshot)


@pytest.mark.parametrize("in_place", [True, False])
def test_cardinality_across_scenario_switch(in_place):
    surface, renderer = _renderer(in_place=in_place)
    renderer.render(_jets())
    assert len(surface.layers_of(Marker.layer_type)) == 12

    smaller = _jets(5)
    renderer.render(smaller)
    assert len(surface.layers_of(Marker.layer_type)) == 5
    assert set(renderer.markers) == {p.id for p in smaller}

    larger = tuple(EntityGenerator(rng_seed=9).random_layout(TAIPEI, 0.3, count=20))
    renderer.render(larger)
    assert len(surface.layers_of(Marker.layer_type)) == 20


def test_stale_markers_are_removed_in_same_render():
    surface, renderer = _renderer()
    snapshot = _jets(3)
    renderer.render(snapshot)
    dropped = renderer.markers[snapshot[2].id]

    renderer.render(snapshot[:2])

    assert snapshot[2].id not in renderer.markers
    assert not surface.has_layer(dropped)


def test_marker_icon_comes_from_classification():
    _, renderer = _renderer()
    snapshot = _jets()
    renderer.render(snapshot)
    for point in snapshot:
        style = classify(point)
        icon = renderer.markers[point.id].icon
        assert style.color in icon.html
        assert icon.size == (style.icon_size, style.icon_size)


def test_stylesheet_is_scoped_to_renderer():
    surface, renderer = _renderer()
    renderer.render(_jets())
    assert surface.stylesheets[MarkerRenderer.STYLE_OWNER] == TOOLTIP_CSS

    renderer.detach()

    assert MarkerRenderer.STYLE_OWNER not in surface.stylesheets
    assert surface.layers_of(Marker.layer_type) == []
    assert renderer.markers == {}


def test_unknown_track_kind_raises():
    registry = IconRegistry({"jet": jet_icon})
    point = PlainPoint("p", 25.0, 121.0)
    with pytest.raises(KeyError):
        registry.icon_for(point, classify(point))


def test_registries_are_independent():
    a = default_icon_registry()
    b = default_icon_registry()
    a.register("jet", lambda style: None)
    jet = _jets(1)[0]
    assert b.icon_for(jet, classify(jet)).name == "jet"


class TestTooltip:
    def _enemy(self, attribution):
        return Entity(
            id="e", allegiance=Allegiance.ENEMY, type="J-20", lat=25.0, lng=121.0,
            threat_level=8, armament_level=7, strategic_value=7.6, callsign="SATAN",
            attribution=attribution, altitude=32000, speed=640, heading=95,
        )

    def test_enemy_tooltip_fields(self):
        text = build_tooltip(self._enemy(0.87))
        assert "J-20 - SATAN" in text
        assert "[ENEMY]" in text
        assert "Threat: 8.0/10" in text
        assert "Armament: 7.0/10" in text
        assert "Attribution: 87%" in text
        assert "Alt: 32,000 ft" in text
        assert "Speed: 640 kts" in text
        assert "Heading: 95°" in text

    def test_attribution_line_only_when_present(self):
        assert "Attribution" not in build_tooltip(self._enemy(None))
        friendly = Entity(
            id="f", allegiance=Allegiance.FRIENDLY, type="F-16V", lat=25.0, lng=121.0,
            threat_level=7, armament_level=7, strategic_value=7, callsign="BONG",
        )
        text = build_tooltip(friendly)
        assert "[FRIENDLY]" in text
        assert "Attribution" not in text

    def test_tooltip_escapes_html(self):
        jet = Entity(
            id="x", allegiance=Allegiance.ENEMY, type="<b>J-20</b>", lat=25.0, lng=121.0,
            threat_level=5, armament_level=5, strategic_value=5,
        )
        assert "<b>J-20</b>" not in build_tooltip(jet)
