import asyncio
import json

import pytest

from tracksim.config import SimConfig
from tracksim.feed import SimulationFeed
from tracksim.markers import MarkerRenderer
from tracksim.motion import CappedForwardMotion, EllipticalOrbit, MotionKind
from tracksim.scenarios import ScenarioCatalog
from tracksim.simulation import Simulation, SimulationMode
from tracksim.surface import HeatOverlay, Marker


@pytest.fixture
def catalog(tmp_path):
    # Empty data dir -> built-in scenarios
    return ScenarioCatalog(tmp_path)


@pytest.fixture
def sim(catalog):
    sim = Simulation(catalog, config=SimConfig(rng_seed=1, tick_interval=0.001, ready_timeout=0.01))
    sim.surface.mark_ready()
    return sim


def test_select_scenario_builds_entities_and_view(sim):
    snapshot = sim.select_scenario("Northern Taiwan")

    assert len(snapshot) == 12
    assert sim.surface.center == (25.047, 121.532)
    assert len(sim.surface.layers_of(Marker.layer_type)) == 12
    assert len(sim.surface.layers_of(HeatOverlay.layer_type)) == 3


def test_motion_kind_comes_from_scenario(sim):
    sim.select_scenario("Northern Taiwan")
    assert all(isinstance(m, EllipticalOrbit) for m in sim.integrator.models.values())

    sim.select_scenario("Strait Transit")
    assert sim.scenario.motion == MotionKind.CAPPED_FORWARD
    assert all(isinstance(m, CappedForwardMotion) for m in sim.integrator.models.values())


def test_scenario_switch_resets_motion_state(sim):
    sim.select_scenario("Strait Transit")
    for _ in range(30):
        sim.tick()
    assert all(m.ticks == 30 for m in sim.integrator.models.values())

    sim.select_scenario("Strait Transit")
    assert sim.tick_count == 0
    assert all(m.ticks == 0 and m.distance == 0.0 for m in sim.integrator.models.values())


def test_marker_cardinality_matches_snapshot_across_switch(sim):
    sim.select_scenario("Strait Transit")
    for _ in range(3):
        sim.tick()
        assert len(sim.surface.layers_of(Marker.layer_type)) == len(sim.snapshot) == 24

    sim.select_scenario("Eastern Taiwan")
    assert len(sim.surface.layers_of(Marker.layer_type)) == len(sim.snapshot) == 12
    sim.tick()
    assert len(sim.surface.layers_of(Marker.layer_type)) == 12


def test_tick_swaps_snapshot_and_notifies(sim):
    seen = []
    sim.on_tick = seen.append
    sim.select_scenario(0)
    before = sim.snapshot

    after = sim.tick()

    assert after is not before
    assert seen[-1] is after
    assert sim.tick_count == 1


def test_tick_without_scenario_raises(sim):
    with pytest.raises(RuntimeError):
        sim.tick()


def test_run_and_stop_tear_everything_down(catalog):
    sim = Simulation(catalog, config=SimConfig(rng_seed=1, tick_interval=0.001, ready_timeout=0.01))

    async def scenario():
        sim.select_scenario(0)
        sim.start()
        await asyncio.sleep(0.05)
        assert sim.running
        assert sim.tick_count > 0
        await sim.stop()

    asyncio.run(scenario())

    assert not sim.running
    assert sim.surface.layers == []
    assert MarkerRenderer.STYLE_OWNER not in sim.surface.stylesheets
    assert sim.snapshot == ()
    assert sim.integrator.models == {}
    assert sim.scenario is None


def test_run_renders_heat_after_readiness_fallback(catalog):
    sim = Simulation(catalog, config=SimConfig(rng_seed=1, tick_interval=0.001, ready_timeout=0.01))
    sim.select_scenario(0)
    # Surface never signalled: heat is parked, markers are drawn
    assert sim.surface.layers_of(HeatOverlay.layer_type) == []
    assert sim.heat.pending is not None

    asyncio.run(sim.run(max_ticks=3))

    assert sim.surface.ready.fallback_used
    assert len(sim.surface.layers_of(HeatOverlay.layer_type)) == 3
    assert sim.tick_count == 3


def _write_feed(path, steps):
    path.write_text(json.dumps({"Timesteps": steps}))
    return path


def test_replay_mode_consumes_one_timestep_per_tick(catalog, tmp_path):
    steps = [
        {"entities": [{"id": "a", "lat": 25.0, "lng": 121.0, "intensity": 0.5}],
         "message": {"action": "Spotted", "vehicle": "Drone", "call_sign": "Eye", "category": "Good"}},
        {"entities": [{"id": "a", "lat": 25.1, "lng": 121.0, "intensity": 0.5},
                      {"id": "b", "type": "J-20", "lat": 25.2, "lng": 121.1, "attribution": 0.9}]},
    ]
    feed = SimulationFeed.load(_write_feed(tmp_path / "sim.json", steps))
    sim = Simulation(catalog, config=SimConfig(ready_timeout=0.01), feed=feed)
    sim.surface.mark_ready()

    assert sim.mode == SimulationMode.REPLAY
    sim.select_scenario(0)
    assert [p.id for p in sim.snapshot] == ["a"]
    assert len(sim.message_log) == 1

    sim.tick()
    assert [p.id for p in sim.snapshot] == ["a", "b"]
    assert len(sim.surface.layers_of(Marker.layer_type)) == 2

    assert feed.exhausted
    asyncio.run(sim.run())
    assert sim.tick_count == 1


def test_failed_tick_is_logged_and_stop_still_tears_down(sim, caplog):
    def broken_step():
        raise ValueError("bad position")

    async def scenario():
        sim.select_scenario(0)
        sim.integrator.step = broken_step
        sim.start()
        await asyncio.sleep(0.03)
        assert sim.running
        await sim.stop()

    asyncio.run(scenario())

    assert "failed" in caplog.text
    assert sim.surface.layers == []
    assert MarkerRenderer.STYLE_OWNER not in sim.surface.stylesheets
    assert sim.snapshot == ()


def test_stop_drops_parked_heat_snapshot(catalog):
    sim = Simulation(catalog, config=SimConfig(rng_seed=1, ready_timeout=0.01))
    sim.select_scenario(0)
    assert sim.heat.pending is not None

    asyncio.run(sim.stop())
    sim.surface.mark_ready()

    assert sim.heat.pending is None
    assert sim.heat.flush() == []
    assert sim.surface.layers == []
