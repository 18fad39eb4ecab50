import math
import random

import pytest

from tracksim.entities import PlainPoint
from tracksim.generator import EntityGenerator
from tracksim.motion import (
    MIN_PARAM, CappedForwardMotion, EllipticalOrbit, MotionIntegrator, MotionKind,
    MotionSettings, normalize_angle,
)

TAIPEI = (25.047, 121.532)


class TestEllipticalOrbit:
    """Closed patrol ellipse."""

    def test_full_revolution_returns_to_start(self):
        # 2*pi / 0.01 ticks is not an integer, so use a speed that divides evenly
        steps = 400
        orbit = EllipticalOrbit(25.0, 121.0, radius_x=0.04, radius_y=0.02,
                                angular_speed=2 * math.pi / steps, angle=1.0)
        start = orbit.position()
        for _ in range(steps):
            orbit.advance()
        end = orbit.position()

        assert end[0] == pytest.approx(start[0], abs=1e-9)
        assert end[1] == pytest.approx(start[1], abs=1e-9)
        assert end[2] == pytest.approx(start[2], abs=1e-6)

    def test_angle_stays_normalized(self):
        orbit = EllipticalOrbit(25.0, 121.0, 0.04, 0.02, angular_speed=0.9, clockwise=True)
        for _ in range(100):
            orbit.advance()
            assert 0.0 <= orbit.angle < 2 * math.pi

    def test_clockwise_decreases_angle(self):
        cw = EllipticalOrbit(25.0, 121.0, 0.04, 0.02, angular_speed=0.1, angle=1.0, clockwise=True)
        ccw = EllipticalOrbit(25.0, 121.0, 0.04, 0.02, angular_speed=0.1, angle=1.0, clockwise=False)
        cw.advance()
        ccw.advance()
        assert cw.angle == pytest.approx(0.9)
        assert ccw.angle == pytest.approx(1.1)

    def test_heading_follows_tangent(self):
        # At angle 0 the track sits on the east end of the ellipse
        ccw = EllipticalOrbit(25.0, 121.0, 0.04, 0.02, angular_speed=0.1, angle=0.0)
        cw = EllipticalOrbit(25.0, 121.0, 0.04, 0.02, angular_speed=0.1, angle=0.0, clockwise=True)
        assert ccw.position()[2] == pytest.approx(0.0)  # moving north
        assert cw.position()[2] == pytest.approx(180.0)  # moving south

    def test_degenerate_parameters_are_clamped(self):
        orbit = EllipticalOrbit(25.0, 121.0, radius_x=0.0, radius_y=-0.01, angular_speed=0.0)
        assert orbit.radius_x == MIN_PARAM
        assert orbit.radius_y == pytest.approx(0.01)
        assert orbit.angular_speed == MIN_PARAM
        lat, lng, heading = orbit.advance()
        assert all(math.isfinite(v) for v in (lat, lng, heading))

    def test_around_widens_longitude_radius_by_latitude(self):
        settings = MotionSettings(orbit_radius_y_jitter=0.0, orbit_radius_x_jitter=0.0)
        orbit = EllipticalOrbit.around(60.0, 10.0, 0.5, settings, random.Random(1))
        base = settings.orbit_base_size + 0.5 * settings.orbit_intensity_size
        assert orbit.radius_y == pytest.approx(base)
        assert orbit.radius_x == pytest.approx(base * 2 / math.cos(math.radians(60.0)))


class TestCappedForwardMotion:
    """Curved transit that freezes at the tick cap."""

    def test_distance_is_monotone_and_freezes_at_cap(self):
        motion = CappedForwardMotion(25.0, 121.0, direction=math.radians(45), step=0.001,
                                     curvature=1.5, max_ticks=30)
        distances = []
        positions = []
        for _ in range(50):
            positions.append(motion.advance())
            distances.append(motion.distance)

        assert all(b >= a for a, b in zip(distances, distances[1:]))
        assert motion.ticks == 30
        assert motion.capped
        assert distances[29] == pytest.approx(0.03)
        assert len(set(distances[29:])) == 1
        assert len(set(positions[29:])) == 1

    def test_straight_line_without_curvature(self):
        motion = CappedForwardMotion(0.0, 0.0, direction=0.0, step=0.01, curvature=0.0)
        lat, lng, heading = motion.advance()
        assert lat == pytest.approx(0.01)
        assert lng == pytest.approx(0.0)
        assert heading == pytest.approx(0.0)

    def test_heading_turns_with_curvature(self):
        motion = CappedForwardMotion(25.0, 121.0, direction=0.0, step=0.01, curvature=2.0)
        for _ in range(10):
            _, _, heading = motion.advance()
        assert heading == pytest.approx(math.degrees(math.atan(2 * 2.0 * 0.1)))

    def test_zero_step_is_clamped(self):
        motion = CappedForwardMotion(25.0, 121.0, direction=0.0, step=0.0)
        assert motion.step == MIN_PARAM
        motion.advance()
        assert motion.distance > 0


class TestMotionIntegrator:
    def _jets(self):
        return EntityGenerator(rng_seed=5).fixed_layout(TAIPEI, 0.06)

    def test_step_returns_new_snapshot_without_mutating_previous(self):
        integrator = MotionIntegrator(rng_seed=1)
        first = integrator.reset(self._jets())
        before = [(p.lat, p.lng) for p in first]

        second = integrator.step()

        assert second is not first
        assert [(p.lat, p.lng) for p in first] == before
        assert [p.id for p in second] == [p.id for p in first]
        assert [(p.lat, p.lng) for p in second] != before

    def test_reset_restarts_motion_state(self):
        integrator = MotionIntegrator(kind=MotionKind.CAPPED_FORWARD, rng_seed=1)
        integrator.reset(self._jets())
        for _ in range(25):
            integrator.step()
        assert all(m.ticks == 25 for m in integrator.models.values())

        integrator.reset(self._jets()[:4])
        assert integrator.tick_count == 0
        assert len(integrator.models) == 4
        assert all(m.ticks == 0 and m.distance == 0.0 for m in integrator.models.values())

    def test_reset_is_reproducible_with_seed(self):
        integrator = MotionIntegrator(rng_seed=42)
        integrator.reset(self._jets())
        a = [integrator.step() for _ in range(5)][-1]
        integrator.reset(self._jets())
        b = [integrator.step() for _ in range(5)][-1]
        assert [(p.lat, p.lng) for p in a] == [(p.lat, p.lng) for p in b]

    def test_orbit_angles_restart_after_reset(self):
        integrator = MotionIntegrator(rng_seed=3)
        integrator.reset(self._jets())
        initial = {tid: m.angle for tid, m in integrator.models.items()}
        for _ in range(10):
            integrator.step()
        integrator.reset(self._jets())
        assert {tid: m.angle for tid, m in integrator.models.items()} == initial

    def test_plain_points_move_under_same_model(self):
        integrator = MotionIntegrator(rng_seed=1)
        integrator.reset([PlainPoint("p", 25.0, 121.0, intensity=0.5)])
        moved = integrator.step()[0]
        assert isinstance(moved, PlainPoint)
        assert (moved.lat, moved.lng) != (25.0, 121.0) or moved.heading != 0.0

    def test_duplicate_ids_are_rejected(self):
        integrator = MotionIntegrator()
        with pytest.raises(ValueError):
            integrator.reset([PlainPoint("p", 25.0, 121.0), PlainPoint("p", 25.1, 121.0)])


def test_normalize_angle_wraps_negative():
    assert normalize_angle(-0.5) == pytest.approx(2 * math.pi - 0.5)
    assert normalize_angle(2 * math.pi) == pytest.approx(0.0)


@pytest.mark.parametrize("kind", [MotionKind.ELLIPTICAL, MotionKind.CAPPED_FORWARD])
def test_tracks_crossing_the_antimeridian_or_pole_stay_valid(kind):
    integrator = MotionIntegrator(kind=kind, rng_seed=2)
    integrator.reset([
        PlainPoint("dateline", 10.0, 179.99, heading=90.0),
        PlainPoint("pole", 89.99, 0.0, heading=0.0),
    ])
    for _ in range(700):
        snapshot = integrator.step()
    for point in snapshot:
        assert -90.0 <= point.lat <= 90.0
        assert -180.0 <= point.lng < 180.0
