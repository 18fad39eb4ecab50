"""
Per-tick motion models and the integrator that drives them.

Models:
- EllipticalOrbit: closed patrol ellipse around the entity's start point
- CappedForwardMotion: slightly curved transit that freezes after a tick cap

Each model owns only its own parameters, so a tick is O(1) per entity.
"""

import math
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from .entities import TrackPoint, normalize_heading, wrap_position

TWO_PI = 2 * math.pi

# Radii, angular speeds and steps never go below this
MIN_PARAM = 1e-6


class MotionKind(Enum):
    ELLIPTICAL = "elliptical"
    CAPPED_FORWARD = "capped_forward"


@dataclass
class MotionSettings:
    """Tunable ranges for motion model initialization."""
    # Elliptical orbit (degrees)
    orbit_base_size: float = 0.015
    orbit_intensity_size: float = 0.01
    orbit_radius_y_jitter: float = 0.015
    orbit_radius_x_jitter: float = 0.02
    orbit_speed_min: float = 0.01  # radians per tick
    orbit_speed_jitter: float = 0.01
    # Capped forward transit
    forward_step: float = 0.0004  # degrees per tick at 600 kts
    forward_curvature: float = 2.0  # max |curvature|, 1/degree
    forward_max_ticks: int = 400


def normalize_angle(angle: float) -> float:
    """Keep an angle in [0, 2*pi)."""
    wrapped = angle % TWO_PI
    return 0.0 if wrapped >= TWO_PI else wrapped


def _lng_scale(lat: float) -> float:
    # Longitude degrees shrink with cos(lat); avoid blow-up near the poles
    return max(math.cos(math.radians(lat)), 1e-3)


class MotionModel(ABC):
    """Advances one entity by one tick."""

    @abstractmethod
    def position(self) -> tuple[float, float, float]:
        """Current (lat, lng, heading) without advancing."""

    @abstractmethod
    def advance(self) -> tuple[float, float, float]:
        """Advance one tick and return the new (lat, lng, heading)."""


@dataclass
class EllipticalOrbit(MotionModel):
    """Closed elliptical patrol.

    lat = center_lat + radius_y * sin(angle)
    lng = center_lng + radius_x * cos(angle)

    ``clockwise`` is the direction as seen on a north-up map, so the angle
    decreases when it is set.
    """
    center_lat: float
    center_lng: float
    radius_x: float  # longitude degrees, already divided by cos(lat)
    radius_y: float  # latitude degrees
    angular_speed: float  # radians per tick
    angle: float = 0.0
    clockwise: bool = False

    def __post_init__(self):
        self.radius_x = max(abs(self.radius_x), MIN_PARAM)
        self.radius_y = max(abs(self.radius_y), MIN_PARAM)
        self.angular_speed = max(abs(self.angular_speed), MIN_PARAM)
        self.angle = normalize_angle(self.angle)

    @classmethod
    def around(cls, lat: float, lng: float, intensity: float,
               settings: MotionSettings, rng: random.Random) -> "EllipticalOrbit":
        """Randomized orbit centered on a start point.

        Higher-intensity tracks fly slightly larger patterns; the longitude
        radius is widened by 1/cos(lat) so the ellipse keeps its shape.
        """
        base = settings.orbit_base_size + intensity * settings.orbit_intensity_size
        radius_y = base + rng.random() * settings.orbit_radius_y_jitter
        radius_x = (base * 2 + rng.random() * settings.orbit_radius_x_jitter) / _lng_scale(lat)
        return cls(
            center_lat=lat,
            center_lng=lng,
            radius_x=radius_x,
            radius_y=radius_y,
            angular_speed=settings.orbit_speed_min + rng.random() * settings.orbit_speed_jitter,
            angle=rng.random() * TWO_PI,
            clockwise=rng.random() > 0.5,
        )

    @property
    def direction(self) -> int:
        return -1 if self.clockwise else 1

    def position(self) -> tuple[float, float, float]:
        sin_a, cos_a = math.sin(self.angle), math.cos(self.angle)
        lat = self.center_lat + self.radius_y * sin_a
        lng = self.center_lng + self.radius_x * cos_a

        # Tangent from d/dt of the parametric ellipse
        d_lat = self.radius_y * cos_a * self.direction
        d_lng = -self.radius_x * sin_a * self.direction
        d_east = d_lng * _lng_scale(lat)
        heading = normalize_heading(math.degrees(math.atan2(d_east, d_lat)))
        return lat, lng, heading

    def advance(self) -> tuple[float, float, float]:
        self.angle = normalize_angle(self.angle + self.direction * self.angular_speed)
        return self.position()


@dataclass
class CappedForwardMotion(MotionModel):
    """Slightly curved forward transit with a hard tick cap.

    s = step * ticks
    pos = start + forward(direction) * s + right(direction) * curvature * s^2
    heading = direction + atan(2 * curvature * s)

    Once ``ticks`` reaches ``max_ticks`` the entity holds its last position.
    """
    start_lat: float
    start_lng: float
    direction: float  # radians, 0 = north, clockwise
    step: float  # degrees per tick
    curvature: float = 0.0
    max_ticks: int = 400
    ticks: int = 0
    distance: float = field(default=0.0)

    def __post_init__(self):
        self.step = max(abs(self.step), MIN_PARAM)
        self.max_ticks = max(int(self.max_ticks), 0)

    @classmethod
    def heading_out(cls, lat: float, lng: float, heading_deg: float, speed_kts: float,
                    settings: MotionSettings, rng: random.Random) -> "CappedForwardMotion":
        """Transit along the entity's current heading, scaled by its speed."""
        return cls(
            start_lat=lat,
            start_lng=lng,
            direction=math.radians(heading_deg),
            step=settings.forward_step * max(speed_kts, 1.0) / 600.0,
            curvature=rng.uniform(-settings.forward_curvature, settings.forward_curvature),
            max_ticks=settings.forward_max_ticks,
        )

    @property
    def capped(self) -> bool:
        return self.ticks >= self.max_ticks

    def position(self) -> tuple[float, float, float]:
        s = self.distance
        bend = self.curvature * s * s
        fwd_n, fwd_e = math.cos(self.direction), math.sin(self.direction)
        # Right-hand perpendicular of (north, east) forward vector
        right_n, right_e = -fwd_e, fwd_n

        lat = self.start_lat + fwd_n * s + right_n * bend
        east = fwd_e * s + right_e * bend
        lng = self.start_lng + east / _lng_scale(self.start_lat)
        heading = normalize_heading(
            math.degrees(self.direction + math.atan(2 * self.curvature * s))
        )
        return lat, lng, heading

    def advance(self) -> tuple[float, float, float]:
        if not self.capped:
            self.ticks += 1
            self.distance = self.step * self.ticks
        return self.position()


class MotionIntegrator:
    """Owns every entity's motion state and produces one snapshot per tick.

    The snapshot is a fresh tuple each tick; points are frozen and replaced,
    never mutated, so a renderer holding the previous snapshot is unaffected.
    """

    def __init__(
        self,
        kind: MotionKind = MotionKind.ELLIPTICAL,
        settings: Optional[MotionSettings] = None,
        rng_seed: Optional[int] = None,
    ):
        self.kind = kind
        self.settings = settings or MotionSettings()
        self.rng_seed = rng_seed
        self.rng = random.Random(rng_seed)
        self.models: dict[str, MotionModel] = {}
        self.snapshot: tuple[TrackPoint, ...] = ()
        self.tick_count = 0

    def _build_model(self, point: TrackPoint) -> MotionModel:
        if self.kind == MotionKind.ELLIPTICAL:
            return EllipticalOrbit.around(
                point.lat, point.lng, point.intensity, self.settings, self.rng
            )
        speed = point.speed if point.kind == "jet" else 600.0
        return CappedForwardMotion.heading_out(
            point.lat, point.lng, point.heading, speed, self.settings, self.rng
        )

    def reset(self, points: Iterable[TrackPoint],
              kind: Optional[MotionKind] = None) -> tuple[TrackPoint, ...]:
        """Discard all motion state and initialize models for ``points``."""
        if kind is not None:
            self.kind = kind
        self.rng = random.Random(self.rng_seed)
        self.models = {}
        self.tick_count = 0

        placed = []
        for point in points:
            if point.id in self.models:
                raise ValueError(f"Duplicate track id: {point.id}")
            model = self._build_model(point)
            self.models[point.id] = model
            placed.append(self._place(point, model.position()))
        self.snapshot = tuple(placed)
        return self.snapshot

    def step(self) -> tuple[TrackPoint, ...]:
        """Advance every model one tick and swap in the new snapshot."""
        now = datetime.now()
        updated = []
        for point in self.snapshot:
            state = self.models[point.id].advance()
            updated.append(self._place(point, state, now))
        self.tick_count += 1
        self.snapshot = tuple(updated)
        return self.snapshot

    @staticmethod
    def _place(point: TrackPoint, state: tuple[float, float, float],
               now: Optional[datetime] = None) -> TrackPoint:
        lat, lng, heading = state
        lat, lng = wrap_position(lat, lng)
        if point.kind == "jet":
            return replace(point, lat=lat, lng=lng, heading=heading,
                           last_updated=now or point.last_updated)
        return replace(point, lat=lat, lng=lng, heading=heading)
