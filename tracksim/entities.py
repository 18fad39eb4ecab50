"""
Track model for the airspace heatmap simulation.

Two kinds of track point exist:
- Entity: a simulated fighter jet with allegiance, threat and kinematic attributes
- PlainPoint: a weighted heat point that carries no aircraft attributes

The kind is fixed by the class that builds the point, so renderers dispatch on
``point.kind`` instead of probing for attributes.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional, Union


class Allegiance(Enum):
    FRIENDLY = "friendly"
    ENEMY = "enemy"

    @classmethod
    def parse(cls, value) -> "Allegiance":
        """Accept enum members, "friendly"/"enemy" and the usual feed aliases."""
        if isinstance(value, Allegiance):
            return value
        key = str(value or "").strip().lower()
        if key in ("friendly", "friend", "blue", "own"):
            return cls.FRIENDLY
        if key in ("enemy", "hostile", "red", "foe"):
            return cls.ENEMY
        raise ValueError(f"Unknown allegiance: {value!r}")


@dataclass(frozen=True)
class AircraftType:
    """Base characteristics for an airframe."""
    type: str
    base_threat: int  # 1-10
    base_armament: int  # 1-10


# Enemy airframes with their base characteristics
ENEMY_AIRCRAFT = [
    AircraftType("SU-57", 9, 8),
    AircraftType("J-20", 8, 7),
    AircraftType("MiG-35", 7, 7),
    AircraftType("SU-35", 8, 8),
    AircraftType("J-16", 6, 7),
    AircraftType("J-10C", 6, 6),
    AircraftType("MiG-29", 5, 6),
    AircraftType("SU-30", 7, 7),
    AircraftType("JF-17", 4, 5),
    AircraftType("J-7", 3, 4),
]

FRIENDLY_AIRCRAFT = [
    AircraftType("F-22", 9, 8),
    AircraftType("F-35A", 9, 7),
    AircraftType("F-16V", 7, 7),
    AircraftType("F-15E", 7, 9),
    AircraftType("Mirage 2000-5", 6, 6),
    AircraftType("F-CK-1", 5, 5),
]

AIRCRAFT_TYPES = {a.type: a for a in ENEMY_AIRCRAFT + FRIENDLY_AIRCRAFT}


def lookup_aircraft(type_name: str, allegiance: Allegiance) -> AircraftType:
    """Find an airframe by name, falling back to the first of its side."""
    found = AIRCRAFT_TYPES.get(type_name)
    if found:
        return found
    pool = FRIENDLY_AIRCRAFT if allegiance == Allegiance.FRIENDLY else ENEMY_AIRCRAFT
    return pool[0]


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def normalize_heading(degrees: float) -> float:
    """Wrap a heading into [0, 360)."""
    heading = degrees % 360.0
    # -1e-17 % 360 rounds to 360.0
    return 0.0 if heading >= 360.0 else heading


def wrap_position(lat: float, lng: float) -> tuple[float, float]:
    """Clamp latitude to the poles and wrap longitude into [-180, 180)."""
    shifted = (lng + 180.0) % 360.0
    if shifted >= 360.0:
        shifted = 0.0
    return clamp(lat, -90.0, 90.0), shifted - 180.0


def _check_position(lat: float, lng: float):
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise ValueError(f"Position must be finite, got ({lat}, {lng})")
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"Latitude out of range: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise ValueError(f"Longitude out of range: {lng}")


@dataclass(frozen=True)
class PlainPoint:
    """A weighted heat point without aircraft attributes."""
    kind: ClassVar[str] = "plain"

    id: str
    lat: float
    lng: float
    allegiance: Allegiance = Allegiance.ENEMY
    intensity: float = 1.0  # 0-1
    attribution: Optional[float] = None  # 0-1, enemy only
    heading: float = 0.0

    def __post_init__(self):
        _check_position(self.lat, self.lng)
        if not 0.0 <= self.intensity <= 1.0:
            raise ValueError(f"Intensity out of range [0,1]: {self.intensity}")
        _check_attribution(self.allegiance, self.attribution)
        object.__setattr__(self, "heading", normalize_heading(self.heading))

    @property
    def strategic_value(self) -> float:
        """Intensity mapped onto the 1-10 strategic scale."""
        return clamp(self.intensity * 10.0, 1.0, 10.0)

    @property
    def weight(self) -> float:
        return self.intensity


@dataclass(frozen=True)
class Entity:
    """A simulated fighter jet track."""
    kind: ClassVar[str] = "jet"

    id: str
    allegiance: Allegiance
    type: str
    lat: float
    lng: float
    threat_level: float  # 1-10
    armament_level: float  # 1-10
    strategic_value: float  # 1-10, derived from threat and armament
    callsign: Optional[str] = None
    attribution: Optional[float] = None  # 0-1, enemy only
    altitude: float = 25000.0  # feet
    speed: float = 600.0  # knots
    heading: float = 0.0  # degrees
    high_value: bool = False
    last_updated: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        _check_position(self.lat, self.lng)
        for name in ("threat_level", "armament_level", "strategic_value"):
            value = getattr(self, name)
            if not 1.0 <= value <= 10.0:
                raise ValueError(f"{name} out of range [1,10]: {value}")
        _check_attribution(self.allegiance, self.attribution)
        object.__setattr__(self, "heading", normalize_heading(self.heading))

    @property
    def intensity(self) -> float:
        """Strategic value mapped onto the 0-1 heat scale."""
        return self.strategic_value / 10.0

    @property
    def weight(self) -> float:
        return self.intensity


def _check_attribution(allegiance: Allegiance, attribution: Optional[float]):
    if attribution is None:
        return
    if allegiance == Allegiance.FRIENDLY:
        raise ValueError("Friendly tracks carry no attribution score")
    if not 0.0 <= attribution <= 1.0:
        raise ValueError(f"Attribution out of range [0,1]: {attribution}")


TrackPoint = Union[PlainPoint, Entity]


def is_jet(point: TrackPoint) -> bool:
    return point.kind == Entity.kind


def track_from_record(record: dict) -> TrackPoint:
    """Build a track point from a feed/simulation record.

    Records that name an aircraft ``type`` become jets; everything else is a
    plain heat point. Raises ValueError/KeyError on malformed records.
    """
    track_id = str(record["id"])
    lat = float(record["lat"])
    lng = float(record["lng"] if "lng" in record else record["lon"])
    allegiance = Allegiance.parse(record.get("allegiance", record.get("side", "enemy")))
    attribution = record.get("attribution")
    if attribution is not None:
        attribution = float(attribution)
    if allegiance == Allegiance.FRIENDLY:
        attribution = None

    if "type" not in record:
        return PlainPoint(
            id=track_id,
            lat=lat,
            lng=lng,
            allegiance=allegiance,
            intensity=float(record.get("intensity", 1.0)),
            attribution=attribution,
            heading=float(record.get("heading", 0.0)),
        )

    airframe = lookup_aircraft(record["type"], allegiance)
    threat = float(record.get("threat_level", record.get("threatLevel", airframe.base_threat)))
    armament = float(record.get("armament_level", record.get("armamentLevel", airframe.base_armament)))
    strategic = record.get("strategic_value", record.get("strategicValue"))
    if strategic is None:
        strategic = clamp(threat * 0.6 + armament * 0.4, 1.0, 10.0)

    return Entity(
        id=track_id,
        allegiance=allegiance,
        type=str(record["type"]),
        lat=lat,
        lng=lng,
        threat_level=threat,
        armament_level=armament,
        strategic_value=float(strategic),
        callsign=record.get("callsign", record.get("call_sign")),
        attribution=attribution,
        altitude=float(record.get("altitude", 25000.0)),
        speed=float(record.get("speed", 600.0)),
        heading=float(record.get("heading", 0.0)),
    )


def track_to_dict(point: TrackPoint) -> dict:
    """Serialize a track point for the wire / HTML export."""
    data = {
        "id": point.id,
        "kind": point.kind,
        "allegiance": point.allegiance.value,
        "lat": round(point.lat, 6),
        "lng": round(point.lng, 6),
        "heading": round(point.heading, 1),
        "attribution": point.attribution,
        "strategic_value": round(point.strategic_value, 2),
    }
    if is_jet(point):
        data.update({
            "type": point.type,
            "callsign": point.callsign,
            "threat_level": point.threat_level,
            "armament_level": point.armament_level,
            "altitude": point.altitude,
            "speed": point.speed,
            "last_updated": point.last_updated.isoformat(),
        })
    else:
        data["intensity"] = point.intensity
    return data
