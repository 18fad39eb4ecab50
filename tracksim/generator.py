"""
Entity generation for scenarios.

Two layouts:
- fixed: entities at pre-defined compass bearings / radius multipliers from the
  scenario center, for reproducible paired formations
- random: entities spread across 3-4 formation centers inside the scenario
  radius, one elevated-value leader per formation
"""

import math
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .entities import (
    Allegiance, Entity, ENEMY_AIRCRAFT, FRIENDLY_AIRCRAFT,
    clamp, lookup_aircraft, wrap_position,
)


# Call signs handed out in slot order
CALLSIGNS = [
    "BONG", "SATAN", "SCAT", "HOSS", "VIPER", "GHOST",
    "RAPTOR", "COBRA", "MAVERICK", "ICEMAN", "JESTER", "STINGER",
]

HIGH_VALUE_BONUS = 1.0

# Attribution = base + scale * threat/10 + jitter
ATTRIBUTION_BASE = 0.35
ATTRIBUTION_SCALE = 0.55
ATTRIBUTION_JITTER = 0.05


@dataclass(frozen=True)
class FormationSlot:
    """One fixed placement relative to the scenario center."""
    bearing_deg: float  # 0 = north, clockwise
    radius_mult: float
    allegiance: Allegiance
    aircraft_type: str
    high_value: bool = False


# Six friendly/enemy pairs sharing a bearing; friendlies hold the inner ring
DEFAULT_FORMATION = [
    FormationSlot(0, 0.45, Allegiance.FRIENDLY, "F-16V"),
    FormationSlot(0, 0.85, Allegiance.ENEMY, "SU-57", high_value=True),
    FormationSlot(60, 0.45, Allegiance.FRIENDLY, "F-35A"),
    FormationSlot(60, 0.85, Allegiance.ENEMY, "J-20"),
    FormationSlot(120, 0.45, Allegiance.FRIENDLY, "Mirage 2000-5"),
    FormationSlot(120, 0.85, Allegiance.ENEMY, "J-16"),
    FormationSlot(180, 0.45, Allegiance.FRIENDLY, "F-22", high_value=True),
    FormationSlot(180, 0.85, Allegiance.ENEMY, "SU-35"),
    FormationSlot(240, 0.45, Allegiance.FRIENDLY, "F-CK-1"),
    FormationSlot(240, 0.85, Allegiance.ENEMY, "J-10C"),
    FormationSlot(300, 0.45, Allegiance.FRIENDLY, "F-15E"),
    FormationSlot(300, 0.85, Allegiance.ENEMY, "JF-17"),
]


def strategic_value(threat: float, armament: float, bonus: float = 0.0) -> float:
    """Weighted composite of threat and armament, clamped to 1-10."""
    return clamp(threat * 0.6 + armament * 0.4 + bonus, 1.0, 10.0)


class EntityGenerator:
    """Builds the initial entity set for a scenario."""

    def __init__(self, rng_seed: Optional[int] = None):
        self.rng = random.Random(rng_seed)

    def attribution(self, threat: float) -> float:
        """Classification confidence for an enemy track."""
        jitter = self.rng.uniform(-ATTRIBUTION_JITTER, ATTRIBUTION_JITTER)
        return clamp(ATTRIBUTION_BASE + ATTRIBUTION_SCALE * threat / 10.0 + jitter, 0.0, 1.0)

    def create_jet(
        self,
        index: int,
        lat: float,
        lng: float,
        allegiance: Allegiance,
        aircraft_type: str,
        callsign: Optional[str] = None,
        high_value: bool = False,
        heading: float = 0.0,
    ) -> Entity:
        """Create a jet with attributes derived from its airframe."""
        airframe = lookup_aircraft(aircraft_type, allegiance)
        bonus = HIGH_VALUE_BONUS if high_value else 0.0
        threat = float(airframe.base_threat)
        armament = float(airframe.base_armament)
        lat, lng = wrap_position(lat, lng)

        return Entity(
            id=f"jet-{index}",
            allegiance=allegiance,
            type=airframe.type,
            lat=lat,
            lng=lng,
            threat_level=threat,
            armament_level=armament,
            strategic_value=strategic_value(threat, armament, bonus),
            callsign=callsign,
            attribution=self.attribution(threat) if allegiance == Allegiance.ENEMY else None,
            altitude=18000 + (index % 6) * 3000,
            speed=450 + (index % 5) * 75,
            heading=heading,
            high_value=high_value,
            last_updated=datetime.now(),
        )

    def fixed_layout(
        self,
        center: tuple[float, float],
        radius: float,
        slots: Optional[list[FormationSlot]] = None,
    ) -> list[Entity]:
        """Place one entity per slot at its bearing/radius from center."""
        slots = DEFAULT_FORMATION if slots is None else slots
        jets = []
        for index, slot in enumerate(slots):
            bearing = math.radians(slot.bearing_deg)
            lat = center[0] + radius * slot.radius_mult * math.cos(bearing)
            lng = center[1] + radius * slot.radius_mult * math.sin(bearing)
            jets.append(self.create_jet(
                index, lat, lng, slot.allegiance, slot.aircraft_type,
                callsign=CALLSIGNS[index % len(CALLSIGNS)],
                high_value=slot.high_value,
                # Tangent to the ring, so formations start circling
                heading=slot.bearing_deg + 90,
            ))
        return jets

    def random_layout(
        self,
        center: tuple[float, float],
        radius: float,
        count: int = 24,
    ) -> list[Entity]:
        """Spread ``count`` entities across 3-4 formation centers."""
        if count <= 0:
            return []

        n_formations = min(count, self.rng.randint(3, 4))
        formations = []
        for i in range(n_formations):
            bearing = self.rng.uniform(0, 2 * math.pi)
            dist = self.rng.uniform(0.2, 1.0) * radius
            formations.append({
                "lat": center[0] + dist * math.cos(bearing),
                "lng": center[1] + dist * math.sin(bearing),
                # Alternate sides so both heat sets are populated
                "allegiance": Allegiance.FRIENDLY if i % 2 == 0 else Allegiance.ENEMY,
                "heading": self.rng.uniform(0, 360),
            })

        jets = []
        per_formation, remainder = divmod(count, n_formations)
        index = 0
        for f_idx, formation in enumerate(formations):
            size = per_formation + (1 if f_idx < remainder else 0)
            pool = FRIENDLY_AIRCRAFT if formation["allegiance"] == Allegiance.FRIENDLY else ENEMY_AIRCRAFT
            for member in range(size):
                leader = member == 0
                if leader:
                    # Leaders fly the top-tier airframes
                    airframe = max(pool, key=lambda a: a.base_threat + a.base_armament)
                    lat, lng = formation["lat"], formation["lng"]
                else:
                    airframe = self.rng.choice(pool)
                    lat = formation["lat"] + self.rng.uniform(-0.25, 0.25) * radius
                    lng = formation["lng"] + self.rng.uniform(-0.25, 0.25) * radius
                jets.append(self.create_jet(
                    index, lat, lng, formation["allegiance"], airframe.type,
                    callsign=f"{CALLSIGNS[f_idx % len(CALLSIGNS)]}-{member + 1}",
                    high_value=leader,
                    heading=formation["heading"] + self.rng.uniform(-15, 15),
                ))
                index += 1
        return jets
