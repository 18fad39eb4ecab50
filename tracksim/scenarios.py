"""
Scenario catalog.

Scenarios are loaded from data/scenarios.yaml when present; otherwise the
built-in Taiwan theatre set is used.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

import yaml

from .entities import TrackPoint
from .generator import EntityGenerator
from .motion import MotionKind

logger = logging.getLogger(__name__)

# Panning limits for the Taiwan theatre
DEFAULT_BOUNDS = ((21.5, 118.0), (26.5, 123.0))
DEFAULT_MIN_ZOOM = 7


@dataclass(frozen=True)
class Viewport:
    center: tuple[float, float]
    zoom: int = 8


@dataclass(frozen=True)
class Scenario:
    """A named scenario: where, how many, which layout and motion model."""
    name: str
    center: tuple[float, float]
    radius: float
    layout: str = "fixed"  # "fixed" | "random"
    count: Optional[int] = None  # random layout only
    motion: MotionKind = MotionKind.ELLIPTICAL
    zoom: int = 8
    seed: Optional[int] = None

    def __post_init__(self):
        if self.layout not in ("fixed", "random"):
            raise ValueError(f"Unknown layout {self.layout!r} in scenario {self.name}")
        if self.radius <= 0:
            raise ValueError(f"Scenario {self.name} needs a positive radius")

    @property
    def viewport(self) -> Viewport:
        return Viewport(self.center, self.zoom)

    def build_entities(self, generator: Optional[EntityGenerator] = None) -> list[TrackPoint]:
        """Run the generator for this scenario."""
        generator = generator or EntityGenerator(self.seed)
        if self.layout == "random":
            return generator.random_layout(self.center, self.radius, self.count or 24)
        return generator.fixed_layout(self.center, self.radius)

    @classmethod
    def from_dict(cls, data: dict) -> "Scenario":
        center = data["center"]
        if isinstance(center, dict):
            center = (center["lat"], center.get("lng", center.get("lon")))
        return cls(
            name=data["name"],
            center=(float(center[0]), float(center[1])),
            radius=float(data.get("radius", 0.06)),
            layout=data.get("layout", "fixed"),
            count=data.get("count"),
            motion=MotionKind(data.get("motion", MotionKind.ELLIPTICAL.value)),
            zoom=int(data.get("zoom", 8)),
            seed=data.get("seed"),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "center": list(self.center),
            "radius": self.radius,
            "layout": self.layout,
            "count": self.count,
            "motion": self.motion.value,
            "zoom": self.zoom,
        }


DEFAULT_SCENARIOS = [
    Scenario("Northern Taiwan", (25.047, 121.532), 0.06),  # Taipei area
    Scenario("Eastern Taiwan", (23.993, 121.601), 0.05),  # Hualien area
    Scenario("Southern Taiwan", (22.997, 120.212), 0.065),  # Tainan area
    Scenario("Taiwan Strait", (24.150, 119.500), 0.07),
    Scenario("Strait Transit", (24.150, 119.500), 0.4, layout="random", count=24,
             motion=MotionKind.CAPPED_FORWARD, zoom=8),
]


class ScenarioCatalog:
    """Finite, ordered list of selectable scenarios."""

    def __init__(self, data_path: Path | str = "data"):
        self.data_path = Path(data_path)
        self.bounds = DEFAULT_BOUNDS
        self.min_zoom = DEFAULT_MIN_ZOOM
        self.scenarios: list[Scenario] = []
        self._load()

    def _load(self):
        path = self.data_path / "scenarios.yaml"
        if not path.exists():
            self.scenarios = list(DEFAULT_SCENARIOS)
            return

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        theatre = data.get("theatre", {})
        if "bounds" in theatre:
            south_west, north_east = theatre["bounds"]
            self.bounds = (tuple(south_west), tuple(north_east))
        self.min_zoom = theatre.get("min_zoom", self.min_zoom)

        self.scenarios = [Scenario.from_dict(s) for s in data.get("scenarios", [])]
        if not self.scenarios:
            logger.warning(f"No scenarios in {path}, using built-in set")
            self.scenarios = list(DEFAULT_SCENARIOS)
        logger.info(f"Loaded {len(self.scenarios)} scenarios from {path}")

    def __len__(self) -> int:
        return len(self.scenarios)

    def __iter__(self) -> Iterator[Scenario]:
        return iter(self.scenarios)

    def names(self) -> list[str]:
        return [s.name for s in self.scenarios]

    def get(self, key: Union[int, str]) -> Scenario:
        """Look up a scenario by index or name."""
        if isinstance(key, int):
            return self.scenarios[key]
        for scenario in self.scenarios:
            if scenario.name == key:
                return scenario
        raise KeyError(f"Unknown scenario: {key}")

    def index_of(self, name: str) -> int:
        return self.names().index(name)
