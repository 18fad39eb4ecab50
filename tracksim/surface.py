"""
Map surface model.

A MapSurface stands in for a Leaflet map: it holds the view (center, zoom,
bounds), an ordered layer list, stylesheets scoped to their owning renderer,
and a one-time readiness gate. Renderers only ever touch the surface through
add/remove calls, so the same surface can be exported to HTML or pushed over a
WebSocket as plain JSON.
"""

import asyncio
import logging
import math
import uuid
from dataclasses import dataclass, field
from typing import ClassVar, Optional, Union

logger = logging.getLogger(__name__)


def _new_layer_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class HeatOverlay:
    """Weighted-point heat layer (leaflet.heat options)."""
    layer_type: ClassVar[str] = "heat"

    name: str
    points: list[tuple[float, float, float]]  # (lat, lng, weight)
    gradient: dict[float, str]
    radius: int = 35
    blur: int = 25
    max_zoom: int = 10
    min_opacity: float = 0.2
    max: float = 1.0
    layer_id: str = field(default_factory=_new_layer_id)

    def __post_init__(self):
        for lat, lng, weight in self.points:
            if not (math.isfinite(lat) and math.isfinite(lng) and math.isfinite(weight)):
                raise ValueError(f"Non-finite heat point in {self.name}: ({lat}, {lng}, {weight})")
            if weight < 0:
                raise ValueError(f"Negative heat weight in {self.name}: {weight}")
        if self.radius <= 0 or self.blur < 0:
            raise ValueError(f"Invalid heat radius/blur for {self.name}")

    def to_dict(self) -> dict:
        return {
            "id": self.layer_id,
            "layer_type": self.layer_type,
            "name": self.name,
            "points": [[round(lat, 6), round(lng, 6), round(w, 4)] for lat, lng, w in self.points],
            "options": {
                "radius": self.radius,
                "blur": self.blur,
                "maxZoom": self.max_zoom,
                "minOpacity": self.min_opacity,
                "max": self.max,
                "gradient": {str(k): v for k, v in self.gradient.items()},
            },
        }


@dataclass(frozen=True)
class Icon:
    """A div icon: HTML body plus size/anchor in pixels."""
    name: str
    html: str
    size: tuple[int, int]
    anchor: tuple[int, int]
    class_name: str = "track-icon"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "html": self.html,
            "iconSize": list(self.size),
            "iconAnchor": list(self.anchor),
            "className": self.class_name,
        }


@dataclass
class Marker:
    """One icon marker with a hover tooltip."""
    layer_type: ClassVar[str] = "marker"

    track_id: str
    lat: float
    lng: float
    icon: Icon
    tooltip: str
    rotation: float = 0.0
    tooltip_class: str = "fighter-jet-tooltip"
    layer_id: str = field(default_factory=_new_layer_id)

    def to_dict(self) -> dict:
        return {
            "id": self.layer_id,
            "layer_type": self.layer_type,
            "track_id": self.track_id,
            "lat": round(self.lat, 6),
            "lng": round(self.lng, 6),
            "rotation": round(self.rotation, 1),
            "icon": self.icon.to_dict(),
            "tooltip": self.tooltip,
            "tooltip_class": self.tooltip_class,
        }


Layer = Union[HeatOverlay, Marker]


class ReadinessGate:
    """One-time "surface ready" signal with a bounded fallback.

    ``wait`` returns True if the surface signalled readiness, False if the
    fallback timeout fired first. Either way the gate is open afterwards.
    """

    def __init__(self, fallback_timeout: float = 0.5):
        self.fallback_timeout = fallback_timeout
        self.fallback_used = False
        self._event = asyncio.Event()

    @property
    def is_open(self) -> bool:
        return self._event.is_set()

    def signal(self):
        self._event.set()

    async def wait(self) -> bool:
        if self._event.is_set():
            return not self.fallback_used
        try:
            await asyncio.wait_for(self._event.wait(), timeout=self.fallback_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(
                f"Map surface not ready after {self.fallback_timeout}s, proceeding anyway"
            )
            self.fallback_used = True
            self._event.set()
            return False


class MapSurface:
    """Layer list + view state for one map instance."""

    def __init__(
        self,
        center: tuple[float, float],
        zoom: int = 8,
        bounds: Optional[tuple[tuple[float, float], tuple[float, float]]] = None,
        min_zoom: Optional[int] = None,
        ready_timeout: float = 0.5,
    ):
        self.center = center
        self.zoom = zoom
        self.bounds = bounds
        self.min_zoom = min_zoom
        self.ready = ReadinessGate(ready_timeout)
        self._layers: dict[str, Layer] = {}
        self.stylesheets: dict[str, str] = {}

    # View

    def set_view(self, center: tuple[float, float], zoom: Optional[int] = None):
        self.center = center
        if zoom is not None:
            self.zoom = max(zoom, self.min_zoom) if self.min_zoom is not None else zoom

    def mark_ready(self):
        self.ready.signal()

    @property
    def is_ready(self) -> bool:
        return self.ready.is_open

    async def wait_until_ready(self) -> bool:
        return await self.ready.wait()

    # Layers

    @property
    def layers(self) -> list[Layer]:
        return list(self._layers.values())

    def layers_of(self, layer_type: str) -> list[Layer]:
        return [ly for ly in self._layers.values() if ly.layer_type == layer_type]

    def add_layer(self, layer: Layer):
        self._layers[layer.layer_id] = layer

    def remove_layer(self, layer: Layer) -> bool:
        """Detach a layer; returns False if it was not attached."""
        return self._layers.pop(layer.layer_id, None) is not None

    def has_layer(self, layer: Layer) -> bool:
        return layer.layer_id in self._layers

    def clear_layers(self):
        self._layers.clear()

    # Scoped stylesheets

    def add_stylesheet(self, owner: str, css: str):
        self.stylesheets[owner] = css

    def remove_stylesheet(self, owner: str):
        self.stylesheets.pop(owner, None)

    def to_dict(self) -> dict:
        data = {
            "center": list(self.center),
            "zoom": self.zoom,
            "heat": [ly.to_dict() for ly in self.layers_of(HeatOverlay.layer_type)],
            "markers": [ly.to_dict() for ly in self.layers_of(Marker.layer_type)],
            "styles": dict(self.stylesheets),
        }
        if self.bounds:
            data["bounds"] = [list(self.bounds[0]), list(self.bounds[1])]
        if self.min_zoom is not None:
            data["min_zoom"] = self.min_zoom
        return data
