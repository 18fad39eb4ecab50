"""
Heat layer rendering.

Each render replaces the overlays from the previous render:
- friendly: blue ramp, weight = strategic intensity
- enemy: red ramp, weight = strategic intensity
- attribution (optional): enemy tracks with an attribution score, weighted by
  attribution, drawn wider and blurrier to show uncertainty spread
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .entities import Allegiance, TrackPoint
from .styling import ATTRIBUTION_GRADIENT, ENEMY_GRADIENT, FRIENDLY_GRADIENT
from .surface import HeatOverlay, MapSurface

logger = logging.getLogger(__name__)


@dataclass
class HeatLayerOptions:
    """leaflet.heat options for the primary overlays."""
    radius: int = 35
    blur: int = 25
    max_zoom: int = 10
    min_opacity: float = 0.2
    max: float = 1.0
    # Attribution overlay is drawn this much wider / blurrier
    attribution_overlay: bool = True
    attribution_radius_scale: float = 1.8
    attribution_blur_scale: float = 1.6


class HeatLayerRenderer:
    """Builds friendly/enemy/attribution heat overlays from a snapshot."""

    FRIENDLY = "friendly"
    ENEMY = "enemy"
    ATTRIBUTION = "attribution"

    def __init__(self, surface: MapSurface, options: Optional[HeatLayerOptions] = None):
        self.surface = surface
        self.options = options or HeatLayerOptions()
        self.active: list[HeatOverlay] = []
        self.pending: Optional[Sequence[TrackPoint]] = None
        self.render_count = 0

    def _point_sets(self, snapshot: Sequence[TrackPoint]) -> list[tuple[str, list, dict, bool]]:
        friendly = []
        enemy = []
        attributed = []
        for point in snapshot:
            if point.allegiance == Allegiance.FRIENDLY:
                friendly.append((point.lat, point.lng, point.weight))
            else:
                enemy.append((point.lat, point.lng, point.weight))
                if point.attribution is not None:
                    attributed.append((point.lat, point.lng, point.attribution))

        sets = [
            (self.FRIENDLY, friendly, FRIENDLY_GRADIENT, False),
            (self.ENEMY, enemy, ENEMY_GRADIENT, False),
        ]
        if self.options.attribution_overlay:
            sets.append((self.ATTRIBUTION, attributed, ATTRIBUTION_GRADIENT, True))
        return sets

    def _build(self, name: str, points: list, gradient: dict, wide: bool) -> HeatOverlay:
        opts = self.options
        if wide:
            radius = int(round(opts.radius * opts.attribution_radius_scale))
            blur = int(round(opts.blur * opts.attribution_blur_scale))
        else:
            radius, blur = opts.radius, opts.blur
        return HeatOverlay(
            name=name,
            points=points,
            gradient=gradient,
            radius=radius,
            blur=blur,
            max_zoom=opts.max_zoom,
            min_opacity=opts.min_opacity,
            max=opts.max,
        )

    def render(self, snapshot: Sequence[TrackPoint]) -> list[HeatOverlay]:
        """Replace the current overlays with ones built from ``snapshot``.

        Until the surface is ready the snapshot is parked in ``pending`` and
        nothing is drawn.
        """
        if not self.surface.is_ready:
            self.pending = snapshot
            return []
        self.pending = None

        self.clear()
        for name, points, gradient, wide in self._point_sets(snapshot):
            if not points:
                continue
            try:
                overlay = self._build(name, points, gradient, wide)
                self.surface.add_layer(overlay)
            except Exception:
                logger.exception(f"Error creating {name} heat layer")
                continue
            self.active.append(overlay)

        self.render_count += 1
        return list(self.active)

    def flush(self) -> list[HeatOverlay]:
        """Render the snapshot parked while the surface was not ready."""
        if self.pending is None:
            return list(self.active)
        return self.render(self.pending)

    def clear(self):
        """Remove every overlay this renderer added."""
        for overlay in self.active:
            self.surface.remove_layer(overlay)
        self.active = []
