"""
Marker and tooltip rendering.

One marker per track, keyed by track id. Colors and sizes come from
``styling.classify``; icon bodies come from the IconRegistry handed to the
renderer. The tooltip stylesheet is registered on the surface under the
renderer's own name and removed again on detach.
"""

import html
import logging
from typing import Callable, Optional, Sequence

from .entities import Allegiance, TrackPoint, is_jet
from .styling import Style, classify
from .surface import Icon, MapSurface, Marker

logger = logging.getLogger(__name__)

IconFactory = Callable[[Style], Icon]

TOOLTIP_CSS = """
.fighter-jet-tooltip {
  background-color: rgba(0, 0, 0, 0.8);
  border: 1px solid #444;
  border-radius: 4px;
  color: white;
  font-family: monospace;
  padding: 5px 8px;
}
.fighter-jet-tooltip strong { color: #FF3B30; }
.fighter-jet-tooltip .friendly { color: #1E90FF; }
"""


def jet_icon(style: Style) -> Icon:
    """Swept-wing jet silhouette filled with the style color."""
    px = style.icon_size
    body = (
        f'<svg width="{px}" height="{px}" viewBox="0 0 24 24" fill="none" '
        f'xmlns="http://www.w3.org/2000/svg">'
        f'<path d="M12 2L4 14H20L12 2Z" fill="{style.color}" stroke="#000" stroke-width="1"/>'
        f'<path d="M12 14L8 22H16L12 14Z" fill="{style.color}" stroke="#000" stroke-width="1"/>'
        f"</svg>"
    )
    return Icon("jet", body, (px, px), (px // 2, px // 2), "fighter-jet-icon")


def point_icon(style: Style) -> Icon:
    """Filled dot for plain heat points."""
    px = max(8, style.icon_size // 2)
    body = (
        f'<div style="width:{px}px;height:{px}px;background:{style.color};'
        f'border-radius:50%;border:1px solid rgba(255,255,255,.4)"></div>'
    )
    return Icon("point", body, (px, px), (px // 2, px // 2), "track-point-icon")


class IconRegistry:
    """Maps track kinds to icon factories."""

    def __init__(self, factories: Optional[dict[str, IconFactory]] = None):
        self._factories: dict[str, IconFactory] = dict(factories or {})

    def register(self, kind: str, factory: IconFactory):
        self._factories[kind] = factory

    def icon_for(self, point: TrackPoint, style: Style) -> Icon:
        factory = self._factories.get(point.kind)
        if factory is None:
            raise KeyError(f"No icon registered for track kind {point.kind!r}")
        return factory(style)


def default_icon_registry() -> IconRegistry:
    return IconRegistry({"jet": jet_icon, "plain": point_icon})


def build_tooltip(point: TrackPoint) -> str:
    """Hover text for a track."""
    esc = html.escape
    tag = "FRIENDLY" if point.allegiance == Allegiance.FRIENDLY else "ENEMY"
    css = ' class="friendly"' if point.allegiance == Allegiance.FRIENDLY else ""

    if not is_jet(point):
        lines = [f"<strong{css}>{esc(point.id)}</strong> [{tag}]",
                 f"Intensity: {point.intensity:.2f}"]
        if point.attribution is not None:
            lines.append(f"Attribution: {point.attribution * 100:.0f}%")
        return "<br/>".join(lines)

    lines = [
        f"<strong{css}>{esc(point.type)} - {esc(point.callsign or '')}</strong> [{tag}]",
        f"Threat: {point.threat_level:.1f}/10",
        f"Armament: {point.armament_level:.1f}/10",
    ]
    if point.attribution is not None:
        lines.append(f"Attribution: {point.attribution * 100:.0f}%")
    lines += [
        f"Alt: {point.altitude:,.0f} ft",
        f"Speed: {point.speed:.0f} kts",
        f"Heading: {point.heading:.0f}°",
    ]
    return "<br/>".join(lines)


class MarkerRenderer:
    """Keeps exactly one marker per track in the current snapshot."""

    STYLE_OWNER = "marker-renderer"

    def __init__(
        self,
        surface: MapSurface,
        icons: IconRegistry,
        in_place: bool = True,
        stylesheet: str = TOOLTIP_CSS,
    ):
        self.surface = surface
        self.icons = icons
        self.in_place = in_place
        self.stylesheet = stylesheet
        self.markers: dict[str, Marker] = {}
        self.attached = False

    def attach(self):
        if not self.attached:
            self.surface.add_stylesheet(self.STYLE_OWNER, self.stylesheet)
            self.attached = True

    def detach(self):
        """Remove every marker and the scoped stylesheet."""
        self.clear()
        self.surface.remove_stylesheet(self.STYLE_OWNER)
        self.attached = False

    def clear(self):
        for marker in self.markers.values():
            self.surface.remove_layer(marker)
        self.markers = {}

    def render(self, snapshot: Sequence[TrackPoint]) -> dict[str, Marker]:
        self.attach()
        if not self.in_place:
            self.clear()

        seen = set()
        for point in snapshot:
            seen.add(point.id)
            style = classify(point)
            icon = self.icons.icon_for(point, style)
            tooltip = build_tooltip(point)

            marker = self.markers.get(point.id)
            if marker is None:
                marker = Marker(point.id, point.lat, point.lng, icon, tooltip, point.heading)
                self.markers[point.id] = marker
                self.surface.add_layer(marker)
            else:
                marker.lat, marker.lng, marker.rotation = point.lat, point.lng, point.heading
                marker.icon = icon
                marker.tooltip = tooltip

        for stale_id in [tid for tid in self.markers if tid not in seen]:
            self.surface.remove_layer(self.markers.pop(stale_id))

        return self.markers
