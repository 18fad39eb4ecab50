"""
Classification and styling shared by the heat and marker layers.

Both renderers call ``classify`` so a track has the same color everywhere.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .entities import Allegiance, TrackPoint, clamp


class SeverityBucket(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class StyleSource(Enum):
    FRIENDLY = "friendly"
    ATTRIBUTION = "attribution"
    STRATEGIC_VALUE = "strategic_value"


FRIENDLY_COLOR = "#1E90FF"

# Attribution path, thresholds on [0, 1]
ATTRIBUTION_THRESHOLDS = [
    (0.8, SeverityBucket.CRITICAL),
    (0.6, SeverityBucket.HIGH),
    (0.4, SeverityBucket.MEDIUM),
]
ATTRIBUTION_COLORS = {
    SeverityBucket.CRITICAL: "#B00020",
    SeverityBucket.HIGH: "#FF3B30",
    SeverityBucket.MEDIUM: "#FF6B35",
    SeverityBucket.LOW: "#FF9F1C",
}

# Strategic-value path, thresholds on [1, 10]
STRATEGIC_THRESHOLDS = [
    (8.0, SeverityBucket.CRITICAL),
    (6.0, SeverityBucket.HIGH),
    (4.0, SeverityBucket.MEDIUM),
]
STRATEGIC_COLORS = {
    SeverityBucket.CRITICAL: "#FF3B30",
    SeverityBucket.HIGH: "#FF9500",
    SeverityBucket.MEDIUM: "#FFCC00",
    SeverityBucket.LOW: "#34C759",
}

# Marker size in pixels: base + strategic_value * scale, clamped
ICON_BASE_PX = 14
ICON_SCALE_PX = 1.8
ICON_MIN_PX = 16
ICON_MAX_PX = 32


# Heat gradients (stop -> rgba)
FRIENDLY_GRADIENT = {
    0.0: "rgba(0, 0, 128, 0.2)",
    0.4: "rgba(0, 80, 255, 0.5)",
    0.7: "rgba(0, 160, 255, 0.7)",
    1.0: "rgba(120, 220, 255, 1.0)",
}
ENEMY_GRADIENT = {
    0.0: "rgba(255, 204, 0, 0.2)",
    0.4: "rgba(255, 149, 0, 0.5)",
    0.7: "rgba(255, 69, 0, 0.8)",
    1.0: "rgba(255, 0, 0, 1.0)",
}
ATTRIBUTION_GRADIENT = {
    0.0: "rgba(128, 0, 64, 0.1)",
    0.5: "rgba(200, 0, 80, 0.35)",
    1.0: "rgba(176, 0, 32, 0.6)",
}


@dataclass(frozen=True)
class Style:
    """Visual bucket for a track."""
    color: str
    source: StyleSource
    bucket: Optional[SeverityBucket]
    icon_size: int


def attribution_bucket(attribution: float) -> SeverityBucket:
    for threshold, bucket in ATTRIBUTION_THRESHOLDS:
        if attribution >= threshold:
            return bucket
    return SeverityBucket.LOW


def strategic_bucket(value: float) -> SeverityBucket:
    for threshold, bucket in STRATEGIC_THRESHOLDS:
        if value >= threshold:
            return bucket
    return SeverityBucket.LOW


def icon_size(strategic_value: float) -> int:
    """Icon pixel size, linear in strategic value."""
    size = ICON_BASE_PX + strategic_value * ICON_SCALE_PX
    return int(round(clamp(size, ICON_MIN_PX, ICON_MAX_PX)))


def classify(point: TrackPoint) -> Style:
    """Map allegiance + attribution/strategic value to a color bucket."""
    size = icon_size(point.strategic_value)

    if point.allegiance == Allegiance.FRIENDLY:
        return Style(FRIENDLY_COLOR, StyleSource.FRIENDLY, None, size)

    if point.attribution is not None:
        bucket = attribution_bucket(point.attribution)
        return Style(ATTRIBUTION_COLORS[bucket], StyleSource.ATTRIBUTION, bucket, size)

    bucket = strategic_bucket(point.strategic_value)
    return Style(STRATEGIC_COLORS[bucket], StyleSource.STRATEGIC_VALUE, bucket, size)
