"""
Airspace heatmap simulation.

Core modules:
- entities: Track model (jets and plain heat points)
- generator: Scenario entity generation
- motion: Per-tick motion models and integrator
- styling: Allegiance / threat classification
- surface: Map surface, layers and readiness gate
- heat, markers: Layer renderers
- scenarios, feed, simulation: Scenario catalog, feeds, tick loop
"""

from .entities import (
    Allegiance, AircraftType, Entity, PlainPoint, TrackPoint,
    is_jet, track_from_record, track_to_dict,
)
from .generator import EntityGenerator, FormationSlot, CALLSIGNS, DEFAULT_FORMATION, strategic_value
from .motion import (
    MotionKind, MotionSettings, MotionModel, EllipticalOrbit,
    CappedForwardMotion, MotionIntegrator,
)
from .styling import Style, SeverityBucket, StyleSource, classify, icon_size
from .surface import MapSurface, HeatOverlay, Marker, Icon, ReadinessGate
from .heat import HeatLayerRenderer, HeatLayerOptions
from .markers import MarkerRenderer, IconRegistry, default_icon_registry, build_tooltip
from .scenarios import Scenario, ScenarioCatalog, Viewport
from .feed import (
    FeedError, FeedMessage, MessageCategory, MessageLog, FeedClient,
    ConnectionStatus, SimulationFeed, Timestep, parse_message,
)
from .config import SimConfig
from .simulation import Simulation, SimulationMode

__all__ = [
    # Tracks
    "Allegiance", "AircraftType", "Entity", "PlainPoint", "TrackPoint",
    "is_jet", "track_from_record", "track_to_dict",
    # Generation
    "EntityGenerator", "FormationSlot", "CALLSIGNS", "DEFAULT_FORMATION", "strategic_value",
    # Motion
    "MotionKind", "MotionSettings", "MotionModel", "EllipticalOrbit",
    "CappedForwardMotion", "MotionIntegrator",
    # Styling
    "Style", "SeverityBucket", "StyleSource", "classify", "icon_size",
    # Rendering
    "MapSurface", "HeatOverlay", "Marker", "Icon", "ReadinessGate",
    "HeatLayerRenderer", "HeatLayerOptions",
    "MarkerRenderer", "IconRegistry", "default_icon_registry", "build_tooltip",
    # Scenarios & feeds
    "Scenario", "ScenarioCatalog", "Viewport",
    "FeedError", "FeedMessage", "MessageCategory", "MessageLog", "FeedClient",
    "ConnectionStatus", "SimulationFeed", "Timestep", "parse_message",
    # Runtime
    "SimConfig", "Simulation", "SimulationMode",
]
