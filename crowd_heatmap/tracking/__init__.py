"""
Simulated Location Tracking
===========================

Session/position model, the movement simulator state machine, storage
collaborators, the event-consuming monitor and rendering helpers.
"""

from crowd_heatmap.tracking.dataclasses import (
    Coordinate,
    CrowdConfig,
    ErrorOccurred,
    HeatmapConfig,
    HeatMapPoint,
    MonitorConfig,
    Position,
    PositionUpdated,
    RenderConfig,
    RouteResponse,
    RoutePoint,
    Session,
    TrackingConfig,
    TrackingEvent,
    ValidationError,
)
from crowd_heatmap.tracking.storage import (
    InMemoryLocationRepository,
    LocationRepository,
    SqliteLocationRepository,
)
from crowd_heatmap.tracking.simulator import (
    MovementSimulator,
    RouteSource,
    StaticRouteSource,
)
from crowd_heatmap.tracking.monitor import TrackingMonitor

__all__ = [
    # Data model
    "Coordinate",
    "RoutePoint",
    "Position",
    "Session",
    "HeatMapPoint",
    "RouteResponse",
    "PositionUpdated",
    "ErrorOccurred",
    "TrackingEvent",
    "ValidationError",
    # Configuration
    "TrackingConfig",
    "CrowdConfig",
    "HeatmapConfig",
    "RenderConfig",
    "MonitorConfig",
    # Collaborators
    "LocationRepository",
    "InMemoryLocationRepository",
    "SqliteLocationRepository",
    "RouteSource",
    "StaticRouteSource",
    # State machine
    "MovementSimulator",
    "TrackingMonitor",
]
