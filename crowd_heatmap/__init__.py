"""
Crowd Heatmap
=============

Simulates an entity walking a geographic route, persists each position, and
aggregates the position history into a bounded heatmap, optionally inflated
with synthetic crowd points.
"""

# The tracking subpackage defines the data model every other module imports,
# so it is loaded first.
from crowd_heatmap.tracking import (
    Coordinate,
    CrowdConfig,
    ErrorOccurred,
    HeatmapConfig,
    HeatMapPoint,
    InMemoryLocationRepository,
    LocationRepository,
    MonitorConfig,
    MovementSimulator,
    Position,
    PositionUpdated,
    RenderConfig,
    RouteResponse,
    RoutePoint,
    RouteSource,
    Session,
    SqliteLocationRepository,
    StaticRouteSource,
    TrackingConfig,
    TrackingEvent,
    TrackingMonitor,
    ValidationError,
)
from crowd_heatmap.validation import (
    ValidationResult,
    validate_coordinates,
    validate_latitude,
    validate_longitude,
    validate_origin_and_destination,
)
from crowd_heatmap.crowd import CrowdPointGenerator, generate_crowd_points
from crowd_heatmap.heatmap import (
    HeatmapService,
    aggregate_plain,
    aggregate_with_crowd,
)
from crowd_heatmap.result import (
    Failure,
    FailureKind,
    MalformedResponseError,
    NetworkError,
    Result,
    ResultError,
    StorageError,
    TrackingError,
    classify_exception,
    execute_with_error_handling,
    run_with_error_handling,
)
from crowd_heatmap.debug import (
    disable_debug_logging,
    format_coordinate,
    format_position,
    log_heatmap_summary,
    log_position,
    setup_debug_logging,
)

__all__ = [
    # Data model
    'Coordinate',
    'RoutePoint',
    'Position',
    'Session',
    'HeatMapPoint',
    'RouteResponse',
    'PositionUpdated',
    'ErrorOccurred',
    'TrackingEvent',
    'ValidationError',
    # Configuration
    'TrackingConfig',
    'CrowdConfig',
    'HeatmapConfig',
    'RenderConfig',
    'MonitorConfig',
    # Validation
    'ValidationResult',
    'validate_latitude',
    'validate_longitude',
    'validate_coordinates',
    'validate_origin_and_destination',
    # Crowd and heatmap
    'CrowdPointGenerator',
    'generate_crowd_points',
    'aggregate_plain',
    'aggregate_with_crowd',
    'HeatmapService',
    # Tracking
    'MovementSimulator',
    'TrackingMonitor',
    'RouteSource',
    'StaticRouteSource',
    'LocationRepository',
    'InMemoryLocationRepository',
    'SqliteLocationRepository',
    # Results and errors
    'Result',
    'Failure',
    'FailureKind',
    'ResultError',
    'TrackingError',
    'NetworkError',
    'StorageError',
    'MalformedResponseError',
    'classify_exception',
    'execute_with_error_handling',
    'run_with_error_handling',
    # Debug utilities
    'setup_debug_logging',
    'disable_debug_logging',
    'format_coordinate',
    'format_position',
    'log_position',
    'log_heatmap_summary',
]
__version__ = '0.1.0'
