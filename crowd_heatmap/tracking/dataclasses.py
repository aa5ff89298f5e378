"""
Tracking Data Structures
========================

Core data structures for simulated location tracking:
- Coordinate: Immutable latitude/longitude pair
- Position: One tracked sample persisted per simulator tick
- Session: One bounded tracking run from start to stop
- HeatMapPoint: Weighted coordinate produced by aggregation
- RouteResponse: Ordered waypoints returned by a route source
- PositionUpdated / ErrorOccurred: Events published by the simulator
- TrackingConfig, CrowdConfig, HeatmapConfig, RenderConfig, MonitorConfig:
  Immutable configuration
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from numbers import Real
from typing import Union


class ValidationError(Exception):
    """Raised when input validation fails."""

    pass


MIN_LATITUDE = -90.0
MAX_LATITUDE = 90.0
MIN_LONGITUDE = -180.0
MAX_LONGITUDE = 180.0


def _require_number(name: str, value: object) -> float:
    """Return value as a finite float.

    Raises:
        ValidationError: If value is not a real number or is not finite
    """
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError(f"{name} must be a number, got {type(value).__name__}")
    as_float = float(value)
    if not math.isfinite(as_float):
        raise ValidationError(f"{name} must be finite, got {value}")
    return as_float


def _require_int(name: str, value: object, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {type(value).__name__}")
    if value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}, got {value}")
    return value


# =============================================================================
# Geographic Values
# =============================================================================


@dataclass(frozen=True)
class Coordinate:
    """A geographic position in decimal degrees.

    Construction does not range-check so that the coordinate validator can
    report on any float input. Use `Coordinate.validated()` when an invalid
    value should be rejected outright.

    Attributes:
        latitude: Latitude in degrees, valid range [-90, 90]
        longitude: Longitude in degrees, valid range [-180, 180]
    """

    latitude: float
    longitude: float

    @classmethod
    def validated(cls, latitude: float, longitude: float) -> Coordinate:
        """Build a coordinate, rejecting out-of-range or non-finite values.

        Raises:
            ValidationError: If latitude or longitude is out of range
        """
        lat = _require_number("latitude", latitude)
        lng = _require_number("longitude", longitude)
        if not MIN_LATITUDE <= lat <= MAX_LATITUDE:
            raise ValidationError(
                f"latitude must be between {MIN_LATITUDE} and {MAX_LATITUDE}, got {latitude}"
            )
        if not MIN_LONGITUDE <= lng <= MAX_LONGITUDE:
            raise ValidationError(
                f"longitude must be between {MIN_LONGITUDE} and {MAX_LONGITUDE}, got {longitude}"
            )
        return cls(lat, lng)

    def rounded(self, precision: int) -> tuple[float, float]:
        """Grid cell key: (lat, lng) rounded to `precision` decimal places."""
        return (round(self.latitude, precision), round(self.longitude, precision))

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


RoutePoint = Coordinate
"""A Coordinate that is one vertex of a fetched route, in traversal order."""


@dataclass(frozen=True)
class HeatMapPoint:
    """A weighted coordinate representing aggregated position density.

    Attributes:
        coordinate: Where the point is drawn
        intensity: Weight in [0, 1]; values outside are clamped, NaN becomes 0
    """

    coordinate: Coordinate
    intensity: float

    def __post_init__(self) -> None:
        """Clamp intensity into [0, 1]."""
        value = float(self.intensity)
        if math.isnan(value):
            value = 0.0
        object.__setattr__(self, "intensity", max(0.0, min(1.0, value)))

    @property
    def latitude(self) -> float:
        return self.coordinate.latitude

    @property
    def longitude(self) -> float:
        return self.coordinate.longitude


# =============================================================================
# Persisted Records
# =============================================================================


@dataclass(frozen=True)
class Position:
    """A single tracked sample, created by the simulator once per tick.

    Attributes:
        coordinate: The route point occupied at this tick
        timestamp: When the sample was taken (UTC)
        session_id: The session this sample belongs to
        id: Identifier assigned by storage, None until persisted
    """

    coordinate: Coordinate
    timestamp: datetime
    session_id: int
    id: int | None = None

    def with_id(self, position_id: int) -> Position:
        """Return a copy carrying the storage-assigned identifier."""
        return replace(self, id=position_id)

    @property
    def latitude(self) -> float:
        return self.coordinate.latitude

    @property
    def longitude(self) -> float:
        return self.coordinate.longitude


@dataclass
class Session:
    """One bounded tracking run from start to stop.

    A session is created active at tracking start and mutated exactly once,
    at tracking stop, through `close()`.

    Attributes:
        start_time: When tracking started (UTC)
        origin: Requested route origin
        destination: Requested route destination
        is_active: True until the session is closed
        end_time: When tracking stopped, None while active
        id: Identifier assigned by storage, None until persisted
    """

    start_time: datetime
    origin: Coordinate
    destination: Coordinate
    is_active: bool = True
    end_time: datetime | None = None
    id: int | None = None

    def close(self, end_time: datetime) -> None:
        """Mark the session as finished at `end_time`."""
        self.end_time = end_time
        self.is_active = False

    @property
    def duration_seconds(self) -> float | None:
        """Session duration in seconds, or None while still active."""
        if self.end_time is None:
            return None
        return max(0.0, (self.end_time - self.start_time).total_seconds())


# =============================================================================
# Route Source Payload
# =============================================================================


ROUTE_STATUS_OK = "OK"


@dataclass(frozen=True)
class RouteResponse:
    """Ordered waypoints plus status as returned by a route source.

    Attributes:
        status: "OK" on success; any other value is treated as failure
        points: Route vertices in traversal order
        total_distance: Route length in meters
        total_duration: Expected travel time in seconds
    """

    status: str
    points: tuple[Coordinate, ...] = ()
    total_distance: float = 0.0
    total_duration: int = 0

    def __post_init__(self) -> None:
        """Normalize points to an immutable tuple."""
        if not isinstance(self.points, tuple):
            object.__setattr__(self, "points", tuple(self.points))

    @property
    def is_ok(self) -> bool:
        """True when status is "OK" and the route has at least one point."""
        return self.status == ROUTE_STATUS_OK and len(self.points) > 0


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class PositionUpdated:
    """Published after a Position has been persisted."""

    position: Position


@dataclass(frozen=True)
class ErrorOccurred:
    """Published when an operation fails.

    Attributes:
        message: Short user-facing message
        kind: Failure category name (see `crowd_heatmap.result.FailureKind`)
    """

    message: str
    kind: str = "unexpected"


TrackingEvent = Union[PositionUpdated, ErrorOccurred]


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class TrackingConfig:
    """Movement simulator configuration.

    Attributes:
        update_interval_ms: Delay between ticks in milliseconds. Zero is
            allowed and makes the loop yield without sleeping (test mode).

    Raises:
        ValidationError: If update_interval_ms is not a non-negative integer
    """

    update_interval_ms: int = 2000

    def __post_init__(self) -> None:
        _require_int("update_interval_ms", self.update_interval_ms, 0)

    @property
    def update_interval_seconds(self) -> float:
        return self.update_interval_ms / 1000.0


@dataclass(frozen=True)
class CrowdConfig:
    """Crowd point generation parameters.

    Attributes:
        density: Points generated per real position (clamped at use time)
        radius_meters: Radius of the disk synthetic points are drawn from
        min_density: Lower clamp bound for density
        max_density: Upper clamp bound for density
    """

    density: int = 3
    radius_meters: float = 50.0
    min_density: int = 2
    max_density: int = 4

    def __post_init__(self) -> None:
        _require_int("min_density", self.min_density, 1)
        _require_int("max_density", self.max_density, 1)
        if self.min_density > self.max_density:
            raise ValidationError(
                f"min_density ({self.min_density}) cannot exceed max_density ({self.max_density})"
            )
        radius = _require_number("radius_meters", self.radius_meters)
        if radius <= 0:
            raise ValidationError(f"radius_meters must be positive, got {self.radius_meters}")

    @classmethod
    def compact(cls) -> CrowdConfig:
        """Tighter 15 m variant used for dense city-block rendering."""
        return cls(radius_meters=15.0)


@dataclass(frozen=True)
class HeatmapConfig:
    """Spatial aggregation configuration.

    Attributes:
        plain_precision: Decimal places for plain grid rounding (~11 m at 4)
        crowd_precision: Decimal places for crowd grid rounding (~1.1 m at 5)
        max_input_locations: Most recent positions kept before crowd inflation
        max_output_points: Hard ceiling on accumulated crowd points
        fallback_intensity: Intensity of the substitute point emitted when
            crowd generation fails for a position
        intensity_scale: Amplification applied to plain density ratios
        crowd: Parameters passed to the crowd point generator
    """

    plain_precision: int = 4
    crowd_precision: int = 5
    max_input_locations: int = 30
    max_output_points: int = 150
    fallback_intensity: float = 0.7
    intensity_scale: float = 10.0
    crowd: CrowdConfig = field(default_factory=CrowdConfig)

    def __post_init__(self) -> None:
        _require_int("plain_precision", self.plain_precision, 0)
        _require_int("crowd_precision", self.crowd_precision, 0)
        _require_int("max_input_locations", self.max_input_locations, 1)
        _require_int("max_output_points", self.max_output_points, 1)
        fallback = _require_number("fallback_intensity", self.fallback_intensity)
        if not 0.0 <= fallback <= 1.0:
            raise ValidationError(
                f"fallback_intensity must be in [0, 1], got {self.fallback_intensity}"
            )
        scale = _require_number("intensity_scale", self.intensity_scale)
        if scale <= 0:
            raise ValidationError(f"intensity_scale must be positive, got {self.intensity_scale}")
        if not isinstance(self.crowd, CrowdConfig):
            raise ValidationError(
                f"crowd must be a CrowdConfig, got {type(self.crowd).__name__}"
            )


@dataclass(frozen=True)
class RenderConfig:
    """Heatmap drawing configuration.

    Attributes:
        radius_meters: Radius of influence drawn around each heat point
        opacity: Overlay opacity in [0, 1]
        gradient: RGB color stops from low to high intensity
        path_color: RGB color of path history markers
        path_radius_meters: Radius of path history markers
    """

    radius_meters: float = 20.0
    opacity: float = 0.6
    gradient: tuple[tuple[int, int, int], ...] = (
        (0, 255, 0),
        (255, 255, 0),
        (255, 0, 0),
    )
    path_color: tuple[int, int, int] = (66, 133, 244)
    path_radius_meters: float = 5.0

    def __post_init__(self) -> None:
        if _require_number("radius_meters", self.radius_meters) <= 0:
            raise ValidationError(f"radius_meters must be positive, got {self.radius_meters}")
        if _require_number("path_radius_meters", self.path_radius_meters) <= 0:
            raise ValidationError(
                f"path_radius_meters must be positive, got {self.path_radius_meters}"
            )
        opacity = _require_number("opacity", self.opacity)
        if not 0.0 <= opacity <= 1.0:
            raise ValidationError(f"opacity must be in [0, 1], got {self.opacity}")
        if len(self.gradient) < 2:
            raise ValidationError(
                f"gradient must have at least 2 color stops, got {len(self.gradient)}"
            )
        for i, stop in enumerate(self.gradient):
            if len(stop) != 3 or not all(0 <= int(c) <= 255 for c in stop):
                raise ValidationError(f"gradient[{i}] must be an RGB triple in 0-255, got {stop}")


@dataclass(frozen=True)
class MonitorConfig:
    """Tracking monitor configuration.

    Attributes:
        heatmap_refresh_interval: Recompute the heatmap every N position updates
    """

    heatmap_refresh_interval: int = 5

    def __post_init__(self) -> None:
        _require_int("heatmap_refresh_interval", self.heatmap_refresh_interval, 1)
