"""
Visualization utilities for tracked positions and heatmaps.

Draws heat circles, path history and the current position onto a map image
whose pixel grid covers a known latitude/longitude bounding box. Any map
surface that can be exported as an image works as a backdrop; platform map
widgets can consume the same HeatMapPoint and Position sequences directly.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from crowd_heatmap.geometry import EARTH_RADIUS_M
from crowd_heatmap.tracking.dataclasses import (
    Coordinate,
    HeatMapPoint,
    Position,
    RenderConfig,
    ValidationError,
)

# Try to import cv2, set flag if not available
try:
    import cv2

    HAS_CV2 = True
except ImportError:
    HAS_CV2 = False


def _ensure_cv2() -> None:
    """Raise an error if cv2 is not available."""
    if not HAS_CV2:
        raise ImportError(
            "OpenCV (cv2) is required for visualization functions. "
            "Install with: pip install opencv-python"
        )


@dataclass(frozen=True)
class GeoBounds:
    """Latitude/longitude box mapped onto the full image.

    Attributes:
        south, west, north, east: Box edges in degrees
    """

    south: float
    west: float
    north: float
    east: float

    def __post_init__(self) -> None:
        if not self.north > self.south:
            raise ValidationError(f"north ({self.north}) must exceed south ({self.south})")
        if not self.east > self.west:
            raise ValidationError(f"east ({self.east}) must exceed west ({self.west})")

    @classmethod
    def around(
        cls,
        coordinates: Iterable[Coordinate],
        padding_m: float = 100.0,
    ) -> GeoBounds:
        """Smallest box containing every coordinate, padded by `padding_m`.

        Raises:
            ValidationError: If no coordinates are given
        """
        coords = list(coordinates)
        if not coords:
            raise ValidationError("Cannot compute bounds of an empty coordinate set")
        lats = [c.latitude for c in coords]
        lngs = [c.longitude for c in coords]
        mid_lat = (min(lats) + max(lats)) / 2.0
        pad_lat = math.degrees(padding_m / EARTH_RADIUS_M)
        pad_lng = math.degrees(
            padding_m / (EARTH_RADIUS_M * max(math.cos(math.radians(mid_lat)), 1e-6))
        )
        return cls(
            south=min(lats) - pad_lat,
            west=min(lngs) - pad_lng,
            north=max(lats) + pad_lat,
            east=max(lngs) + pad_lng,
        )


def project_to_pixels(
    coordinates: Sequence[Coordinate],
    bounds: GeoBounds,
    image_shape: tuple[int, ...],
) -> NDArray[np.int32]:
    """Map coordinates to (x, y) pixel positions, north up.

    Args:
        coordinates: Points to project
        bounds: Geographic box covered by the image
        image_shape: (H, W[, C]) of the target image

    Returns:
        Array of shape (N, 2) with integer pixel coordinates
    """
    height, width = image_shape[0], image_shape[1]
    if not coordinates:
        return np.zeros((0, 2), dtype=np.int32)
    lat_lng = np.array([c.as_tuple() for c in coordinates], dtype=np.float64)
    x = (lat_lng[:, 1] - bounds.west) / (bounds.east - bounds.west) * (width - 1)
    y = (bounds.north - lat_lng[:, 0]) / (bounds.north - bounds.south) * (height - 1)
    return np.round(np.stack([x, y], axis=1)).astype(np.int32)


def meters_to_pixels(radius_m: float, bounds: GeoBounds, image_shape: tuple[int, ...]) -> int:
    """Approximate pixel length of `radius_m` at the box's vertical scale (>= 1)."""
    height = image_shape[0]
    meters_per_degree = EARTH_RADIUS_M * math.pi / 180.0
    box_height_m = (bounds.north - bounds.south) * meters_per_degree
    return max(1, int(round(radius_m / box_height_m * (height - 1))))


def _get_heatmap_color(
    intensity: float,
    gradient: Sequence[tuple[int, int, int]],
) -> tuple[int, int, int]:
    """Get BGR color for an intensity [0, 1] by interpolating RGB stops.

    Args:
        intensity: Value in range [0, 1]; clamped
        gradient: RGB stops from low to high intensity, at least two

    Returns:
        BGR color tuple (values 0-255)
    """
    value = max(0.0, min(1.0, intensity))
    segments = len(gradient) - 1
    position = value * segments
    index = min(int(position), segments - 1)
    ratio = position - index
    low, high = gradient[index], gradient[index + 1]
    r, g, b = (int(round(lo + (hi - lo) * ratio)) for lo, hi in zip(low, high))
    return (b, g, r)


def draw_heatmap(
    image: NDArray[np.uint8],
    points: Sequence[HeatMapPoint],
    bounds: GeoBounds,
    config: RenderConfig | None = None,
) -> NDArray[np.uint8]:
    """Draw heat points as filled circles colored by intensity.

    Args:
        image: Input image (H, W, 3) BGR format
        points: Heat points to draw
        bounds: Geographic box covered by the image
        config: Radius, opacity and color gradient

    Returns:
        Image with heatmap overlay (modified copy)

    Example:
        >>> points = aggregate_with_crowd(positions, crowd_enabled=True)
        >>> bounds = GeoBounds.around(p.coordinate for p in points)
        >>> canvas = np.full((600, 800, 3), 255, dtype=np.uint8)
        >>> cv2.imwrite('heatmap.png', draw_heatmap(canvas, points, bounds))
    """
    _ensure_cv2()
    config = config if config is not None else RenderConfig()

    # Make a copy to avoid modifying the original
    output = image.copy()
    if not points:
        return output

    overlay = output.copy()
    pixels = project_to_pixels([p.coordinate for p in points], bounds, image.shape)
    radius_px = meters_to_pixels(config.radius_meters, bounds, image.shape)

    # Low intensities first so hot spots end up on top
    order = sorted(range(len(points)), key=lambda i: points[i].intensity)
    for i in order:
        color = _get_heatmap_color(points[i].intensity, config.gradient)
        center = (int(pixels[i, 0]), int(pixels[i, 1]))
        cv2.circle(overlay, center, radius_px, color, thickness=-1, lineType=cv2.LINE_AA)

    cv2.addWeighted(overlay, config.opacity, output, 1 - config.opacity, 0, output)
    return output


def draw_path(
    image: NDArray[np.uint8],
    path: Sequence[Position],
    bounds: GeoBounds,
    current: Position | None = None,
    config: RenderConfig | None = None,
    current_color: tuple[int, int, int] = (0, 0, 255),
) -> NDArray[np.uint8]:
    """Draw path history markers and an optional current-position marker.

    Args:
        image: Input image (H, W, 3) BGR format
        path: Earlier positions, oldest first
        bounds: Geographic box covered by the image
        current: Latest position, drawn larger on top
        config: Path color and marker radius
        current_color: BGR color of the current-position marker

    Returns:
        Image with path overlay (modified copy)
    """
    _ensure_cv2()
    config = config if config is not None else RenderConfig()
    output = image.copy()

    radius_px = meters_to_pixels(config.path_radius_meters, bounds, image.shape)
    r, g, b = config.path_color
    pixels = project_to_pixels([p.coordinate for p in path], bounds, image.shape)
    for x, y in pixels:
        cv2.circle(output, (int(x), int(y)), radius_px, (b, g, r), thickness=-1, lineType=cv2.LINE_AA)

    if current is not None:
        (cx, cy), = project_to_pixels([current.coordinate], bounds, image.shape)
        cv2.circle(output, (int(cx), int(cy)), radius_px * 2, current_color, thickness=-1, lineType=cv2.LINE_AA)
        cv2.circle(output, (int(cx), int(cy)), radius_px * 2, (255, 255, 255), thickness=2, lineType=cv2.LINE_AA)

    return output
