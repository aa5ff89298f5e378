"""
Crowd Point Generation
======================

Inflates one real position into a handful of synthetic nearby points so the
heatmap suggests a crowd rather than a single walker.

Points are drawn uniformly over the disk of radius `radius_meters` around the
center: the angle is uniform in [0, 2pi) and the radial distance is
sqrt(U) * radius. Drawing the distance linearly would over-concentrate points
near the center.
"""

from __future__ import annotations

import logging
import math
from numbers import Real

import numpy as np

from crowd_heatmap.geometry import (
    clamp_latitude,
    meters_to_degree_offsets,
    wrap_longitude,
)
from crowd_heatmap.tracking.dataclasses import (
    Coordinate,
    CrowdConfig,
    HeatMapPoint,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_DENSITY = 3
DEFAULT_RADIUS_M = 50.0
MIN_SYNTHETIC_INTENSITY = 0.5
MAX_SYNTHETIC_INTENSITY = 1.0


def clamp_density(density: object, min_density: int = 2, max_density: int = 4) -> int:
    """Clamp a requested density into [min_density, max_density].

    Non-numeric or non-finite requests fall back to DEFAULT_DENSITY before
    clamping.
    """
    if isinstance(density, bool) or not isinstance(density, Real):
        value = DEFAULT_DENSITY
    elif not math.isfinite(float(density)):
        value = DEFAULT_DENSITY
    else:
        value = int(density)
    return max(min_density, min(max_density, value))


def resolve_radius(radius_meters: object) -> float:
    """Return radius_meters if strictly positive and finite, else DEFAULT_RADIUS_M."""
    if isinstance(radius_meters, bool) or not isinstance(radius_meters, Real):
        return DEFAULT_RADIUS_M
    value = float(radius_meters)
    if not math.isfinite(value) or value <= 0:
        return DEFAULT_RADIUS_M
    return value


class CrowdPointGenerator:
    """Generates synthetic heat points around real positions.

    The random source is a `numpy.random.Generator`; pass `rng` or `seed` to
    make output deterministic.

    Args:
        rng: Generator to draw from. Takes precedence over `seed`.
        seed: Seed for a new default generator when `rng` is not given
        config: Density clamp bounds and defaults

    Example:
        >>> generator = CrowdPointGenerator(seed=42)
        >>> points = generator.generate(Coordinate(37.7763, -122.4196))
        >>> len(points)
        3
    """

    def __init__(
        self,
        rng: np.random.Generator | None = None,
        seed: int | None = None,
        config: CrowdConfig | None = None,
    ) -> None:
        self._rng = rng if rng is not None else np.random.default_rng(seed)
        self.config = config if config is not None else CrowdConfig()

    def generate(
        self,
        center: Coordinate,
        density: int | None = None,
        radius_meters: float | None = None,
    ) -> list[HeatMapPoint]:
        """Generate synthetic points around `center`.

        Args:
            center: The real position to inflate
            density: Number of points requested; clamped to the configured
                [min_density, max_density]. Defaults to config.density.
            radius_meters: Disk radius; falls back to 50 m when not strictly
                positive. Defaults to config.radius_meters.

        Returns:
            List of HeatMapPoint with intensities uniform in [0.5, 1.0)

        Raises:
            ValidationError: If center is not a finite coordinate
        """
        if not (math.isfinite(center.latitude) and math.isfinite(center.longitude)):
            raise ValidationError(
                f"crowd center must be finite, got ({center.latitude}, {center.longitude})"
            )

        count = clamp_density(
            self.config.density if density is None else density,
            self.config.min_density,
            self.config.max_density,
        )
        radius = resolve_radius(self.config.radius_meters if radius_meters is None else radius_meters)

        angles = self._rng.random(count) * 2.0 * math.pi
        distances = np.sqrt(self._rng.random(count)) * radius
        intensities = MIN_SYNTHETIC_INTENSITY + self._rng.random(count) * (
            MAX_SYNTHETIC_INTENSITY - MIN_SYNTHETIC_INTENSITY
        )

        points: list[HeatMapPoint] = []
        for angle, distance, intensity in zip(angles, distances, intensities):
            delta_x = float(distance * math.cos(angle))
            delta_y = float(distance * math.sin(angle))
            d_lat, d_lng = meters_to_degree_offsets(delta_x, delta_y, center.latitude)
            points.append(
                HeatMapPoint(
                    coordinate=Coordinate(
                        clamp_latitude(center.latitude + d_lat),
                        wrap_longitude(center.longitude + d_lng),
                    ),
                    intensity=float(intensity),
                )
            )

        logger.debug(
            "Generated %d crowd points within %.1fm of (%.6f, %.6f)",
            len(points),
            radius,
            center.latitude,
            center.longitude,
        )
        return points


_default_generator = CrowdPointGenerator()


def generate_crowd_points(
    center: Coordinate,
    density: int = DEFAULT_DENSITY,
    radius_meters: float = DEFAULT_RADIUS_M,
    rng: np.random.Generator | None = None,
) -> list[HeatMapPoint]:
    """Module-level convenience around `CrowdPointGenerator.generate`.

    Uses a shared default generator unless `rng` is supplied.
    """
    generator = _default_generator if rng is None else CrowdPointGenerator(rng=rng)
    return generator.generate(center, density=density, radius_meters=radius_meters)
