"""
Heatmap Aggregation
===================

Turns a history of positions into a bounded set of weighted heat points.

Two modes:
- Plain density: positions are bucketed on a ~11 m grid (4 decimal places)
  and each bucket's intensity is min(1, share * 10). Raw shares are usually
  small, so the x10 amplification with saturation keeps sparse and dense
  cells visually distinct.
- Crowd-inflated density: the most recent positions are each inflated into
  a few synthetic points, bucketed on a ~1.1 m grid (5 decimal places), and
  each bucket's intensity is the average of its members.

Invariants:
- Every intensity is in [0, 1]
- Crowd mode never returns more than `max_output_points` points
- Crowd mode with crowd disabled is identical to plain mode
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from crowd_heatmap.crowd import CrowdPointGenerator
from crowd_heatmap.result import Result, execute_with_error_handling
from crowd_heatmap.tracking.dataclasses import (
    Coordinate,
    HeatmapConfig,
    HeatMapPoint,
    Position,
)
from crowd_heatmap.tracking.storage import LocationRepository

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = HeatmapConfig()


# =============================================================================
# Grid Bucketing
# =============================================================================


def _group_by_cell(
    coordinates: Iterable[Coordinate],
    precision: int,
) -> dict[tuple[float, float], list[int]]:
    """Map rounded (lat, lng) cell -> indices of members, in first-seen order."""
    groups: dict[tuple[float, float], list[int]] = {}
    for index, coordinate in enumerate(coordinates):
        groups.setdefault(coordinate.rounded(precision), []).append(index)
    return groups


def density_intensity(group_size: int, total_count: int, scale: float = 10.0) -> float:
    """Amplified density share: min(1, group_size / total_count * scale)."""
    if total_count == 0:
        return 0.0
    return min(1.0, (group_size / total_count) * scale)


# =============================================================================
# Plain Aggregation
# =============================================================================


def aggregate_plain(
    positions: Sequence[Position],
    config: HeatmapConfig = DEFAULT_CONFIG,
) -> list[HeatMapPoint]:
    """Bucket positions on the plain grid and weight each bucket by density.

    Args:
        positions: Tracked positions, any order
        config: Supplies plain_precision and intensity_scale

    Returns:
        One HeatMapPoint per occupied grid cell, in first-seen order.
        Empty input yields an empty list.

    Example:
        >>> from datetime import datetime, timezone
        >>> now = datetime.now(timezone.utc)
        >>> same = [Position(Coordinate(0.0, 0.0), now, 1) for _ in range(5)]
        >>> aggregate_plain(same)
        [HeatMapPoint(coordinate=Coordinate(latitude=0.0, longitude=0.0), intensity=1.0)]
    """
    if not positions:
        return []

    total = len(positions)
    groups = _group_by_cell((p.coordinate for p in positions), config.plain_precision)

    return [
        HeatMapPoint(
            coordinate=Coordinate(lat, lng),
            intensity=density_intensity(len(members), total, config.intensity_scale),
        )
        for (lat, lng), members in groups.items()
    ]


# =============================================================================
# Crowd-Inflated Aggregation
# =============================================================================


def most_recent(positions: Sequence[Position], limit: int) -> list[Position]:
    """Keep the `limit` newest positions, preserving their input order.

    Newest is by timestamp; ties keep the earlier input element.
    """
    if len(positions) <= limit:
        return list(positions)
    newest_first = sorted(
        range(len(positions)),
        key=lambda i: positions[i].timestamp,
        reverse=True,
    )
    # sorted(reverse=True) is stable, so equal timestamps keep input order
    keep = set(newest_first[:limit])
    return [p for i, p in enumerate(positions) if i in keep]


def inflate_positions(
    positions: Sequence[Position],
    generator: CrowdPointGenerator,
    config: HeatmapConfig = DEFAULT_CONFIG,
) -> list[HeatMapPoint]:
    """Generate crowd points for each position until the ceiling is reached.

    The ceiling is checked before each position and the last batch is
    truncated so the total never exceeds `config.max_output_points`. When
    generation fails for a position, a single point at the position itself
    with `config.fallback_intensity` is used instead and processing continues.
    """
    ceiling = config.max_output_points
    accumulated: list[HeatMapPoint] = []

    for position in positions:
        if len(accumulated) >= ceiling:
            break

        try:
            batch = generator.generate(
                position.coordinate,
                density=config.crowd.density,
                radius_meters=config.crowd.radius_meters,
            )
        except Exception:
            logger.warning(
                "Crowd generation failed for position %s at (%s, %s); using fallback point",
                position.id,
                position.latitude,
                position.longitude,
                exc_info=True,
            )
            batch = [HeatMapPoint(position.coordinate, config.fallback_intensity)]

        accumulated.extend(batch[: ceiling - len(accumulated)])

    return accumulated


def aggregate_crowd_points(
    points: Sequence[HeatMapPoint],
    precision: int,
) -> list[HeatMapPoint]:
    """Bucket synthetic points and average the intensities in each bucket."""
    groups = _group_by_cell((p.coordinate for p in points), precision)
    return [
        HeatMapPoint(
            coordinate=Coordinate(lat, lng),
            intensity=sum(points[i].intensity for i in members) / len(members),
        )
        for (lat, lng), members in groups.items()
    ]


def aggregate_with_crowd(
    positions: Sequence[Position],
    crowd_enabled: bool,
    generator: CrowdPointGenerator | None = None,
    config: HeatmapConfig = DEFAULT_CONFIG,
) -> list[HeatMapPoint]:
    """Aggregate positions, optionally inflating them into a simulated crowd.

    Args:
        positions: Tracked positions, any order
        crowd_enabled: When False, the result is exactly `aggregate_plain`
        generator: Crowd point source; a fresh unseeded generator by default
        config: Caps, precisions and crowd parameters

    Returns:
        At most `config.max_output_points` HeatMapPoints when crowd mode is on
    """
    if not crowd_enabled:
        return aggregate_plain(positions, config)
    if not positions:
        return []

    if generator is None:
        generator = CrowdPointGenerator(config=config.crowd)

    retained = most_recent(positions, config.max_input_locations)
    synthetic = inflate_positions(retained, generator, config)
    result = aggregate_crowd_points(synthetic, config.crowd_precision)

    logger.debug(
        "Crowd heatmap: %d positions -> %d retained -> %d synthetic -> %d points",
        len(positions),
        len(retained),
        len(synthetic),
        len(result),
    )
    return result


# =============================================================================
# Repository-backed Service
# =============================================================================


class HeatmapService:
    """Computes heatmaps from stored positions.

    Storage failures never escape: every call returns a Result.

    Attributes:
        crowd_enabled: Default crowd mode used when a call does not override it
    """

    def __init__(
        self,
        repository: LocationRepository,
        generator: CrowdPointGenerator | None = None,
        config: HeatmapConfig | None = None,
        crowd_enabled: bool = False,
    ) -> None:
        self._repository = repository
        self.config = config if config is not None else HeatmapConfig()
        self._generator = (
            generator if generator is not None else CrowdPointGenerator(config=self.config.crowd)
        )
        self.crowd_enabled = crowd_enabled

    def set_crowd_enabled(self, enabled: bool) -> None:
        logger.debug("Crowd simulation %s", "enabled" if enabled else "disabled")
        self.crowd_enabled = bool(enabled)

    async def load_positions(self, session_id: int | None = None) -> list[Position]:
        """All stored positions, or only those of `session_id`."""
        if session_id is None:
            return await self._repository.get_all_locations()
        return await self._repository.get_locations_by_session(session_id)

    async def generate(
        self,
        session_id: int | None = None,
        crowd_enabled: bool | None = None,
    ) -> Result[list[HeatMapPoint]]:
        """Load positions from storage and aggregate them.

        Args:
            session_id: Restrict to one session; None means all positions
            crowd_enabled: Override the service's crowd mode for this call

        Returns:
            Result with the heat points, or a STORAGE/UNEXPECTED failure
        """
        use_crowd = self.crowd_enabled if crowd_enabled is None else crowd_enabled

        async def _generate() -> list[HeatMapPoint]:
            positions = await self.load_positions(session_id)
            return aggregate_with_crowd(positions, use_crowd, self._generator, self.config)

        operation = "GenerateHeatMapData" if session_id is None else "GenerateHeatMapDataForSession"
        return await execute_with_error_handling(_generate, operation)
