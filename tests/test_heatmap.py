"""
Tests for heatmap aggregation.

Tests cover:
- Plain density bucketing and the x10 saturating intensity
- Crowd mode: recent-position retention, output ceiling, fallback points,
  per-cell intensity averaging
- Crowd disabled matching plain mode exactly
- HeatmapService wrapping storage failures in a Result
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from crowd_heatmap.crowd import CrowdPointGenerator
from crowd_heatmap.heatmap import (
    HeatmapService,
    aggregate_crowd_points,
    aggregate_plain,
    aggregate_with_crowd,
    density_intensity,
    inflate_positions,
    most_recent,
)
from crowd_heatmap.result import FailureKind, StorageError
from crowd_heatmap.tracking.dataclasses import (
    Coordinate,
    CrowdConfig,
    HeatmapConfig,
    HeatMapPoint,
    Position,
)
from crowd_heatmap.tracking.storage import InMemoryLocationRepository

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Fixtures and helpers
# =============================================================================


def make_positions(count: int, step_deg: float = 0.001, session_id: int = 1) -> list[Position]:
    """Positions along a meridian, one per second, each in its own grid cell."""
    return [
        Position(
            coordinate=Coordinate(37.0 + i * step_deg, -122.0),
            timestamp=T0 + timedelta(seconds=i),
            session_id=session_id,
            id=i + 1,
        )
        for i in range(count)
    ]


class FailingGenerator:
    """Crowd generator stand-in whose every call fails."""

    def __init__(self) -> None:
        self.calls = 0

    def generate(self, center, density=None, radius_meters=None):
        self.calls += 1
        raise RuntimeError("generator exploded")


class FailingRepository(InMemoryLocationRepository):
    async def get_all_locations(self) -> list[Position]:
        raise StorageError("disk unavailable")

    async def get_locations_by_session(self, session_id: int) -> list[Position]:
        raise StorageError("disk unavailable")


@pytest.fixture
def generator() -> CrowdPointGenerator:
    return CrowdPointGenerator(seed=2024)


# =============================================================================
# Tests: plain aggregation
# =============================================================================


class TestPlainAggregation:
    """Tests for aggregate_plain."""

    def test_empty_input(self) -> None:
        assert aggregate_plain([]) == []

    def test_identical_positions_collapse_to_full_intensity(self) -> None:
        same = [Position(Coordinate(10.0, 20.0), T0 + timedelta(seconds=i), 1) for i in range(7)]
        result = aggregate_plain(same)
        assert result == [HeatMapPoint(Coordinate(10.0, 20.0), 1.0)]

    def test_sparse_cell_intensity(self) -> None:
        dense = [Position(Coordinate(10.0, 20.0), T0, 1) for _ in range(20)]
        sparse = [Position(Coordinate(11.0, 20.0), T0, 1)]
        result = aggregate_plain(dense + sparse)
        assert len(result) == 2
        assert result[0].intensity == 1.0
        assert result[1].intensity == pytest.approx(10.0 / 21.0)

    def test_rounding_groups_nearby_positions(self) -> None:
        positions = [
            Position(Coordinate(37.77631, -122.41961), T0, 1),
            Position(Coordinate(37.77634, -122.41964), T0, 1),
        ]
        result = aggregate_plain(positions)
        assert len(result) == 1
        assert result[0].coordinate == Coordinate(37.7763, -122.4196)

    def test_first_seen_order(self) -> None:
        positions = make_positions(3)
        result = aggregate_plain(list(reversed(positions)))
        assert [p.latitude for p in result] == [
            round(p.latitude, 4) for p in reversed(positions)
        ]

    def test_intensities_within_unit_interval(self) -> None:
        result = aggregate_plain(make_positions(50))
        assert all(0.0 <= p.intensity <= 1.0 for p in result)
        # 1/50 * 10
        assert result[0].intensity == pytest.approx(0.2)

    def test_density_intensity_zero_total(self) -> None:
        assert density_intensity(0, 0) == 0.0


# =============================================================================
# Tests: crowd aggregation
# =============================================================================


class TestMostRecent:
    """Tests for most_recent."""

    def test_short_input_unchanged(self) -> None:
        positions = make_positions(4)
        assert most_recent(positions, 30) == positions

    def test_keeps_newest_in_input_order(self) -> None:
        positions = make_positions(5)
        shuffled = [positions[3], positions[0], positions[4], positions[1], positions[2]]
        assert most_recent(shuffled, 2) == [positions[3], positions[4]]

    def test_ties_keep_earlier_input(self) -> None:
        tied = [Position(Coordinate(float(i), 0.0), T0, 1, id=i) for i in range(4)]
        assert [p.id for p in most_recent(tied, 2)] == [0, 1]


class TestCrowdAggregation:
    """Tests for inflate_positions and aggregate_with_crowd."""

    def test_empty_input(self, generator: CrowdPointGenerator) -> None:
        assert aggregate_with_crowd([], True, generator) == []

    @pytest.mark.parametrize("count", [10, 100, 1000])
    def test_output_never_exceeds_ceiling(self, generator: CrowdPointGenerator, count: int) -> None:
        result = aggregate_with_crowd(make_positions(count), True, generator)
        assert 0 < len(result) <= 150
        assert all(0.0 <= p.intensity <= 1.0 for p in result)

    def test_ceiling_truncates_last_batch(self, generator: CrowdPointGenerator) -> None:
        config = HeatmapConfig(max_input_locations=100, crowd=CrowdConfig(density=4))
        synthetic = inflate_positions(make_positions(100), generator, config)
        assert len(synthetic) == 150

    def test_ceiling_holds_with_large_retention(self, generator: CrowdPointGenerator) -> None:
        config = HeatmapConfig(max_input_locations=500, crowd=CrowdConfig(density=4))
        result = aggregate_with_crowd(make_positions(1000), True, generator, config)
        assert len(result) <= 150

    def test_only_recent_positions_inflated(self, generator: CrowdPointGenerator) -> None:
        # Far apart so crowd points cannot reach another position's area
        positions = make_positions(40, step_deg=0.1)
        result = aggregate_with_crowd(positions, True, generator)
        oldest_kept = positions[10].latitude
        assert all(p.latitude > oldest_kept - 0.01 for p in result)

    def test_disabled_equals_plain(self, generator: CrowdPointGenerator) -> None:
        positions = make_positions(25) + make_positions(5)
        assert aggregate_with_crowd(positions, False, generator) == aggregate_plain(positions)

    def test_generation_failure_uses_fallback_point(self) -> None:
        failing = FailingGenerator()
        positions = make_positions(3)
        result = aggregate_with_crowd(positions, True, failing)
        assert failing.calls == 3
        assert len(result) == 3
        for point, position in zip(result, positions):
            assert point.intensity == pytest.approx(0.7)
            assert point.coordinate == Coordinate(*position.coordinate.rounded(5))

    def test_averages_intensity_per_cell(self) -> None:
        points = [
            HeatMapPoint(Coordinate(1.0, 2.0), 0.6),
            HeatMapPoint(Coordinate(1.000001, 2.000001), 1.0),
            HeatMapPoint(Coordinate(1.5, 2.0), 0.5),
        ]
        result = aggregate_crowd_points(points, precision=5)
        assert len(result) == 2
        assert result[0].coordinate == Coordinate(1.0, 2.0)
        assert result[0].intensity == pytest.approx(0.8)
        assert result[1].intensity == pytest.approx(0.5)


# =============================================================================
# Tests: HeatmapService
# =============================================================================


class TestHeatmapService:
    """Tests for the repository-backed service."""

    def test_generates_from_all_positions(self) -> None:
        async def scenario():
            repository = InMemoryLocationRepository()
            for position in make_positions(3, session_id=1) + make_positions(2, session_id=2):
                await repository.save_location(position)
            service = HeatmapService(repository)
            return await service.generate(), await service.generate(session_id=2)

        all_result, session_result = asyncio.run(scenario())
        assert all_result.is_success
        # Sessions 1 and 2 share their first two cells
        assert len(all_result.value) == 3
        assert len(session_result.value) == 2

    def test_crowd_override(self) -> None:
        async def scenario():
            repository = InMemoryLocationRepository()
            for position in make_positions(5):
                await repository.save_location(position)
            service = HeatmapService(repository, generator=CrowdPointGenerator(seed=1))
            service.set_crowd_enabled(True)
            return await service.generate(crowd_enabled=False), await service.generate()

        plain, crowd = asyncio.run(scenario())
        assert len(plain.value) == 5
        assert 5 < len(crowd.value) <= 15

    def test_storage_failure_returns_failed_result(self) -> None:
        async def scenario():
            service = HeatmapService(FailingRepository())
            return await service.generate(), await service.generate(session_id=1)

        for result in asyncio.run(scenario()):
            assert not result.is_success
            assert result.kind is FailureKind.STORAGE
            assert result.error_message == "Database error occurred. Your data may not be saved."
            assert result.value_or([]) == []
