"""
Tests for coordinate validation.

Tests cover:
- Latitude and longitude bounds, inclusive edges
- Messages citing the violated bound and the offending value
- NaN and infinities failing instead of raising
- Origin/destination prefixes
"""

import math

import pytest

from crowd_heatmap.tracking.dataclasses import Coordinate
from crowd_heatmap.validation import (
    ValidationResult,
    validate_coordinates,
    validate_latitude,
    validate_longitude,
    validate_origin_and_destination,
)


# =============================================================================
# Tests: validate_latitude / validate_longitude
# =============================================================================


class TestLatitude:
    """Tests for validate_latitude."""

    @pytest.mark.parametrize("value", [-90.0, -45.5, 0.0, 37.776345, 90.0])
    def test_in_range_passes(self, value: float) -> None:
        result = validate_latitude(value)
        assert result.is_valid
        assert result.error_message == ""

    def test_91_fails_citing_upper_bound(self) -> None:
        result = validate_latitude(91)
        assert not result.is_valid
        assert "90" in result.error_message
        assert "91" in result.error_message
        assert result.error_message.startswith("Latitude must be between -90.0 and 90.0")

    def test_below_minimum_fails(self) -> None:
        result = validate_latitude(-90.0001)
        assert not result.is_valid
        assert "-90.0" in result.error_message

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_fails(self, value: float) -> None:
        result = validate_latitude(value)
        assert not result.is_valid
        assert "finite" in result.error_message
        assert "90.0" in result.error_message


class TestLongitude:
    """Tests for validate_longitude."""

    @pytest.mark.parametrize("value", [-180.0, -122.419663, 0.0, 180.0])
    def test_in_range_passes(self, value: float) -> None:
        assert validate_longitude(value).is_valid

    def test_minus_181_fails_citing_lower_bound(self) -> None:
        result = validate_longitude(-181)
        assert not result.is_valid
        assert "-180" in result.error_message
        assert "-181" in result.error_message
        assert result.error_message.startswith("Longitude must be between -180.0 and 180.0")

    def test_nan_fails(self) -> None:
        assert not validate_longitude(math.nan).is_valid


# =============================================================================
# Tests: validate_coordinates / validate_origin_and_destination
# =============================================================================


class TestCoordinatePair:
    """Tests for validate_coordinates."""

    def test_origin_zero_zero_passes(self) -> None:
        result = validate_coordinates(0, 0)
        assert result.is_valid
        assert bool(result) is True

    def test_latitude_reported_before_longitude(self) -> None:
        result = validate_coordinates(95.0, 200.0)
        assert not result.is_valid
        assert result.error_message.startswith("Latitude")

    def test_longitude_failure(self) -> None:
        result = validate_coordinates(10.0, 200.0)
        assert result.error_message.startswith("Longitude")

    def test_non_numeric_input_fails_without_raising(self) -> None:
        result = validate_coordinates("north", 0.0)  # type: ignore[arg-type]
        assert not result.is_valid


class TestOriginAndDestination:
    """Tests for validate_origin_and_destination."""

    def test_valid_pair(self) -> None:
        result = validate_origin_and_destination(
            Coordinate(37.776345, -122.419663), Coordinate(37.783227, -122.439540)
        )
        assert result == ValidationResult.success()

    def test_invalid_origin_prefixed(self) -> None:
        result = validate_origin_and_destination(Coordinate(0.0, -181.0), Coordinate(0.0, 0.0))
        assert not result.is_valid
        assert result.error_message.startswith("Origin coordinates invalid: Longitude")

    def test_invalid_destination_prefixed(self) -> None:
        result = validate_origin_and_destination(Coordinate(0.0, 0.0), Coordinate(91.0, 0.0))
        assert result.error_message == (
            "Destination coordinates invalid: Latitude must be between -90.0 and 90.0 "
            "degrees. Provided value: 91.0"
        )
