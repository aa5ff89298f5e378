"""
Coordinate Validation
=====================

Pure, total validators for geographic coordinates. Every function returns a
ValidationResult instead of raising, for any float input including NaN and
infinities (which always fail).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from crowd_heatmap.tracking.dataclasses import (
    MAX_LATITUDE,
    MAX_LONGITUDE,
    MIN_LATITUDE,
    MIN_LONGITUDE,
    Coordinate,
)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a coordinate check.

    Attributes:
        is_valid: True when the check passed
        error_message: Which bound was violated and the offending value,
            empty on success
    """

    is_valid: bool
    error_message: str = ""

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(is_valid=True)

    @classmethod
    def failure(cls, error_message: str) -> ValidationResult:
        return cls(is_valid=False, error_message=error_message)

    def __bool__(self) -> bool:
        return self.is_valid


def _check_range(label: str, value: float, lower: float, upper: float) -> ValidationResult:
    try:
        as_float = float(value)
    except (TypeError, ValueError):
        return ValidationResult.failure(
            f"{label} must be between {lower} and {upper} degrees. Provided value: {value!r}"
        )
    if not math.isfinite(as_float):
        return ValidationResult.failure(
            f"{label} must be a finite number between {lower} and {upper} degrees. "
            f"Provided value: {value}"
        )
    if as_float < lower or as_float > upper:
        return ValidationResult.failure(
            f"{label} must be between {lower} and {upper} degrees. Provided value: {value}"
        )
    return ValidationResult.success()


def validate_latitude(latitude: float) -> ValidationResult:
    """Check that latitude lies in [-90, 90].

    Args:
        latitude: Latitude in degrees

    Returns:
        ValidationResult; on failure the message cites the bounds and value
    """
    return _check_range("Latitude", latitude, MIN_LATITUDE, MAX_LATITUDE)


def validate_longitude(longitude: float) -> ValidationResult:
    """Check that longitude lies in [-180, 180].

    Args:
        longitude: Longitude in degrees

    Returns:
        ValidationResult; on failure the message cites the bounds and value
    """
    return _check_range("Longitude", longitude, MIN_LONGITUDE, MAX_LONGITUDE)


def validate_coordinates(latitude: float, longitude: float) -> ValidationResult:
    """Check a latitude/longitude pair, reporting the latitude first."""
    lat_result = validate_latitude(latitude)
    if not lat_result.is_valid:
        return lat_result
    return validate_longitude(longitude)


def validate_origin_and_destination(
    origin: Coordinate,
    destination: Coordinate,
) -> ValidationResult:
    """Check both ends of a requested route.

    Args:
        origin: Route start
        destination: Route end

    Returns:
        ValidationResult whose message is prefixed with which end failed

    Example:
        >>> result = validate_origin_and_destination(
        ...     Coordinate(37.776345, -122.419663), Coordinate(91.0, 0.0)
        ... )
        >>> result.error_message
        'Destination coordinates invalid: Latitude must be between -90.0 and 90.0 degrees. Provided value: 91.0'
    """
    origin_result = validate_coordinates(origin.latitude, origin.longitude)
    if not origin_result.is_valid:
        return ValidationResult.failure(
            f"Origin coordinates invalid: {origin_result.error_message}"
        )

    dest_result = validate_coordinates(destination.latitude, destination.longitude)
    if not dest_result.is_valid:
        return ValidationResult.failure(
            f"Destination coordinates invalid: {dest_result.error_message}"
        )

    return ValidationResult.success()
