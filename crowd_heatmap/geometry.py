"""
Geodesy utilities: meter offsets to degree offsets, great-circle distance,
and the polar clamping policy used by crowd generation.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import ArrayLike, NDArray

EARTH_RADIUS_M = 6_371_000.0

# cos(lat) vanishes at the poles; longitude scaling uses this latitude at most.
MAX_SCALE_LATITUDE = 89.9


def meters_to_degree_offsets(
    delta_x_m: float,
    delta_y_m: float,
    latitude: float,
) -> tuple[float, float]:
    """
    Convert a planar (east, north) offset in meters to (dlat, dlng) degrees.

    Parameters:
        delta_x_m: Eastward offset in meters
        delta_y_m: Northward offset in meters
        latitude: Latitude of the reference point in degrees. Clamped to
            +/-MAX_SCALE_LATITUDE before computing the longitude scale.

    Returns:
        Tuple (dlat, dlng) in degrees
    """
    scale_lat = max(-MAX_SCALE_LATITUDE, min(MAX_SCALE_LATITUDE, latitude))
    d_lat = delta_y_m / EARTH_RADIUS_M * (180.0 / math.pi)
    d_lng = delta_x_m / (EARTH_RADIUS_M * math.cos(math.radians(scale_lat))) * (180.0 / math.pi)
    return (d_lat, d_lng)


def clamp_latitude(latitude: float) -> float:
    return max(-90.0, min(90.0, latitude))


def wrap_longitude(longitude: float) -> float:
    """Wrap a longitude into [-180, 180]."""
    if -180.0 <= longitude <= 180.0:
        return longitude
    wrapped = (longitude + 180.0) % 360.0 - 180.0
    # Keep +180 rather than folding it onto -180
    if wrapped == -180.0 and longitude > 0:
        return 180.0
    return wrapped


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance in meters between two lat/lon points.

    Parameters:
        lat1, lon1: First point in degrees
        lat2, lon2: Second point in degrees

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def haversine_many_m(
    center_lat: float,
    center_lon: float,
    lats: ArrayLike,
    lons: ArrayLike,
) -> NDArray[np.float64]:
    """
    Vectorized great-circle distances from one center to many points.

    Parameters:
        center_lat, center_lon: Center in degrees
        lats, lons: Arrays of shape (N,) in degrees

    Returns:
        Array of shape (N,) with distances in meters
    """
    lat_arr = np.radians(np.asarray(lats, dtype=np.float64))
    lon_arr = np.radians(np.asarray(lons, dtype=np.float64))
    phi0 = math.radians(center_lat)
    lam0 = math.radians(center_lon)

    a = (
        np.sin((lat_arr - phi0) / 2.0) ** 2
        + math.cos(phi0) * np.cos(lat_arr) * np.sin((lon_arr - lam0) / 2.0) ** 2
    )
    return EARTH_RADIUS_M * 2.0 * np.arctan2(np.sqrt(a), np.sqrt(1.0 - a))
