"""Motion derivation between two GPS fixes.

Pure functions: the same inputs always give the same outputs.  Every
result is floored to an integer and clamped to the band the collector
accepts (distance ``[0, 9_999_999]`` m, speed ``[0, 255]``, heading
``[0, 360]`` degrees).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from tripemu._constants import (
    DISTANCE_MAX,
    DISTANCE_MIN,
    EARTH_RADIUS_M,
    EXPECTED_MAX_SPEED_KMH,
    HEADING_MAX,
    HEADING_MIN,
    MPS_TO_KMH,
    SPEED_MAX,
    SPEED_MIN,
)


class GeoPoint(Protocol):
    """Anything exposing ``latitude``/``longitude`` in degrees."""

    @property
    def latitude(self) -> float: ...

    @property
    def longitude(self) -> float: ...


@dataclass(frozen=True, slots=True)
class Fix:
    """A position observed at a point in time."""

    latitude: float
    longitude: float
    at: datetime


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(value, upper))


def _same_point(prev: GeoPoint, curr: GeoPoint) -> bool:
    return prev.latitude == curr.latitude and prev.longitude == curr.longitude


def distance(prev: GeoPoint, curr: GeoPoint) -> int:
    """Great-circle distance in whole meters (haversine)."""
    if _same_point(prev, curr):
        return DISTANCE_MIN

    lat1 = math.radians(prev.latitude)
    lat2 = math.radians(curr.latitude)
    dlat = math.radians(curr.latitude - prev.latitude)
    dlon = math.radians(curr.longitude - prev.longitude)

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    a = min(a, 1.0)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return _clamp(math.floor(EARTH_RADIUS_M * c), DISTANCE_MIN, DISTANCE_MAX)


def speed(prev: Fix, curr: Fix) -> int:
    """Speed between two fixes on the 0-255 band (200 km/h maps to 255).

    Returns ``0`` when the elapsed time is zero or negative.
    """
    elapsed = (curr.at - prev.at).total_seconds()
    if elapsed <= 0:
        return SPEED_MIN

    speed_kmh = distance(prev, curr) / elapsed * MPS_TO_KMH
    scaled = speed_kmh / EXPECTED_MAX_SPEED_KMH * SPEED_MAX
    return _clamp(math.floor(scaled), SPEED_MIN, SPEED_MAX)


def heading(prev: GeoPoint, curr: GeoPoint) -> int:
    """Initial bearing from *prev* to *curr* in whole degrees, clockwise from north."""
    if _same_point(prev, curr):
        return HEADING_MIN

    lat1 = math.radians(prev.latitude)
    lat2 = math.radians(curr.latitude)
    dlon = math.radians(curr.longitude - prev.longitude)

    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)
    bearing = (math.degrees(math.atan2(y, x)) + HEADING_MAX) % HEADING_MAX
    return _clamp(math.floor(bearing), HEADING_MIN, HEADING_MAX)
