"""Track waypoint model."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Waypoint(BaseModel):
    """One immutable point on a reference track.

    Parameters
    ----------
    latitude : float
        Latitude in degrees.
    longitude : float
        Longitude in degrees.
    elevation : float or None
        Elevation in meters, when the track carries it.
    timestamp : datetime or None
        Recorded time of the point.  Naive values are taken as UTC.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    elevation: float | None = None
    timestamp: datetime | None = None

    @field_validator("timestamp")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
