"""Position sample model produced by the track interpolator."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tripemu._constants import DISTANCE_MAX, HEADING_MAX, SPEED_MAX


class PositionSample(BaseModel):
    """One emulated GPS reading.

    ``speed`` is the scaled 0-255 speed band, ``heading`` the bearing in
    whole degrees and ``cumulative_distance`` the meters travelled since
    the trip's interpolator was created.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    vehicle_id: str
    latitude: float
    longitude: float
    speed: int = Field(default=0, ge=0, le=SPEED_MAX)
    heading: int = Field(default=0, ge=0, le=HEADING_MAX)
    cumulative_distance: int = Field(default=0, ge=0)
    captured_at: datetime

    @field_validator("vehicle_id")
    @classmethod
    def _vehicle_id_non_empty(cls, value: str) -> str:
        vehicle_id = value.strip()
        if not vehicle_id:
            raise ValueError("vehicle_id must be non-empty")
        return vehicle_id

    @property
    def wire_distance(self) -> int:
        """Cumulative distance clamped to the collector's field width."""
        return min(self.cumulative_distance, DISTANCE_MAX)
