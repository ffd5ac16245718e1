"""Track interpolation: walk a waypoint list one sampling tick at a time.

The interpolator keeps a cursor over the segment between two consecutive
waypoints.  Each segment is split into a whole number of ticks, computed
once when the segment is entered:

* both endpoints timestamped: ``max(1, floor(dt_ms / interval_ms))``
* otherwise: travel time at the assumed speed, rounded half-up, at least 1

Every tick advances the cursor first and then emits a linearly
interpolated position with a little uniform jitter on each axis.  Once the
last waypoint becomes the segment start there is nothing left to
interpolate toward, so that tick only jitters the last known position;
the call after it reports the end of the track with ``None``.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from tripemu import motion
from tripemu._constants import DEFAULT_ASSUMED_SPEED_MPS, DEFAULT_POSITION_NOISE, MIN_TRACK_POINTS
from tripemu.exceptions import TripEmuConfigError
from tripemu.models.sample import PositionSample
from tripemu.models.waypoint import Waypoint

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class TrackInterpolator(Protocol):
    """Structural interface used by :class:`~tripemu.controller.TripController`.

    Test doubles only need these three methods.
    """

    def current_snapshot(self) -> PositionSample: ...

    def next(self) -> PositionSample | None: ...

    def is_at_end(self) -> bool: ...


@dataclass(frozen=True, slots=True)
class Cursor:
    """Read-only view of an interpolator's progress."""

    segment_start_index: int
    segment_end_index: int
    step_in_segment: int
    total_steps_in_segment: int
    latitude: float
    longitude: float
    last_sample: motion.Fix | None


class LinearTrackInterpolator:
    """Stateful cursor emitting jittered, linearly interpolated positions.

    Parameters
    ----------
    vehicle_id : str
        Identifier stamped on every produced sample.
    waypoints : Sequence[Waypoint]
        Ordered track, at least two points.
    interval_ms : int
        Sampling interval; one call to :meth:`next` covers one interval.
    assumed_speed_mps : float
        Speed used to size segments whose endpoints lack timestamps.
    position_noise : float
        Full width in degrees of the uniform jitter applied per axis.
    clock : callable
        Returns the capture time of each sample.
    rng : random.Random or None
        Jitter source; pass a seeded instance for reproducible tracks.

    Raises
    ------
    TripEmuConfigError
        When fewer than two waypoints are supplied.
    """

    def __init__(
        self,
        vehicle_id: str,
        waypoints: Sequence[Waypoint],
        interval_ms: int,
        *,
        assumed_speed_mps: float = DEFAULT_ASSUMED_SPEED_MPS,
        position_noise: float = DEFAULT_POSITION_NOISE,
        clock: Callable[[], datetime] = _utcnow,
        rng: random.Random | None = None,
    ) -> None:
        if len(waypoints) < MIN_TRACK_POINTS:
            raise TripEmuConfigError(
                f"[{vehicle_id}] a track needs at least {MIN_TRACK_POINTS} waypoints, got {len(waypoints)}"
            )
        if interval_ms <= 0:
            raise TripEmuConfigError(f"[{vehicle_id}] interval_ms must be positive, got {interval_ms}")

        self._vehicle_id = vehicle_id
        self._waypoints: tuple[Waypoint, ...] = tuple(waypoints)
        self._interval_ms = interval_ms
        self._assumed_speed_mps = assumed_speed_mps
        self._noise = position_noise
        self._clock = clock
        self._rng = rng or random.Random()

        self._start_index = 0
        self._end_index = 1
        self._step = 0
        self._total_steps = 0

        first = self._waypoints[0]
        self._latitude = first.latitude
        self._longitude = first.longitude
        self._previous: motion.Fix | None = None
        self._total_distance = 0

        self._enter_segment()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def vehicle_id(self) -> str:
        return self._vehicle_id

    @property
    def waypoints(self) -> tuple[Waypoint, ...]:
        return self._waypoints

    @property
    def total_distance(self) -> int:
        """Meters travelled since this interpolator was created."""
        return self._total_distance

    @property
    def cursor(self) -> Cursor:
        return Cursor(
            segment_start_index=self._start_index,
            segment_end_index=self._end_index,
            step_in_segment=self._step,
            total_steps_in_segment=self._total_steps,
            latitude=self._latitude,
            longitude=self._longitude,
            last_sample=self._previous,
        )

    def is_at_end(self) -> bool:
        """Whether the last waypoint has been reached and its tick spent."""
        return self._end_index >= len(self._waypoints) and self._step >= self._total_steps

    def current_snapshot(self) -> PositionSample:
        """Sample at the present cursor position, speed and heading forced to 0."""
        return PositionSample(
            vehicle_id=self._vehicle_id,
            latitude=self._latitude,
            longitude=self._longitude,
            speed=0,
            heading=0,
            cumulative_distance=self._total_distance,
            captured_at=self._clock(),
        )

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def next(self) -> PositionSample | None:
        """Advance one sampling step; ``None`` once the track is exhausted.

        Calling again after the end keeps returning ``None``.
        """
        self._advance()
        if self.is_at_end():
            return None

        now = self._clock()
        if self._end_index < len(self._waypoints):
            self._interpolate(self._waypoints[self._start_index], self._waypoints[self._end_index])
        else:
            self._jitter()

        fix = motion.Fix(self._latitude, self._longitude, now)
        speed = heading = segment_distance = 0
        if self._previous is not None:
            segment_distance = motion.distance(self._previous, fix)
            speed = motion.speed(self._previous, fix)
            heading = motion.heading(self._previous, fix)

        self._total_distance += segment_distance
        self._previous = fix

        return PositionSample(
            vehicle_id=self._vehicle_id,
            latitude=self._latitude,
            longitude=self._longitude,
            speed=speed,
            heading=heading,
            cumulative_distance=self._total_distance,
            captured_at=now,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _enter_segment(self) -> None:
        """Size the segment starting at the cursor's start index."""
        self._step = 0
        if self._end_index >= len(self._waypoints):
            # Final waypoint: a single jitter-only tick.
            self._total_steps = 1
            return

        current = self._waypoints[self._start_index]
        following = self._waypoints[self._end_index]

        if current.timestamp is not None and following.timestamp is not None:
            delta_ms = (following.timestamp - current.timestamp).total_seconds() * 1000.0
            self._total_steps = max(1, math.floor(delta_ms / self._interval_ms))
        else:
            estimated_ms = motion.distance(current, following) / self._assumed_speed_mps * 1000.0
            self._total_steps = max(1, _round_half_up(estimated_ms / self._interval_ms))

        _logger.debug(
            "[%s] segment %d->%d sized to %d steps",
            self._vehicle_id,
            self._start_index,
            self._end_index,
            self._total_steps,
        )

    def _advance(self) -> None:
        if self.is_at_end():
            return
        self._step += 1
        if self._step < self._total_steps:
            return
        if self._end_index >= len(self._waypoints):
            return
        self._start_index = self._end_index
        self._end_index += 1
        self._enter_segment()

    def _interpolate(self, current: Waypoint, following: Waypoint) -> None:
        progress = self._step / self._total_steps
        self._latitude = current.latitude + (following.latitude - current.latitude) * progress
        self._longitude = current.longitude + (following.longitude - current.longitude) * progress
        self._jitter()

    def _jitter(self) -> None:
        self._latitude += (self._rng.random() - 0.5) * self._noise
        self._longitude += (self._rng.random() - 0.5) * self._noise
