"""Per-vehicle trip lifecycle.

A :class:`TripController` owns one interpolator, one staging buffer and two
recurring actions while its trip is active:

* the **sampler** asks the interpolator for the next position every
  ``emulator_interval_ms`` and appends it to the buffer, or ends the trip
  when the track is exhausted;
* the **dispatcher** swaps the buffer out every
  ``server_send_interval_ms`` and reports it to the sink as one batch.

State transitions::

    idle ──start──▶ active ──stop──▶ paused ──start──▶ active
                      │                 (resumes from the paused cursor,
                      │                  keeps the original trip start)
                      └─end of track─▶ ended ──start──▶ active (new trip)

    any ──start failure──▶ faulted (hard reset)

Lifecycle transitions are serialized by one lock; batch dispatches by a
second one so a final flush never overlaps an in-flight periodic dispatch.
:meth:`TripController.hard_stop` takes neither lock.  It bumps a reset
epoch instead, and a start, stop or end of trip that finds the epoch
changed after an await gives up without touching state again.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from tripemu._transport import TelemetrySink
from tripemu.config import EmulatorConfig
from tripemu.exceptions import TripStartError
from tripemu.interpolator import LinearTrackInterpolator, TrackInterpolator
from tripemu.models.sample import PositionSample
from tripemu.models.status import ControllerState, EmulatorStatus, status_for
from tripemu.models.waypoint import Waypoint
from tripemu.scheduler import AsyncioScheduler, Scheduler, Ticker

_logger = logging.getLogger(__name__)

InterpolatorFactory = Callable[[], TrackInterpolator]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TripController:
    """Drives one emulated vehicle along one track.

    Parameters
    ----------
    vehicle_id : str
        Vehicle identifier, also sent to the collector.
    track_id : str
        Identifier of the track being driven (informational).
    waypoints : Sequence[Waypoint]
        Ordered track, at least two points.
    sink : TelemetrySink
        Where trip-start, batch and trip-end messages go.
    config : EmulatorConfig
        Intervals and interpolation tuning.
    scheduler : Scheduler or None
        Source of the two recurring actions.  Defaults to asyncio tasks.
    clock : callable
        Returns "now" for trip start/end times.
    interpolator_factory : callable or None
        Builds a fresh interpolator for a new trip.  Defaults to a
        :class:`~tripemu.interpolator.LinearTrackInterpolator` over
        *waypoints*.

    Raises
    ------
    TripEmuConfigError
        When the interpolator cannot be built (fewer than two waypoints).
    """

    def __init__(
        self,
        vehicle_id: str,
        track_id: str,
        waypoints: Sequence[Waypoint],
        sink: TelemetrySink,
        config: EmulatorConfig,
        *,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] = _utcnow,
        interpolator_factory: InterpolatorFactory | None = None,
    ) -> None:
        self._vehicle_id = vehicle_id
        self._track_id = track_id
        self._waypoints: tuple[Waypoint, ...] = tuple(waypoints)
        self._sink = sink
        self._config = config
        self._scheduler: Scheduler = scheduler or AsyncioScheduler()
        self._clock = clock
        self._interpolator_factory = interpolator_factory or self._default_interpolator

        self._interpolator: TrackInterpolator = self._interpolator_factory()
        self._buffer: list[PositionSample] = []
        self._trip_started_at: datetime | None = None
        self._is_running = False
        self._is_engine_on = False
        self._state = ControllerState.IDLE
        self._last_ack: int | None = None
        self._reset_epoch = 0

        self._sampler: Ticker | None = None
        self._dispatcher: Ticker | None = None
        self._lifecycle_lock = asyncio.Lock()
        self._dispatch_lock = asyncio.Lock()

        _logger.debug("[%s] controller created for track %r", vehicle_id, track_id)

    def _default_interpolator(self) -> TrackInterpolator:
        return LinearTrackInterpolator(
            self._vehicle_id,
            self._waypoints,
            self._config.emulator_interval_ms,
            assumed_speed_mps=self._config.assumed_speed_mps,
            position_noise=self._config.position_noise,
            clock=self._clock,
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def vehicle_id(self) -> str:
        return self._vehicle_id

    @property
    def track_id(self) -> str:
        return self._track_id

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def status(self) -> EmulatorStatus:
        return status_for(self._state)

    @property
    def is_running(self) -> bool:
        """Whether the sampler and dispatcher are scheduled."""
        return self._is_running

    @property
    def is_engine_on(self) -> bool:
        return self._is_engine_on

    @property
    def trip_started_at(self) -> datetime | None:
        return self._trip_started_at

    @property
    def last_ack(self) -> int | None:
        """Value acknowledged by the collector for the latest trip start."""
        return self._last_ack

    @property
    def buffered(self) -> tuple[PositionSample, ...]:
        """Samples produced but not yet dispatched."""
        return tuple(self._buffer)

    @property
    def interpolator(self) -> TrackInterpolator:
        return self._interpolator

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Switch the ignition on and start producing samples.

        A stopped trip resumes from its paused cursor and keeps its
        original start time.  Starting a running controller is a no-op.

        Raises
        ------
        TripStartError
            When no current position is available.
        TripEmuTransportError
            When the collector rejects the trip-start message.  The
            controller is hard-reset before the error propagates.
        """
        async with self._lifecycle_lock:
            if self._is_running:
                _logger.warning("[%s] start ignored: trip already running", self._vehicle_id)
                return

            if self._trip_started_at is None:
                self._trip_started_at = self._clock()
                _logger.info("[%s] starting a new trip on track %r", self._vehicle_id, self._track_id)
            else:
                _logger.info("[%s] resuming trip started at %s", self._vehicle_id, self._trip_started_at.isoformat())

            epoch = self._reset_epoch
            try:
                position = self._interpolator.current_snapshot()
                if position is None:
                    raise TripStartError(f"[{self._vehicle_id}] no current position to start the trip from")
                ack = await self._sink.report_trip_start(position, self._trip_started_at)
            except Exception:
                if self._reset_epoch != epoch:
                    _logger.error("[%s] trip start failed after a hard stop", self._vehicle_id, exc_info=True)
                    raise
                _logger.error("[%s] trip start failed; resetting controller", self._vehicle_id, exc_info=True)
                self._hard_reset(ControllerState.FAULTED)
                raise

            if self._reset_epoch != epoch:
                _logger.warning("[%s] hard stop during trip start; producers not scheduled", self._vehicle_id)
                return

            self._last_ack = ack
            self._is_engine_on = True
            self._is_running = True
            self._state = ControllerState.ACTIVE
            self._start_tickers()
            _logger.info("[%s] trip running", self._vehicle_id)

    async def stop(self) -> None:
        """Switch the ignition off, keeping the trip resumable.

        Remaining samples go out as a final batch before the trip-end
        message.  Stopping a controller whose engine is off is a no-op.

        Raises
        ------
        TripEmuTransportError
            When the trip-end message fails.  The engine is still
            considered off.
        """
        async with self._lifecycle_lock:
            if not self._is_engine_on:
                _logger.warning("[%s] stop ignored: engine already off", self._vehicle_id)
                return

            _logger.info("[%s] stopping trip", self._vehicle_id)
            self._cancel_tickers()
            self._is_running = False
            epoch = self._reset_epoch

            flushed = await self._flush()
            if flushed:
                _logger.info("[%s] flushed %d samples before trip end", self._vehicle_id, flushed)
            if self._reset_epoch != epoch:
                _logger.warning("[%s] hard stop during trip stop; trip end not reported", self._vehicle_id)
                return

            position = self._interpolator.current_snapshot()
            try:
                await self._sink.report_trip_end(position, self._trip_started_at, self._clock())
            except Exception:
                _logger.error("[%s] trip end report failed", self._vehicle_id, exc_info=True)
                raise
            finally:
                if self._reset_epoch == epoch:
                    self._is_engine_on = False
                    self._state = ControllerState.PAUSED

            _logger.info("[%s] trip paused", self._vehicle_id)

    def hard_stop(self) -> None:
        """Drop everything without any network traffic.

        Used at shutdown and for error recovery: producers are cancelled,
        the buffer is discarded and the next start begins a fresh trip.
        """
        _logger.info("[%s] hard stop", self._vehicle_id)
        self._hard_reset(ControllerState.IDLE)

    async def _end_trip_normally(self) -> None:
        """Finish a trip whose track is exhausted.  No trip-end message is sent."""
        async with self._lifecycle_lock:
            if not self._is_running:
                # An explicit stop or hard stop got there first.
                return

            _logger.info("[%s] end of track reached; ending trip", self._vehicle_id)
            self._cancel_tickers()
            self._is_running = False
            epoch = self._reset_epoch

            flushed = await self._flush()
            _logger.info("[%s] final batch of %d samples flushed", self._vehicle_id, flushed)
            if self._reset_epoch != epoch:
                return

            self._interpolator = self._interpolator_factory()
            self._trip_started_at = None
            self._is_engine_on = False
            self._state = ControllerState.ENDED
            _logger.info("[%s] trip ended", self._vehicle_id)

    def _hard_reset(self, state: ControllerState) -> None:
        self._reset_epoch += 1
        self._cancel_tickers()
        self._is_running = False
        self._is_engine_on = False
        self._trip_started_at = None
        self._buffer = []
        self._interpolator = self._interpolator_factory()
        self._state = state

    # ------------------------------------------------------------------
    # Recurring actions
    # ------------------------------------------------------------------

    def _start_tickers(self) -> None:
        if self._sampler is not None or self._dispatcher is not None:
            _logger.warning("[%s] producers already scheduled", self._vehicle_id)
            return
        self._sampler = self._scheduler.every(
            self._config.emulator_interval,
            self._on_sample_tick,
            name=f"sampler:{self._vehicle_id}",
        )
        self._dispatcher = self._scheduler.every(
            self._config.server_send_interval,
            self._on_dispatch_tick,
            name=f"dispatcher:{self._vehicle_id}",
        )

    def _cancel_tickers(self) -> None:
        sampler, self._sampler = self._sampler, None
        dispatcher, self._dispatcher = self._dispatcher, None
        if sampler is not None:
            sampler.cancel()
        if dispatcher is not None:
            dispatcher.cancel()

    async def _on_sample_tick(self) -> None:
        try:
            sample = self._interpolator.next()
            if sample is None:
                await self._end_trip_normally()
                return
            self._buffer.append(sample)
        except Exception:
            _logger.exception("[%s] sampler tick failed", self._vehicle_id)

    async def _on_dispatch_tick(self) -> None:
        try:
            await self._flush()
        except Exception:
            _logger.exception("[%s] dispatcher tick failed", self._vehicle_id)

    async def _flush(self) -> int:
        """Send everything buffered as one batch; returns the batch size.

        Failures are logged and the batch is dropped: telemetry for that
        cycle is lost but the trip goes on.
        """
        async with self._dispatch_lock:
            if not self._buffer:
                _logger.debug("[%s] nothing buffered to dispatch", self._vehicle_id)
                return 0

            batch, self._buffer = self._buffer, []
            try:
                await self._sink.report_batch(batch)
            except Exception:
                _logger.warning(
                    "[%s] dropping batch of %d samples after send failure",
                    self._vehicle_id,
                    len(batch),
                    exc_info=True,
                )
                return 0
            _logger.debug("[%s] dispatched %d samples", self._vehicle_id, len(batch))
            return len(batch)
