"""Fleet registry: one trip controller per emulated vehicle."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from tripemu._transport import TelemetrySink
from tripemu.config import EmulatorConfig
from tripemu.controller import TripController
from tripemu.exceptions import TripEmuConfigError
from tripemu.models.status import EmulatorStatus
from tripemu.scheduler import AsyncioScheduler, Scheduler
from tripemu.track import TrackSource

_logger = logging.getLogger(__name__)

SinkFactory = Callable[[str], TelemetrySink]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _require_id(value: str, name: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise TripEmuConfigError(f"{name} must be non-empty")
    return cleaned


class FleetRegistry:
    """Maps vehicle identifiers to :class:`~tripemu.controller.TripController` objects.

    The registry is the only place controllers are created or dropped.
    Controllers are built lazily on the first start of a vehicle and
    reused afterwards so a stopped trip can resume.
    """

    def __init__(
        self,
        config: EmulatorConfig,
        track_source: TrackSource,
        sink_factory: SinkFactory,
        *,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._track_source = track_source
        self._sink_factory = sink_factory
        self._scheduler: Scheduler = scheduler or AsyncioScheduler()
        self._clock = clock
        self._controllers: dict[str, TripController] = {}
        self._start_locks: dict[str, asyncio.Lock] = {}
        self._generation = 0

    def get(self, vehicle_id: str) -> TripController | None:
        return self._controllers.get(vehicle_id)

    def vehicle_ids(self) -> list[str]:
        return list(self._controllers)

    def _lock_for(self, vehicle_id: str) -> asyncio.Lock:
        lock = self._start_locks.get(vehicle_id)
        if lock is None:
            lock = self._start_locks[vehicle_id] = asyncio.Lock()
        return lock

    async def start(self, vehicle_id: str, track_id: str) -> None:
        """Start (or resume) the trip of *vehicle_id* on *track_id*.

        A vehicle whose controller has run before resumes on its current
        track.  Otherwise the track is loaded and a new controller replaces
        any previous one.  Starts of the same vehicle run one at a time.

        Raises
        ------
        TripEmuConfigError
            On empty identifiers or an unusable track.
        TripEmuError
            When the trip cannot be started.
        """
        vehicle_id = _require_id(vehicle_id, "vehicle_id")
        async with self._lock_for(vehicle_id):
            controller = self._controllers.get(vehicle_id)

            if controller is not None and controller.status is not EmulatorStatus.PENDING:
                if track_id and track_id != controller.track_id:
                    _logger.warning(
                        "[%s] keeping track %r; requested %r ignored while the trip can resume",
                        vehicle_id,
                        controller.track_id,
                        track_id,
                    )
                _logger.debug("[%s] continuing on existing track", vehicle_id)
                await controller.start()
                return

            track_id = _require_id(track_id, "track_id")
            generation = self._generation
            waypoints = await self._track_source.load(track_id)
            if self._generation != generation:
                _logger.warning("[%s] registry reset while loading track %r; start abandoned", vehicle_id, track_id)
                return

            controller = TripController(
                vehicle_id,
                track_id,
                waypoints,
                self._sink_factory(vehicle_id),
                self._config,
                scheduler=self._scheduler,
                clock=self._clock,
            )
            self._controllers[vehicle_id] = controller
            await controller.start()

    async def stop(self, vehicle_id: str) -> None:
        """Stop the trip of *vehicle_id*; unknown vehicles are ignored with a warning."""
        controller = self._controllers.get(vehicle_id)
        if controller is None:
            _logger.warning("[%s] stop ignored: unknown vehicle", vehicle_id)
            return
        await controller.stop()

    def status(self, vehicle_id: str) -> EmulatorStatus:
        controller = self._controllers.get(vehicle_id)
        if controller is None:
            return EmulatorStatus.PENDING
        return controller.status

    def current_route(self, vehicle_id: str) -> str:
        """Track id of *vehicle_id*, ``""`` when the vehicle is unknown."""
        controller = self._controllers.get(vehicle_id)
        if controller is None:
            return ""
        return controller.track_id

    def reset_all(self) -> None:
        """Hard-stop every controller and forget them all.

        A failure on one controller does not prevent the others from
        being stopped.
        """
        for vehicle_id, controller in list(self._controllers.items()):
            try:
                controller.hard_stop()
            except Exception:
                _logger.exception("[%s] hard stop failed during reset", vehicle_id)
        self._controllers.clear()
        self._generation += 1
        _logger.info("Fleet registry reset")
