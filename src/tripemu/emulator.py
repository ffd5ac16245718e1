"""High-level async entry point owning the HTTP session and the fleet."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import aiohttp

from tripemu._transport import HttpTelemetrySink, TelemetrySink
from tripemu.config import EmulatorConfig
from tripemu.exceptions import TripEmuError
from tripemu.models.status import EmulatorStatus
from tripemu.registry import FleetRegistry
from tripemu.scheduler import AsyncioScheduler, Scheduler
from tripemu.track import GpxTrackSource, TrackSource

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TripEmulator:
    """Async emulator for a fleet of vehicles.

    Usage::

        async with TripEmulator(EmulatorConfig.from_env()) as emulator:
            await emulator.start("151", "namsan_loop")
            ...
            await emulator.stop("151")

    Leaving the context hard-stops every vehicle (no ignition-off messages
    are sent), waits for the cancelled producer tasks of its own scheduler
    to finish, and closes the HTTP session unless it was supplied by the
    caller.
    """

    def __init__(
        self,
        config: EmulatorConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        track_source: TrackSource | None = None,
        sink_factory: Callable[[str], TelemetrySink] | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._track_source = track_source or GpxTrackSource(config.assets_dir)
        self._sink_factory = sink_factory
        self._scheduler = scheduler
        self._owned_scheduler: AsyncioScheduler | None = None
        self._clock = clock
        self._registry: FleetRegistry | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TripEmulator:
        if self._sink_factory is None and self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        if self._scheduler is None:
            self._owned_scheduler = AsyncioScheduler()
        self._registry = FleetRegistry(
            self._config,
            self._track_source,
            self._sink_factory or self._http_sink,
            scheduler=self._scheduler or self._owned_scheduler,
            clock=self._clock,
        )
        _logger.debug("Emulator ready, collector=%s", self._config.server_endpoint)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._registry is not None:
            self._registry.reset_all()
            self._registry = None
        if self._owned_scheduler is not None:
            # In-flight ticks may still be using the session.
            await self._owned_scheduler.wait_closed()
            self._owned_scheduler = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _http_sink(self, vehicle_id: str) -> TelemetrySink:
        if self._http_session is None:
            raise TripEmuError("HTTP session not initialized")
        return HttpTelemetrySink(self._config, vehicle_id, self._http_session)

    def _require_registry(self) -> FleetRegistry:
        if self._registry is None:
            raise TripEmuError("Emulator not initialized. Use 'async with TripEmulator(...) as emulator:'")
        return self._registry

    # ------------------------------------------------------------------
    # Operator surface
    # ------------------------------------------------------------------

    @property
    def registry(self) -> FleetRegistry:
        return self._require_registry()

    async def start(self, vehicle_id: str, track_id: str) -> None:
        """Start or resume a vehicle's trip."""
        await self._require_registry().start(vehicle_id, track_id)

    async def stop(self, vehicle_id: str) -> None:
        """Stop a vehicle's trip, keeping it resumable."""
        await self._require_registry().stop(vehicle_id)

    def status(self, vehicle_id: str) -> EmulatorStatus:
        return self._require_registry().status(vehicle_id)

    def current_route(self, vehicle_id: str) -> str:
        return self._require_registry().current_route(vehicle_id)

    def reset_all(self) -> None:
        """Hard-stop and forget every vehicle."""
        self._require_registry().reset_all()
