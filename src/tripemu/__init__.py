"""tripemu - Async vehicle trip emulator streaming GPS telemetry to a collector."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tripemu")
except PackageNotFoundError:
    __version__ = "0+local"
from tripemu._transport import HttpTelemetrySink, TelemetrySink
from tripemu.config import EmulatorConfig
from tripemu.controller import TripController
from tripemu.emulator import TripEmulator
from tripemu.exceptions import (
    TrackLoadError,
    TripEmuConfigError,
    TripEmuError,
    TripEmuTransportError,
    TripStartError,
)
from tripemu.interpolator import LinearTrackInterpolator, TrackInterpolator
from tripemu.models import (
    ControllerState,
    EmulatorStatus,
    PositionSample,
    Waypoint,
)
from tripemu.registry import FleetRegistry
from tripemu.scheduler import AsyncioScheduler, Scheduler, Ticker
from tripemu.track import GpxTrackSource, StaticTrackSource, TrackSource

__all__ = [
    "__version__",
    "AsyncioScheduler",
    "ControllerState",
    "EmulatorConfig",
    "EmulatorStatus",
    "FleetRegistry",
    "GpxTrackSource",
    "HttpTelemetrySink",
    "LinearTrackInterpolator",
    "PositionSample",
    "Scheduler",
    "StaticTrackSource",
    "TelemetrySink",
    "Ticker",
    "TrackInterpolator",
    "TrackLoadError",
    "TrackSource",
    "TripController",
    "TripEmuConfigError",
    "TripEmuError",
    "TripEmuTransportError",
    "TripEmulator",
    "TripStartError",
    "Waypoint",
]
