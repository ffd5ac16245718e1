"""Data models for tripemu."""

from tripemu.models.sample import PositionSample
from tripemu.models.status import ControllerState, EmulatorStatus, status_for
from tripemu.models.waypoint import Waypoint
from tripemu.models.wire import (
    CycleEntry,
    CyclePayload,
    IgnitionPayload,
    encode_coordinate,
    format_wire_time,
)

__all__ = [
    "ControllerState",
    "CycleEntry",
    "CyclePayload",
    "EmulatorStatus",
    "IgnitionPayload",
    "PositionSample",
    "Waypoint",
    "encode_coordinate",
    "format_wire_time",
    "status_for",
]
