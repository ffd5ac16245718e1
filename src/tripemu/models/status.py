"""Lifecycle states exposed by trip controllers and the fleet registry."""

from __future__ import annotations

from enum import StrEnum


class ControllerState(StrEnum):
    """Internal state of one :class:`~tripemu.controller.TripController`."""

    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"
    FAULTED = "faulted"


class EmulatorStatus(StrEnum):
    """Operator-facing status of one vehicle."""

    PENDING = "pending"
    RUNNING = "running"
    STOPPED = "stopped"


_STATUS_BY_STATE: dict[ControllerState, EmulatorStatus] = {
    ControllerState.IDLE: EmulatorStatus.PENDING,
    ControllerState.FAULTED: EmulatorStatus.PENDING,
    ControllerState.ACTIVE: EmulatorStatus.RUNNING,
    ControllerState.PAUSED: EmulatorStatus.STOPPED,
    ControllerState.ENDED: EmulatorStatus.STOPPED,
}


def status_for(state: ControllerState) -> EmulatorStatus:
    """Map a controller state onto the operator-facing status."""
    return _STATUS_BY_STATE[state]
