"""Custom exception hierarchy for tripemu."""

from __future__ import annotations


class TripEmuError(Exception):
    """Base exception for all tripemu errors."""


class TripEmuConfigError(TripEmuError):
    """Invalid or missing configuration.

    Raised at construction time (too few waypoints, missing endpoint or
    track identifier).  Aborts setup of the affected vehicle only.
    """


class TrackLoadError(TripEmuConfigError):
    """A track could not be read or holds fewer than two waypoints."""

    def __init__(self, message: str, *, track_id: str = "") -> None:
        self.track_id = track_id
        super().__init__(message)


class TripEmuTransportError(TripEmuError):
    """HTTP-level failure talking to the collector (network, non-2xx)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class TripStartError(TripEmuError):
    """A trip could not be started (no current position available)."""
