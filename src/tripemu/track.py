"""Track sources: turn a track identifier into an ordered waypoint list."""

from __future__ import annotations

import asyncio
import logging
import xml.etree.ElementTree as ET
from collections.abc import Mapping, Sequence
from datetime import datetime
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from tripemu._constants import MIN_TRACK_POINTS
from tripemu.exceptions import TrackLoadError
from tripemu.models.waypoint import Waypoint

_logger = logging.getLogger(__name__)

# GPX documents may use the 1.1 or 1.0 namespace, or none at all.
_GPX_NAMESPACES = ("http://www.topografix.com/GPX/1/1", "http://www.topografix.com/GPX/1/0", "")


class TrackSource(Protocol):
    """Loads the waypoints of a named track."""

    async def load(self, track_id: str) -> list[Waypoint]: ...


def _require_track_id(track_id: str) -> str:
    cleaned = (track_id or "").strip()
    if not cleaned:
        raise TrackLoadError("track id must be non-empty", track_id=track_id)
    return cleaned


def _ensure_enough_points(track_id: str, waypoints: Sequence[Waypoint]) -> None:
    if len(waypoints) < MIN_TRACK_POINTS:
        raise TrackLoadError(
            f"track {track_id!r} needs at least {MIN_TRACK_POINTS} waypoints, found {len(waypoints)}",
            track_id=track_id,
        )


def _parse_time(text: str) -> datetime:
    value = text.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _find_text(element: ET.Element, tag: str, ns: str) -> str | None:
    child = element.find(f"{{{ns}}}{tag}" if ns else tag)
    if child is None or child.text is None or not child.text.strip():
        return None
    return child.text


def parse_gpx(text: str, *, track_id: str = "") -> list[Waypoint]:
    """Parse every ``trk/trkseg/trkpt`` of a GPX document, in document order.

    Raises
    ------
    TrackLoadError
        When the document is not XML or a point carries invalid values.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise TrackLoadError(f"track {track_id!r} is not valid GPX: {exc}", track_id=track_id) from exc

    for ns in _GPX_NAMESPACES:
        prefix = f"{{{ns}}}" if ns else ""
        points = root.findall(f"{prefix}trk/{prefix}trkseg/{prefix}trkpt")
        if points:
            break
    else:
        _logger.warning("No track points found in track %r", track_id)
        return []

    waypoints: list[Waypoint] = []
    for index, point in enumerate(points):
        try:
            elevation = _find_text(point, "ele", ns)
            timestamp = _find_text(point, "time", ns)
            waypoints.append(
                Waypoint(
                    latitude=float(point.attrib["lat"]),
                    longitude=float(point.attrib["lon"]),
                    elevation=float(elevation) if elevation is not None else None,
                    timestamp=_parse_time(timestamp) if timestamp is not None else None,
                )
            )
        except (KeyError, ValueError, ValidationError) as exc:
            raise TrackLoadError(
                f"track {track_id!r} has an invalid point at index {index}: {exc}",
                track_id=track_id,
            ) from exc
    return waypoints


class GpxTrackSource:
    """Reads ``<assets_dir>/<track_id>.gpx`` files."""

    def __init__(self, assets_dir: str | Path) -> None:
        self._assets_dir = Path(assets_dir)

    def path_for(self, track_id: str) -> Path:
        cleaned = _require_track_id(track_id)
        base = self._assets_dir.resolve()
        path = (base / f"{cleaned}.gpx").resolve()
        if path.parent != base:
            raise TrackLoadError(f"track id {track_id!r} escapes the assets directory", track_id=track_id)
        return path

    async def load(self, track_id: str) -> list[Waypoint]:
        path = self.path_for(track_id)
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except OSError as exc:
            raise TrackLoadError(f"cannot read track {track_id!r} at {path}: {exc}", track_id=track_id) from exc

        waypoints = parse_gpx(text, track_id=track_id)
        _ensure_enough_points(track_id, waypoints)
        _logger.debug("Loaded track %r with %d waypoints", track_id, len(waypoints))
        return waypoints


class StaticTrackSource:
    """Serves tracks held in memory."""

    def __init__(self, tracks: Mapping[str, Sequence[Waypoint]]) -> None:
        self._tracks = {key: list(points) for key, points in tracks.items()}

    async def load(self, track_id: str) -> list[Waypoint]:
        cleaned = _require_track_id(track_id)
        waypoints = self._tracks.get(cleaned)
        if waypoints is None:
            raise TrackLoadError(f"unknown track {track_id!r}", track_id=track_id)
        _ensure_enough_points(cleaned, waypoints)
        return list(waypoints)
