"""Collector wire payloads.

The collector speaks a compact JSON dialect: short field names, numbers
carried as strings, coordinates as integer micro-degrees and times as
``YYMMDDHHmmss`` in the deployment's local zone.  Fields are declared in
snake_case and serialized with ``by_alias=True``.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, tzinfo
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tripemu._constants import COORDINATE_SCALE, GPS_CONDITION_VALID, WIRE_TIME_FORMAT
from tripemu.config import EmulatorConfig
from tripemu.models.sample import PositionSample


def format_wire_time(value: datetime | None, tz: tzinfo) -> str:
    """Format *value* as ``YYMMDDHHmmss`` in *tz* (``""`` for ``None``)."""
    if value is None:
        return ""
    return value.astimezone(tz).strftime(WIRE_TIME_FORMAT)


def encode_coordinate(degrees: float) -> str:
    """Encode a coordinate as a string of integer micro-degrees."""
    return str(round(degrees * COORDINATE_SCALE))


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class _TerminalHeader(_WireModel):
    vehicle_id: str = Field(..., serialization_alias="mdn")
    terminal_id: str = Field(..., serialization_alias="tid")
    maker_id: str = Field(..., serialization_alias="mid")
    packet_version: str = Field(..., serialization_alias="pv")
    device_id: str = Field(..., serialization_alias="did")

    @staticmethod
    def _header(config: EmulatorConfig, vehicle_id: str) -> dict[str, str]:
        return {
            "vehicle_id": vehicle_id,
            "terminal_id": config.terminal_id,
            "maker_id": config.maker_id,
            "packet_version": config.packet_version,
            "device_id": config.device_id,
        }


class IgnitionPayload(_TerminalHeader):
    """Trip-start (``on``) and trip-end (``off``) message body."""

    on_time: str = Field(..., serialization_alias="onTime")
    off_time: str | None = Field(default=None, serialization_alias="offTime")
    gps_condition: str = Field(default=GPS_CONDITION_VALID, serialization_alias="gcd")
    lat: str
    lon: str
    heading: str = Field(..., serialization_alias="ang")
    speed: str = Field(..., serialization_alias="spd")
    distance: str = Field(..., serialization_alias="sum")

    @classmethod
    def build(
        cls,
        config: EmulatorConfig,
        position: PositionSample,
        started_at: datetime | None,
        ended_at: datetime | None = None,
        *,
        is_end: bool = False,
    ) -> IgnitionPayload:
        tz = config.tz
        return cls(
            **cls._header(config, position.vehicle_id),
            on_time=format_wire_time(started_at, tz),
            off_time=format_wire_time(ended_at, tz) if is_end else None,
            lat=encode_coordinate(position.latitude),
            lon=encode_coordinate(position.longitude),
            heading=str(position.heading),
            speed=str(position.speed),
            distance=str(position.wire_distance),
        )


class CycleEntry(_WireModel):
    """One sample inside a cyclic batch."""

    gps_condition: str = Field(default=GPS_CONDITION_VALID, serialization_alias="gcd")
    lat: str
    lon: str
    heading: str = Field(..., serialization_alias="ang")
    speed: str = Field(..., serialization_alias="spd")
    distance: str = Field(..., serialization_alias="sum")
    battery: str = Field(..., serialization_alias="bat")
    second: str = Field(..., serialization_alias="sec")


class CyclePayload(_TerminalHeader):
    """Cyclic batch message body."""

    occurred_at: str = Field(..., serialization_alias="oTime")
    count: str = Field(..., serialization_alias="cCnt")
    entries: list[CycleEntry] = Field(..., serialization_alias="cList")

    @classmethod
    def build(cls, config: EmulatorConfig, samples: Sequence[PositionSample]) -> CyclePayload:
        if not samples:
            raise ValueError("a cycle payload needs at least one sample")
        tz = config.tz
        entries = [
            CycleEntry(
                lat=encode_coordinate(sample.latitude),
                lon=encode_coordinate(sample.longitude),
                heading=str(sample.heading),
                speed=str(sample.speed),
                distance=str(sample.wire_distance),
                battery=config.battery_voltage,
                second=str(sample.captured_at.astimezone(tz).second),
            )
            for sample in samples
        ]
        return cls(
            **cls._header(config, samples[0].vehicle_id),
            occurred_at=format_wire_time(samples[0].captured_at, tz),
            count=str(len(entries)),
            entries=entries,
        )
