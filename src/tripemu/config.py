"""Emulator configuration for tripemu."""

from __future__ import annotations

import dataclasses
import os
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tripemu._constants import DEFAULT_ASSUMED_SPEED_MPS, DEFAULT_POSITION_NOISE
from tripemu.exceptions import TripEmuConfigError

_ENV_STR_MAP = {
    "TRIPEMU_SERVER_ENDPOINT": "server_endpoint",
    "TRIPEMU_ASSETS_DIR": "assets_dir",
    "TRIPEMU_TIME_ZONE": "time_zone",
    "TRIPEMU_TERMINAL_ID": "terminal_id",
    "TRIPEMU_MAKER_ID": "maker_id",
    "TRIPEMU_PACKET_VERSION": "packet_version",
    "TRIPEMU_DEVICE_ID": "device_id",
    "TRIPEMU_BATTERY_VOLTAGE": "battery_voltage",
}

_ENV_INT_MAP = {
    "TRIPEMU_EMULATOR_INTERVAL_MS": "emulator_interval_ms",
    "TRIPEMU_SERVER_SEND_INTERVAL_MS": "server_send_interval_ms",
}

_ENV_FLOAT_MAP = {
    "TRIPEMU_ASSUMED_SPEED_MPS": "assumed_speed_mps",
    "TRIPEMU_POSITION_NOISE": "position_noise",
    "TRIPEMU_REQUEST_TIMEOUT": "request_timeout",
}


def _parse_number(env_key: str, raw: str, kind: type[int] | type[float]) -> int | float:
    try:
        return kind(raw.strip())
    except ValueError as exc:
        raise TripEmuConfigError(f"{env_key} must be a {kind.__name__}, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class EmulatorConfig:
    """Emulator configuration.

    Parameters
    ----------
    server_endpoint : str
        Base URL of the telemetry collector (e.g. ``"http://collector:8080"``).
        A trailing slash is stripped.
    emulator_interval_ms : int
        Sampling interval: one position sample is produced per tick.
    server_send_interval_ms : int
        Dispatch interval: buffered samples are sent as one batch per tick.
    assets_dir : str
        Directory holding ``<track_id>.gpx`` files.
    assumed_speed_mps : float
        Speed used to estimate step counts for segments without timestamps.
    position_noise : float
        Full width (degrees) of the uniform jitter added to each axis.
    time_zone : str
        IANA zone used to format trip times on the wire.
    request_timeout : float
        Total timeout in seconds for one collector request.
    terminal_id, maker_id, packet_version, device_id : str
        Fixed terminal identity fields sent with every message.
    battery_voltage : str
        Battery voltage reported in every cyclic sample.
    """

    server_endpoint: str
    emulator_interval_ms: int = 1000
    server_send_interval_ms: int = 60_000
    assets_dir: str = "assets"
    assumed_speed_mps: float = DEFAULT_ASSUMED_SPEED_MPS
    position_noise: float = DEFAULT_POSITION_NOISE
    time_zone: str = "Asia/Seoul"
    request_timeout: float = 10.0
    terminal_id: str = "A001"
    maker_id: str = "6"
    packet_version: str = "5"
    device_id: str = "1"
    battery_voltage: str = "12.5"

    def __post_init__(self) -> None:
        endpoint = (self.server_endpoint or "").strip().rstrip("/")
        if not endpoint:
            raise TripEmuConfigError("server_endpoint must be set")
        object.__setattr__(self, "server_endpoint", endpoint)

        if self.emulator_interval_ms <= 0:
            raise TripEmuConfigError(f"emulator_interval_ms must be positive, got {self.emulator_interval_ms}")
        if self.server_send_interval_ms <= 0:
            raise TripEmuConfigError(f"server_send_interval_ms must be positive, got {self.server_send_interval_ms}")
        if self.assumed_speed_mps <= 0:
            raise TripEmuConfigError(f"assumed_speed_mps must be positive, got {self.assumed_speed_mps}")
        if self.position_noise < 0:
            raise TripEmuConfigError(f"position_noise must not be negative, got {self.position_noise}")
        if self.request_timeout <= 0:
            raise TripEmuConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        try:
            ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise TripEmuConfigError(f"Unknown time zone {self.time_zone!r}") from exc

    @property
    def tz(self) -> ZoneInfo:
        """The configured wire time zone."""
        return ZoneInfo(self.time_zone)

    @property
    def emulator_interval(self) -> float:
        """Sampling interval in seconds."""
        return self.emulator_interval_ms / 1000.0

    @property
    def server_send_interval(self) -> float:
        """Dispatch interval in seconds."""
        return self.server_send_interval_ms / 1000.0

    @classmethod
    def from_env(cls, **overrides: Any) -> EmulatorConfig:
        """Create configuration from environment variables.

        Reads ``TRIPEMU_SERVER_ENDPOINT`` and the optional ``TRIPEMU_*``
        variables. Explicit keyword arguments override environment values.

        Raises
        ------
        TripEmuConfigError
            When the endpoint is missing or a numeric variable is malformed.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = val

        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _parse_number(env_key, val, int)

        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _parse_number(env_key, val, float)

        config_kwargs.update(overrides)
        if "server_endpoint" not in config_kwargs:
            raise TripEmuConfigError("TRIPEMU_SERVER_ENDPOINT must be set")

        return cls(**config_kwargs)
