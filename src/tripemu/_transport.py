"""Collector boundary: the telemetry sink protocol and its HTTP transport."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Protocol

import aiohttp

from tripemu._constants import CYCLE_PATH, TRIP_END_PATH, TRIP_START_PATH, USER_AGENT
from tripemu.config import EmulatorConfig
from tripemu.exceptions import TripEmuTransportError
from tripemu.models.sample import PositionSample
from tripemu.models.wire import CyclePayload, IgnitionPayload

_logger = logging.getLogger(__name__)


class TelemetrySink(Protocol):
    """Structural interface of the remote collector.

    The controller only depends on this protocol so tests can substitute a
    recording double.  Implementations raise on failure; the caller decides
    whether the error is fatal.
    """

    async def report_trip_start(self, position: PositionSample, started_at: datetime) -> int | None: ...

    async def report_batch(self, samples: Sequence[PositionSample]) -> None: ...

    async def report_trip_end(
        self,
        position: PositionSample,
        started_at: datetime | None,
        ended_at: datetime,
    ) -> None: ...


class HttpTelemetrySink:
    """JSON-over-HTTP sink for one vehicle.

    Shares the caller's :class:`aiohttp.ClientSession`; the session's
    lifetime is owned by :class:`~tripemu.emulator.TripEmulator`.
    """

    def __init__(
        self,
        config: EmulatorConfig,
        vehicle_id: str,
        http_session: aiohttp.ClientSession,
    ) -> None:
        self._config = config
        self._vehicle_id = vehicle_id
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    @property
    def vehicle_id(self) -> str:
        return self._vehicle_id

    async def report_trip_start(self, position: PositionSample, started_at: datetime) -> int | None:
        payload = IgnitionPayload.build(self._config, position, started_at)
        body = await self._post(TRIP_START_PATH, payload.to_wire())
        _logger.info("[%s] trip start reported", self._vehicle_id)
        ack = body.get("mdn") if isinstance(body, dict) else None
        if isinstance(ack, bool) or not isinstance(ack, (int, str)):
            return None
        try:
            return int(ack)
        except ValueError:
            return None

    async def report_batch(self, samples: Sequence[PositionSample]) -> None:
        if not samples:
            _logger.debug("[%s] no samples to report", self._vehicle_id)
            return
        payload = CyclePayload.build(self._config, samples)
        await self._post(CYCLE_PATH, payload.to_wire())
        _logger.info("[%s] batch of %d samples reported", self._vehicle_id, len(samples))

    async def report_trip_end(
        self,
        position: PositionSample,
        started_at: datetime | None,
        ended_at: datetime,
    ) -> None:
        payload = IgnitionPayload.build(self._config, position, started_at, ended_at, is_end=True)
        await self._post(TRIP_END_PATH, payload.to_wire())
        _logger.info("[%s] trip end reported", self._vehicle_id)

    async def _post(self, endpoint: str, payload: Mapping[str, Any]) -> Any:
        """POST *payload* as JSON and return the decoded body (``None`` if empty)."""
        url = f"{self._config.server_endpoint}{endpoint}"
        headers = {
            "content-type": "application/json; charset=UTF-8",
            "user-agent": USER_AGENT,
        }
        _logger.debug("POST %s payload=%s", url, payload)

        try:
            async with self._http.post(
                url,
                data=json.dumps(payload, separators=(",", ":")),
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise TripEmuTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except TripEmuTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise TripEmuTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            _logger.debug("Non-JSON body from %s: %s", endpoint, text[:200])
            return None
