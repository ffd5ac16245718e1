"""Tests for collector wire payloads and the HTTP sink."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import Any

import aiohttp
import pytest

from tripemu._transport import HttpTelemetrySink
from tripemu.config import EmulatorConfig
from tripemu.exceptions import TripEmuTransportError
from tripemu.models.sample import PositionSample
from tripemu.models.wire import CyclePayload, IgnitionPayload, encode_coordinate, format_wire_time

_T0 = datetime(2026, 1, 1, 0, 0, 5, tzinfo=UTC)
_CONFIG = EmulatorConfig(server_endpoint="http://collector.test/")


def _sample(seconds: int = 0, **kwargs: Any) -> PositionSample:
    values: dict[str, Any] = {
        "vehicle_id": "151",
        "latitude": 37.5512,
        "longitude": 126.9882,
        "speed": 40,
        "heading": 92,
        "cumulative_distance": 1234,
        "captured_at": _T0 + timedelta(seconds=seconds),
    }
    values.update(kwargs)
    return PositionSample(**values)


class _FakeResponse:
    def __init__(self, status: int, text: str) -> None:
        self.status = status
        self._text = text

    async def text(self) -> str:
        return self._text

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeSession:
    """Records POSTs and answers with a canned response."""

    def __init__(self, status: int = 200, text: str = "", error: Exception | None = None) -> None:
        self.status = status
        self.text = text
        self.error = error
        self.requests: list[tuple[str, dict[str, Any], dict[str, str]]] = []

    def post(self, url: str, *, data: str, headers: dict[str, str], timeout: Any) -> _FakeResponse:
        self.requests.append((url, json.loads(data), headers))
        if self.error is not None:
            raise self.error
        return _FakeResponse(self.status, self.text)


def _sink(session: _FakeSession) -> HttpTelemetrySink:
    return HttpTelemetrySink(_CONFIG, "151", session)  # type: ignore[arg-type]


class TestWireHelpers:
    def test_format_wire_time_in_zone(self) -> None:
        assert format_wire_time(_T0, _CONFIG.tz) == "260101090005"

    def test_format_wire_time_none(self) -> None:
        assert format_wire_time(None, _CONFIG.tz) == ""

    @pytest.mark.parametrize(
        ("degrees", "encoded"),
        [(37.5512, "37551200"), (-122.4194, "-122419400"), (0.0, "0"), (126.9882004, "126988200")],
    )
    def test_encode_coordinate(self, degrees: float, encoded: str) -> None:
        assert encode_coordinate(degrees) == encoded


class TestPayloads:
    def test_trip_start_payload(self) -> None:
        wire = IgnitionPayload.build(_CONFIG, _sample(), _T0).to_wire()
        assert wire == {
            "mdn": "151",
            "tid": "A001",
            "mid": "6",
            "pv": "5",
            "did": "1",
            "onTime": "260101090005",
            "offTime": None,
            "gcd": "A",
            "lat": "37551200",
            "lon": "126988200",
            "ang": "92",
            "spd": "40",
            "sum": "1234",
        }

    def test_trip_end_payload(self) -> None:
        wire = IgnitionPayload.build(_CONFIG, _sample(), _T0, _T0 + timedelta(minutes=5), is_end=True).to_wire()
        assert wire["onTime"] == "260101090005"
        assert wire["offTime"] == "260101090505"

    def test_distance_clamped_on_wire(self) -> None:
        wire = IgnitionPayload.build(_CONFIG, _sample(cumulative_distance=12_345_678), _T0).to_wire()
        assert wire["sum"] == "9999999"

    def test_cycle_payload(self) -> None:
        samples = [_sample(0), _sample(1, speed=41), _sample(2, speed=42)]
        wire = CyclePayload.build(_CONFIG, samples).to_wire()
        assert wire["mdn"] == "151"
        assert wire["oTime"] == "260101090005"
        assert wire["cCnt"] == "3"
        assert [entry["spd"] for entry in wire["cList"]] == ["40", "41", "42"]
        assert [entry["sec"] for entry in wire["cList"]] == ["5", "6", "7"]
        assert wire["cList"][0] == {
            "gcd": "A",
            "lat": "37551200",
            "lon": "126988200",
            "ang": "92",
            "spd": "40",
            "sum": "1234",
            "bat": "12.5",
            "sec": "5",
        }

    def test_cycle_payload_needs_samples(self) -> None:
        with pytest.raises(ValueError):
            CyclePayload.build(_CONFIG, [])


class TestHttpTelemetrySink:
    @pytest.mark.asyncio
    async def test_trip_start_posts_and_parses_ack(self) -> None:
        session = _FakeSession(text='{"mdn": "151"}')

        ack = await _sink(session).report_trip_start(_sample(), _T0)

        assert ack == 151
        url, body, headers = session.requests[0]
        assert url == "http://collector.test/api/v1/vehicle/on"
        assert body["onTime"] == "260101090005"
        assert body["offTime"] is None
        assert headers["content-type"].startswith("application/json")

    @pytest.mark.asyncio
    async def test_trip_start_without_body(self) -> None:
        assert await _sink(_FakeSession()).report_trip_start(_sample(), _T0) is None

    @pytest.mark.asyncio
    async def test_trip_start_with_non_json_body(self) -> None:
        assert await _sink(_FakeSession(text="OK")).report_trip_start(_sample(), _T0) is None

    @pytest.mark.asyncio
    async def test_batch_posts_cycle(self) -> None:
        session = _FakeSession()

        await _sink(session).report_batch([_sample(0), _sample(1)])

        url, body, _ = session.requests[0]
        assert url == "http://collector.test/api/v1/vehicle/cycle"
        assert body["cCnt"] == "2"

    @pytest.mark.asyncio
    async def test_empty_batch_sends_nothing(self) -> None:
        session = _FakeSession()
        await _sink(session).report_batch([])
        assert session.requests == []

    @pytest.mark.asyncio
    async def test_trip_end_posts_off(self) -> None:
        session = _FakeSession()

        await _sink(session).report_trip_end(_sample(), _T0, _T0 + timedelta(seconds=60))

        url, body, _ = session.requests[0]
        assert url == "http://collector.test/api/v1/vehicle/off"
        assert body["offTime"] == "260101090105"

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self) -> None:
        session = _FakeSession(status=503, text="maintenance")

        with pytest.raises(TripEmuTransportError) as excinfo:
            await _sink(session).report_batch([_sample()])

        assert excinfo.value.status_code == 503
        assert excinfo.value.endpoint == "/api/v1/vehicle/cycle"

    @pytest.mark.asyncio
    async def test_client_error_wrapped(self) -> None:
        session = _FakeSession(error=aiohttp.ClientConnectionError("refused"))

        with pytest.raises(TripEmuTransportError) as excinfo:
            await _sink(session).report_trip_start(_sample(), _T0)

        assert excinfo.value.status_code is None
        assert isinstance(excinfo.value.__cause__, aiohttp.ClientError)

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self) -> None:
        session = _FakeSession(error=TimeoutError())

        with pytest.raises(TripEmuTransportError):
            await _sink(session).report_trip_end(_sample(), _T0, _T0)
