from __future__ import annotations

import pytest

from tripemu.config import EmulatorConfig
from tripemu.exceptions import TripEmuConfigError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "TRIPEMU_SERVER_ENDPOINT",
        "TRIPEMU_EMULATOR_INTERVAL_MS",
        "TRIPEMU_SERVER_SEND_INTERVAL_MS",
        "TRIPEMU_ASSETS_DIR",
        "TRIPEMU_POSITION_NOISE",
        "TRIPEMU_TIME_ZONE",
    ):
        monkeypatch.delenv(key, raising=False)


class TestDefaults:
    def test_defaults(self) -> None:
        config = EmulatorConfig(server_endpoint="http://collector:8080")
        assert config.emulator_interval_ms == 1000
        assert config.server_send_interval_ms == 60_000
        assert config.emulator_interval == 1.0
        assert config.server_send_interval == 60.0
        assert config.time_zone == "Asia/Seoul"
        assert config.tz.key == "Asia/Seoul"

    def test_trailing_slash_stripped(self) -> None:
        assert EmulatorConfig(server_endpoint="http://collector:8080/").server_endpoint == "http://collector:8080"

    def test_frozen(self) -> None:
        config = EmulatorConfig(server_endpoint="http://collector:8080")
        with pytest.raises(AttributeError):
            config.emulator_interval_ms = 5  # type: ignore[misc]


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"server_endpoint": ""},
            {"server_endpoint": "  /"},
            {"server_endpoint": "http://x", "emulator_interval_ms": 0},
            {"server_endpoint": "http://x", "server_send_interval_ms": -1},
            {"server_endpoint": "http://x", "assumed_speed_mps": 0},
            {"server_endpoint": "http://x", "position_noise": -0.1},
            {"server_endpoint": "http://x", "request_timeout": 0},
            {"server_endpoint": "http://x", "time_zone": "Mars/Olympus_Mons"},
        ],
    )
    def test_rejected(self, kwargs: dict) -> None:
        with pytest.raises(TripEmuConfigError):
            EmulatorConfig(**kwargs)


class TestFromEnv:
    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRIPEMU_SERVER_ENDPOINT", "http://collector:8080")
        monkeypatch.setenv("TRIPEMU_EMULATOR_INTERVAL_MS", "500")
        monkeypatch.setenv("TRIPEMU_POSITION_NOISE", "0")
        monkeypatch.setenv("TRIPEMU_ASSETS_DIR", "/srv/tracks")

        config = EmulatorConfig.from_env()

        assert config.server_endpoint == "http://collector:8080"
        assert config.emulator_interval_ms == 500
        assert config.position_noise == 0.0
        assert config.assets_dir == "/srv/tracks"

    def test_overrides_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRIPEMU_SERVER_ENDPOINT", "http://collector:8080")
        monkeypatch.setenv("TRIPEMU_EMULATOR_INTERVAL_MS", "not-a-number")

        config = EmulatorConfig.from_env(emulator_interval_ms=250)

        assert config.emulator_interval_ms == 250

    def test_missing_endpoint(self) -> None:
        with pytest.raises(TripEmuConfigError, match="TRIPEMU_SERVER_ENDPOINT"):
            EmulatorConfig.from_env()

    def test_malformed_number(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRIPEMU_SERVER_ENDPOINT", "http://collector:8080")
        monkeypatch.setenv("TRIPEMU_SERVER_SEND_INTERVAL_MS", "sixty")
        with pytest.raises(TripEmuConfigError, match="TRIPEMU_SERVER_SEND_INTERVAL_MS"):
            EmulatorConfig.from_env()
