from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import httpx
import pytest
import typer
from typer.testing import CliRunner

from cli.app import _get_state, app
from cli.client import ApiClient
from cli.config import DEFAULT_BASE_URL, CLIConfig, load_config


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.sent: List[Dict[str, Any]] = []
        self.history_calls: List[tuple[str, Optional[int]]] = []
        self.reading: Dict[str, Any] = {
            "roomId": "R1",
            "buildingId": "B1",
            "floor": "3",
            "temperature": 22.5,
            "humidity": 40.0,
            "wifiDevices": 5,
            "occupancy": 2,
            "sensorStatus": "ok",
            "timestamp": "2024-01-01T00:00:00Z",
            "lastUpdate": "2024-01-01T00:00:01Z",
        }
        self.stats_payload: Dict[str, Any] = {
            "avgTemp": 22.0,
            "minTemp": 20.0,
            "maxTemp": 24.0,
            "avgHumidity": 40.0,
            "avgOccupancy": 3.0,
            "maxOccupancy": 5,
            "totalReadings": 2,
        }
        self.closed = False

    def send_reading(self, reading: Dict[str, Any]) -> Dict[str, Any]:
        self.sent.append(reading)
        return {"accepted": True, "message": "Data received and stored"}

    def get_room(self, room_id: str) -> Dict[str, Any]:
        return {**self.reading, "roomId": room_id}

    def list_rooms(self) -> Dict[str, Any]:
        return {"R1": self.reading}

    def get_history(self, room_id: str, hours: Optional[int] = None) -> List[Dict[str, Any]]:
        self.history_calls.append((room_id, hours))
        return [
            {
                "timestamp": "2024-01-01T00:00:00Z",
                "metadata": {"roomId": room_id, "buildingId": "B1", "floor": "3"},
                "temperature": 22.5,
                "humidity": 40.0,
                "wifiDevices": 5,
                "occupancy": 2,
                "sensorStatus": "ok",
            }
        ]

    def get_stats(self, room_id: str, hours: Optional[int] = None) -> Dict[str, Any]:
        return self.stats_payload

    def health(self) -> Dict[str, Any]:
        return {
            "status": "online",
            "roomCount": 1,
            "timestamp": "2024-01-01T00:00:00Z",
            "databaseConnected": True,
            "durableWrites": {"succeeded": 3, "failed": 0, "pending": 0},
        }

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stub(monkeypatch) -> StubClient:
    client = StubClient(config=None)

    def factory(config):
        client.config = config
        return client

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return client


def test_send_posts_only_provided_fields(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(
        app,
        ["send", "--room", "R7", "--floor", "2", "--temperature", "21.5", "--occupancy", "4"],
    )

    assert result.exit_code == 0
    assert "Reading accepted for R7" in result.stdout
    assert stub.sent == [
        {"roomId": "R7", "floor": "2", "temperature": 21.5, "occupancy": 4, "sensorStatus": "ok"}
    ]
    assert stub.closed is True


def test_room_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["room", "R3"])

    assert result.exit_code == 0
    assert "Room R3" in result.stdout
    assert "temperature: 22.5" in result.stdout
    assert "lastUpdate: 2024-01-01T00:00:01Z" in result.stdout


def test_rooms_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["rooms"])

    assert result.exit_code == 0
    assert "Rooms (1)" in result.stdout
    assert "R1: temperature=22.5" in result.stdout


def test_history_command_passes_window(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["history", "R1", "--hours", "6"])

    assert result.exit_code == 0
    assert stub.history_calls == [("R1", 6)]
    assert "History for R1 (1 records)" in result.stdout


def test_stats_command_renders_empty_payload(runner: CliRunner, stub: StubClient) -> None:
    stub.stats_payload = {}

    result = runner.invoke(app, ["stats", "R1"])

    assert result.exit_code == 0
    assert "No data in this window." in result.stdout


def test_health_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["--base-url", "http://hub:9000/", "health"])

    assert result.exit_code == 0
    assert "databaseConnected: True" in result.stdout
    assert "succeeded=3" in result.stdout
    assert stub.config.base_url == "http://hub:9000"


def test_load_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://sensors.local/")
    monkeypatch.setenv("CLI_HTTP_TIMEOUT", "not-a-number")

    config = load_config()

    assert config.base_url == "http://sensors.local"
    assert config.timeout == 10.0

    monkeypatch.delenv("API_BASE_URL")
    assert load_config(timeout=3.0).base_url == DEFAULT_BASE_URL


def test_client_escapes_room_ids_in_paths() -> None:
    paths: List[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.raw_path.partition(b"?")[0])
        return httpx.Response(200, json={})

    client = ApiClient(CLIConfig(base_url="http://hub"))
    client._client.close()
    client._client = httpx.Client(base_url="http://hub", transport=httpx.MockTransport(handler))
    try:
        client.get_room("Lab/1?x")
        client.get_history("Lab/1?x", hours=2)
        client.get_stats("Lab 1#2")
    finally:
        client.close()

    assert paths == [
        b"/api/rooms/Lab%2F1%3Fx",
        b"/api/history/Lab%2F1%3Fx",
        b"/api/stats/Lab%201%232",
    ]


def test_commands_without_state_exit_with_message(capsys) -> None:
    with pytest.raises(typer.Exit) as excinfo:
        _get_state(SimpleNamespace(obj=None))

    assert excinfo.value.exit_code == 1
    assert "CLI state is uninitialized." in capsys.readouterr().err
