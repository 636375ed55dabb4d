from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import typer
import uvicorn

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_health, render_history, render_reading, render_rooms, render_stats
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the room sensor hub service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Sensor hub API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds (defaults to CLI_HTTP_TIMEOUT env or 10).",
    ),
) -> None:
    """Entry point for the CLI."""
    if ctx.invoked_subcommand == "serve":
        return
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    room_id: str = typer.Option(..., "--room", "-r", help="Room identifier."),
    building_id: Optional[str] = typer.Option(None, "--building", help="Building identifier."),
    floor: Optional[str] = typer.Option(None, "--floor", help="Floor (stored as text)."),
    temperature: Optional[float] = typer.Option(None, "--temperature", "-t"),
    humidity: Optional[float] = typer.Option(None, "--humidity"),
    wifi_devices: Optional[int] = typer.Option(None, "--wifi-devices"),
    occupancy: Optional[int] = typer.Option(None, "--occupancy"),
    sensor_status: Optional[str] = typer.Option("ok", "--status", help="Sensor status label."),
) -> None:
    """Post one reading, as a room sensor would."""
    state = _get_state(ctx)
    reading: Dict[str, Any] = {
        "roomId": room_id,
        "buildingId": building_id,
        "floor": floor,
        "temperature": temperature,
        "humidity": humidity,
        "wifiDevices": wifi_devices,
        "occupancy": occupancy,
        "sensorStatus": sensor_status,
    }
    payload = {key: value for key, value in reading.items() if value is not None}
    response = state.client.send_reading(payload)
    if response.get("accepted"):
        typer.secho(f"Reading accepted for {room_id}: {response.get('message')}", fg=typer.colors.GREEN)
    else:
        typer.secho(f"Reading not accepted: {response.get('message')}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


@app.command("room")
def room_command(
    ctx: typer.Context,
    room_id: str = typer.Argument(..., help="Room identifier."),
) -> None:
    """Show the latest reading for one room."""
    state = _get_state(ctx)
    render_reading(state.client.get_room(room_id))


@app.command("rooms")
def rooms_command(ctx: typer.Context) -> None:
    """List the latest reading of every room."""
    state = _get_state(ctx)
    render_rooms(state.client.list_rooms())


@app.command("history")
def history_command(
    ctx: typer.Context,
    room_id: str = typer.Argument(..., help="Room identifier."),
    hours: Optional[int] = typer.Option(None, "--hours", help="Lookback window in hours."),
) -> None:
    """Show stored readings for a room, oldest first."""
    state = _get_state(ctx)
    render_history(room_id, state.client.get_history(room_id, hours=hours))


@app.command("stats")
def stats_command(
    ctx: typer.Context,
    room_id: str = typer.Argument(..., help="Room identifier."),
    hours: Optional[int] = typer.Option(None, "--hours", help="Lookback window in hours."),
) -> None:
    """Show aggregate statistics for a room."""
    state = _get_state(ctx)
    render_stats(room_id, state.client.get_stats(room_id, hours=hours))


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Show service health."""
    state = _get_state(ctx)
    render_health(state.client.health())


@app.command("serve")
def serve_command(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind."),
    reload: bool = typer.Option(False, "--reload/--no-reload", help="Reload on code changes."),
) -> None:
    """Run the HTTP API."""
    uvicorn.run(
        "app.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=get_settings().log_level.lower(),
    )
