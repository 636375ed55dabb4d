from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

READING_FIELDS = (
    "roomId",
    "buildingId",
    "floor",
    "temperature",
    "humidity",
    "wifiDevices",
    "occupancy",
    "sensorStatus",
    "timestamp",
    "lastUpdate",
)

STATS_FIELDS = (
    "totalReadings",
    "avgTemp",
    "minTemp",
    "maxTemp",
    "avgHumidity",
    "avgOccupancy",
    "maxOccupancy",
)


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_reading(payload: Dict[str, Any]) -> None:
    echo_heading(f"Room {payload.get('roomId')}")
    echo_key_values((field, payload.get(field)) for field in READING_FIELDS[1:])


def render_rooms(payload: Dict[str, Dict[str, Any]]) -> None:
    echo_heading(f"Rooms ({len(payload)})")
    if not payload:
        typer.echo("No rooms have reported yet.")
        return
    for room_id in sorted(payload):
        reading = payload[room_id]
        typer.echo(
            f"  - {room_id}: temperature={reading.get('temperature')} "
            f"humidity={reading.get('humidity')} occupancy={reading.get('occupancy')} "
            f"status={reading.get('sensorStatus')} updated={reading.get('lastUpdate')}"
        )


def render_history(room_id: str, records: List[Dict[str, Any]]) -> None:
    echo_heading(f"History for {room_id} ({len(records)} records)")
    if not records:
        typer.echo("No readings in this window.")
        return
    for record in records:
        typer.echo(
            f"  {record.get('timestamp')}  temperature={record.get('temperature')} "
            f"humidity={record.get('humidity')} occupancy={record.get('occupancy')} "
            f"wifiDevices={record.get('wifiDevices')} status={record.get('sensorStatus')}"
        )


def render_stats(room_id: str, payload: Dict[str, Any]) -> None:
    echo_heading(f"Statistics for {room_id}")
    if not payload:
        typer.echo("No data in this window.")
        return
    echo_key_values((field, payload.get(field)) for field in STATS_FIELDS)


def render_health(payload: Dict[str, Any]) -> None:
    echo_heading("Service Health")
    echo_key_values(
        [
            ("status", payload.get("status")),
            ("roomCount", payload.get("roomCount")),
            ("databaseConnected", payload.get("databaseConnected")),
            ("timestamp", payload.get("timestamp")),
        ]
    )
    writes = payload.get("durableWrites") or {}
    if writes:
        typer.echo(
            f"durableWrites: succeeded={writes.get('succeeded')} "
            f"failed={writes.get('failed')} pending={writes.get('pending')}"
        )
