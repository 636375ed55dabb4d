"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError("Invalid timestamp format") from exc

    return ensure_utc(parsed)


@dataclass(frozen=True, slots=True)
class Reading:
    """One observation for a room, as held by the hot cache."""

    room_id: str
    timestamp: datetime
    building_id: Optional[str] = None
    floor: Optional[str] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    wifi_devices: Optional[int] = None
    occupancy: Optional[int] = None
    sensor_status: Optional[str] = None
    last_update: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class RecordMetadata:
    """Partition metadata carried by every durable record."""

    room_id: str
    building_id: Optional[str] = None
    floor: Optional[str] = None


@dataclass(frozen=True, slots=True)
class DurableRecord:
    """An append-only history entry: time field, metadata group, measurements."""

    timestamp: datetime
    metadata: RecordMetadata
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    wifi_devices: Optional[int] = None
    occupancy: Optional[int] = None
    sensor_status: Optional[str] = None

    @classmethod
    def from_reading(cls, reading: Reading) -> "DurableRecord":
        return cls(
            timestamp=reading.timestamp,
            metadata=RecordMetadata(
                room_id=reading.room_id,
                building_id=reading.building_id,
                floor=reading.floor,
            ),
            temperature=reading.temperature,
            humidity=reading.humidity,
            wifi_devices=reading.wifi_devices,
            occupancy=reading.occupancy,
            sensor_status=reading.sensor_status,
        )

    @property
    def room_id(self) -> str:
        return self.metadata.room_id

    def to_document(self) -> Dict[str, Any]:
        """Serialize using the external field names of the stored layout."""

        return {
            "timestamp": self.timestamp.isoformat(),
            "metadata": {
                "roomId": self.metadata.room_id,
                "buildingId": self.metadata.building_id,
                "floor": self.metadata.floor,
            },
            "temperature": self.temperature,
            "humidity": self.humidity,
            "wifiDevices": self.wifi_devices,
            "occupancy": self.occupancy,
            "sensorStatus": self.sensor_status,
        }

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "DurableRecord":
        metadata = document.get("metadata") or {}
        room_id = metadata.get("roomId")
        if not isinstance(room_id, str) or not room_id:
            raise ValueError("Document metadata is missing roomId.")
        raw_timestamp = document.get("timestamp")
        if not isinstance(raw_timestamp, str):
            raise ValueError("Document is missing a timestamp.")
        return cls(
            timestamp=parse_timestamp(raw_timestamp),
            metadata=RecordMetadata(
                room_id=room_id,
                building_id=metadata.get("buildingId"),
                floor=metadata.get("floor"),
            ),
            temperature=document.get("temperature"),
            humidity=document.get("humidity"),
            wifi_devices=document.get("wifiDevices"),
            occupancy=document.get("occupancy"),
            sensor_status=document.get("sensorStatus"),
        )
