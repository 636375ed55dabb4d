"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IngestRequest(_CamelModel):
    """Sensor payload. Only ``roomId`` is required; the rest passes through."""

    room_id: Optional[str] = None
    building_id: Optional[str] = None
    floor: Union[int, float, str, None] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    wifi_devices: Optional[int] = None
    occupancy: Optional[int] = None
    timestamp: Optional[datetime] = None
    sensor_status: Optional[str] = None

    @field_validator("room_id", "building_id", mode="before")
    @classmethod
    def _identifier_to_str(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class IngestResponse(BaseModel):
    accepted: bool
    message: str


class ReadingOut(_CamelModel):
    """Latest reading for a room as served from the hot cache."""

    room_id: str
    building_id: Optional[str] = None
    floor: Optional[str] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    wifi_devices: Optional[int] = None
    occupancy: Optional[int] = None
    timestamp: datetime
    sensor_status: Optional[str] = None
    last_update: Optional[datetime] = None


class RecordMetadataOut(_CamelModel):
    room_id: str
    building_id: Optional[str] = None
    floor: Optional[str] = None


class HistoryRecordOut(_CamelModel):
    """A durable record: time field, metadata group and measurements."""

    timestamp: datetime
    metadata: RecordMetadataOut
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    wifi_devices: Optional[int] = None
    occupancy: Optional[int] = None
    sensor_status: Optional[str] = None


class RoomStatsOut(_CamelModel):
    avg_temp: Optional[float] = None
    min_temp: Optional[float] = None
    max_temp: Optional[float] = None
    avg_humidity: Optional[float] = None
    avg_occupancy: Optional[float] = None
    max_occupancy: Optional[int] = None
    total_readings: int = Field(..., ge=0)


class DurableWritesOut(BaseModel):
    succeeded: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    pending: int = Field(..., ge=0)


class HealthResponse(_CamelModel):
    status: str
    room_count: int = Field(..., ge=0)
    timestamp: datetime
    database_connected: bool
    durable_writes: DurableWritesOut
