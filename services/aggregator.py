"""Aggregation logic for durable sensor records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from models.records import DurableRecord


@dataclass
class _Accumulator:
    count: int = 0
    total: float = 0.0
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    def add(self, value: Optional[float]) -> None:
        # Missing and non-numeric values are ignored, as grouped $avg/$min/$max do.
        if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
            return
        self.count += 1
        self.total += value
        if self.minimum is None or value < self.minimum:
            self.minimum = value
        if self.maximum is None or value > self.maximum:
            self.maximum = value

    @property
    def mean(self) -> Optional[float]:
        if not self.count:
            return None
        return self.total / self.count


@dataclass
class RoomStats:
    """Summary statistics for one room over a time window."""

    total_readings: int = 0
    avg_temp: Optional[float] = None
    min_temp: Optional[float] = None
    max_temp: Optional[float] = None
    avg_humidity: Optional[float] = None
    avg_occupancy: Optional[float] = None
    max_occupancy: Optional[int] = None


@dataclass
class _RoomAccumulators:
    temperature: _Accumulator = field(default_factory=_Accumulator)
    humidity: _Accumulator = field(default_factory=_Accumulator)
    occupancy: _Accumulator = field(default_factory=_Accumulator)


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def aggregate(self, records: Iterable[DurableRecord]) -> RoomStats:
        stats = RoomStats()
        acc = _RoomAccumulators()

        for record in records:
            stats.total_readings += 1
            acc.temperature.add(record.temperature)
            acc.humidity.add(record.humidity)
            acc.occupancy.add(record.occupancy)

        stats.avg_temp = acc.temperature.mean
        stats.min_temp = acc.temperature.minimum
        stats.max_temp = acc.temperature.maximum
        stats.avg_humidity = acc.humidity.mean
        stats.avg_occupancy = acc.occupancy.mean
        stats.max_occupancy = acc.occupancy.maximum
        return stats
