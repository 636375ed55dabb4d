"""Unit tests for the aggregation logic."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import pytest

from models.records import DurableRecord, RecordMetadata
from services.aggregator import Aggregator


def _record(
    temperature: Optional[float],
    humidity: Optional[float] = 40.0,
    occupancy: Optional[int] = 1,
) -> DurableRecord:
    """Helper to build deterministic durable records."""

    return DurableRecord(
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        metadata=RecordMetadata(room_id="R1", building_id="B1", floor="3"),
        temperature=temperature,
        humidity=humidity,
        occupancy=occupancy,
    )


def test_aggregate_empty_iterable_returns_default_summary() -> None:
    aggregator = Aggregator()

    stats = aggregator.aggregate([])

    assert stats.total_readings == 0
    assert stats.avg_temp is None
    assert stats.min_temp is None
    assert stats.max_temp is None
    assert stats.avg_humidity is None
    assert stats.avg_occupancy is None
    assert stats.max_occupancy is None


def test_aggregate_computes_statistics() -> None:
    aggregator = Aggregator()
    records = [
        _record(20.0, humidity=30.0, occupancy=2),
        _record(24.0, humidity=50.0, occupancy=6),
        _record(22.0, humidity=40.0, occupancy=1),
    ]

    stats = aggregator.aggregate(records)

    assert stats.total_readings == 3
    assert stats.avg_temp == pytest.approx(22.0)
    assert stats.min_temp == 20.0
    assert stats.max_temp == 24.0
    assert stats.avg_humidity == pytest.approx(40.0)
    assert stats.avg_occupancy == pytest.approx(3.0)
    assert stats.max_occupancy == 6


def test_aggregate_ignores_missing_measurements_but_counts_records() -> None:
    aggregator = Aggregator()
    records = [
        _record(None, humidity=None, occupancy=None),
        _record(21.0, humidity=None, occupancy=4),
    ]

    stats = aggregator.aggregate(records)

    assert stats.total_readings == 2
    assert stats.avg_temp == 21.0
    assert stats.min_temp == 21.0
    assert stats.avg_humidity is None
    assert stats.max_occupancy == 4
