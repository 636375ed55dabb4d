from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from statistics import mean
from typing import Iterator

import pytest

from datastore.durable_store import DurableStore
from datastore.hot_cache import HotCache
from datastore.timeseries import TimeSeriesCollection
from errors import RoomNotFound, StoreUnavailable
from models.records import DurableRecord, RecordMetadata, Reading
from services.query import EARLIEST_UTC, QueryService

_NOW = datetime(2024, 8, 15, 12, 0, tzinfo=timezone.utc)


def _record(hours_ago: float, temperature: float, occupancy: int, room_id: str = "R1") -> DurableRecord:
    return DurableRecord(
        timestamp=_NOW - timedelta(hours=hours_ago),
        metadata=RecordMetadata(room_id=room_id, building_id="B1", floor="2"),
        temperature=temperature,
        humidity=35.0 + occupancy,
        wifi_devices=occupancy * 2,
        occupancy=occupancy,
        sensor_status="ok",
    )


@pytest.fixture()
def store() -> Iterator[DurableStore]:
    service = DurableStore(TimeSeriesCollection(name="test"), timeout=2.0, history_limit=1000)
    service.connect()
    yield service
    service.shutdown()


@pytest.fixture()
def query(store: DurableStore) -> QueryService:
    return QueryService(cache=HotCache(), store=store, default_window_hours=24, clock=lambda: _NOW)


def test_resolve_window_defaults_for_missing_or_non_positive_hours(query: QueryService) -> None:
    assert query.resolve_window() == timedelta(hours=24)
    assert query.resolve_window(0) == timedelta(hours=24)
    assert query.resolve_window(-3) == timedelta(hours=24)
    assert query.resolve_window(6) == timedelta(hours=6)


def test_current_reads_from_cache(query: QueryService) -> None:
    query.cache.put(Reading(room_id="R1", timestamp=_NOW, temperature=19.5))

    assert query.current("R1").temperature == 19.5
    assert set(query.list_current()) == {"R1"}
    with pytest.raises(RoomNotFound):
        query.current("R9")


def test_history_respects_window_and_order(query: QueryService, store: DurableStore) -> None:
    for hours_ago, temperature in ((30, 10.0), (5, 21.0), (0.5, 23.0), (12, 18.0), (2, 22.0)):
        store.append(_record(hours_ago, temperature, occupancy=1))
    store.append(_record(1, 40.0, occupancy=9, room_id="R2"))

    day = query.history("R1")
    recent = query.history("R1", hours=3)

    assert [record.temperature for record in day] == [18.0, 21.0, 22.0, 23.0]
    assert [record.temperature for record in recent] == [22.0, 23.0]
    since = _NOW - timedelta(hours=3)
    assert all(record.timestamp >= since for record in recent)


def test_history_empty_window_returns_empty_list(query: QueryService) -> None:
    assert query.history("nobody") == []


def test_history_is_capped() -> None:
    store = DurableStore(TimeSeriesCollection(name="capped"), timeout=2.0, history_limit=1000)
    store.connect()
    try:
        for minute in range(1005):
            record = _record(hours_ago=0, temperature=20.0, occupancy=1)
            store.append(replace(record, timestamp=_NOW - timedelta(minutes=minute)))
        query = QueryService(cache=HotCache(), store=store, clock=lambda: _NOW)

        records = query.history("R1", hours=24)
    finally:
        store.shutdown()

    assert len(records) == 1000
    timestamps = [record.timestamp for record in records]
    assert timestamps == sorted(timestamps)
    assert timestamps[0] == _NOW - timedelta(minutes=1004)


def test_stats_empty_window_returns_none(query: QueryService) -> None:
    assert query.stats("R1") is None


def test_stats_consistent_with_history(query: QueryService, store: DurableStore) -> None:
    samples = [(20, 20.5, 3), (8, 22.0, 0), (3, 24.5, 7), (1, 21.0, 4), (50, 5.0, 99)]
    for hours_ago, temperature, occupancy in samples:
        store.append(_record(hours_ago, temperature, occupancy))

    history = query.history("R1", hours=24)
    stats = query.stats("R1", hours=24)

    assert stats is not None
    assert stats.total_readings == len(history) == 4
    assert stats.avg_temp == pytest.approx(mean(r.temperature for r in history))
    assert stats.min_temp == min(r.temperature for r in history)
    assert stats.max_temp == max(r.temperature for r in history)
    assert stats.avg_humidity == pytest.approx(mean(r.humidity for r in history))
    assert stats.avg_occupancy == pytest.approx(mean(r.occupancy for r in history))
    assert stats.max_occupancy == max(r.occupancy for r in history)


def test_store_outage_is_not_reported_as_empty(query: QueryService, store: DurableStore) -> None:
    store.close()

    with pytest.raises(StoreUnavailable):
        query.history("R1")
    with pytest.raises(StoreUnavailable):
        query.stats("R1")


def test_health_reports_rooms_and_connection(query: QueryService, store: DurableStore) -> None:
    query.cache.put(Reading(room_id="R1", timestamp=_NOW))
    query.cache.put(Reading(room_id="R2", timestamp=_NOW))

    health = query.health()

    assert health.status == "online"
    assert health.room_count == 2
    assert health.timestamp == _NOW
    assert health.database_connected is True
    assert health.durable_writes.failed == 0

    store.close()
    assert query.health().database_connected is False


def test_huge_window_is_clamped_to_earliest_datetime(query: QueryService, store: DurableStore) -> None:
    store.append(_record(hours_ago=1, temperature=20.0, occupancy=1))
    store.append(_record(hours_ago=50_000, temperature=22.0, occupancy=3))

    assert query.resolve_window(10**12) == timedelta.max
    assert query.window_start(timedelta.max) == EARLIEST_UTC
    assert query.window_start(timedelta(hours=2)) == _NOW - timedelta(hours=2)

    history = query.history("R1", hours=20_000_000)
    stats = query.stats("R1", hours=10**12)

    assert [record.temperature for record in history] == [22.0, 20.0]
    assert stats is not None
    assert stats.total_readings == 2
