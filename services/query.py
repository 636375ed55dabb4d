"""Read paths: current state from the cache, history and stats from the store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable, Dict, List, Optional

from datastore.durable_store import DurableStore, build_default_store
from datastore.hot_cache import HotCache, build_default_cache
from models.records import DurableRecord, Reading
from services.aggregator import RoomStats
from services.ingestion import IngestionCoordinator, WriteStats, build_default_coordinator
from settings import get_settings

logger = logging.getLogger(__name__)

EARLIEST_UTC = datetime.min.replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class HealthStatus:
    status: str
    room_count: int
    timestamp: datetime
    database_connected: bool
    durable_writes: WriteStats


class QueryService:
    """Routes read requests to the tier that can answer them.

    ``StoreUnavailable`` from history and stats propagates to the caller so it
    stays distinguishable from an empty window.
    """

    def __init__(
        self,
        cache: HotCache,
        store: DurableStore,
        coordinator: Optional[IngestionCoordinator] = None,
        default_window_hours: int = 24,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.cache = cache
        self.store = store
        self.coordinator = coordinator
        self.default_window_hours = default_window_hours
        self._clock = clock or _utcnow

    def current(self, room_id: str) -> Reading:
        return self.cache.get(room_id)

    def list_current(self) -> Dict[str, Reading]:
        return self.cache.list_all()

    def resolve_window(self, hours: Optional[int] = None) -> timedelta:
        if hours is None or hours <= 0:
            hours = self.default_window_hours
        try:
            return timedelta(hours=hours)
        except OverflowError:
            return timedelta.max

    def window_start(self, window: timedelta) -> datetime:
        """Start of the lookback window, clamped to the earliest UTC datetime."""
        try:
            return max(self._clock() - window, EARLIEST_UTC)
        except OverflowError:
            return EARLIEST_UTC

    def history(
        self,
        room_id: str,
        hours: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[DurableRecord]:
        window = self.resolve_window(hours)
        records = self.store.range_scan(room_id, self.window_start(window), limit=limit)
        logger.debug(
            "History query",
            extra={
                "room_id": room_id,
                "window_hours": window / timedelta(hours=1),
                "record_count": len(records),
            },
        )
        return records

    def stats(self, room_id: str, hours: Optional[int] = None) -> Optional[RoomStats]:
        window = self.resolve_window(hours)
        return self.store.aggregate(room_id, self.window_start(window))

    def health(self) -> HealthStatus:
        writes = self.coordinator.stats() if self.coordinator is not None else WriteStats()
        return HealthStatus(
            status="online",
            room_count=len(self.cache),
            timestamp=self._clock(),
            database_connected=self.store.is_connected,
            durable_writes=writes,
        )


@lru_cache
def build_default_query() -> QueryService:
    settings = get_settings()
    return QueryService(
        cache=build_default_cache(),
        store=build_default_store(),
        coordinator=build_default_coordinator(),
        default_window_hours=settings.default_window_hours,
    )
