"""Timeout-bounded access to the time-partitioned history collection."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from functools import lru_cache
from typing import Callable, List, Optional, TypeVar

from datastore.timeseries import TimeSeriesCollection, build_default_collection
from errors import StoreError, StoreUnavailable
from models.records import DurableRecord
from services.aggregator import RoomStats
from settings import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DurableStore:
    """Adapter over a :class:`TimeSeriesCollection`.

    Every call runs on a small worker pool and is abandoned after
    ``timeout`` seconds with :class:`StoreUnavailable`. No retries are made.
    """

    def __init__(
        self,
        collection: TimeSeriesCollection,
        timeout: float = 5.0,
        history_limit: int = 1000,
        workers: int = 4,
    ) -> None:
        self.collection = collection
        self.timeout = timeout
        self.history_limit = history_limit
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="durable-store")

    @property
    def is_connected(self) -> bool:
        return self.collection.is_open

    def connect(self) -> bool:
        """Create the collection if needed and open it; ``False`` on failure."""
        try:
            self._call(self._connect)
        except StoreError as exc:
            logger.error(
                "Durable store connection failed",
                extra={"collection": self.collection.name, "reason": str(exc)},
            )
            return False
        logger.info("Connected to durable store", extra={"collection": self.collection.name})
        return True

    def close(self) -> None:
        self.collection.close()

    def shutdown(self) -> None:
        self.close()
        self.executor.shutdown(wait=False, cancel_futures=True)

    def append(self, record: DurableRecord) -> None:
        self._call(self.collection.insert, record)

    def range_scan(
        self, room_id: str, since: datetime, limit: Optional[int] = None
    ) -> List[DurableRecord]:
        if limit is not None and limit < 1:
            raise ValueError("limit must be a positive integer.")
        cap = self.history_limit if limit is None else min(limit, self.history_limit)
        return self._call(self.collection.find, room_id, since, cap)

    def aggregate(self, room_id: str, since: datetime) -> Optional[RoomStats]:
        return self._call(self.collection.aggregate, room_id, since)

    def _connect(self) -> None:
        self.collection.ensure_collection()
        self.collection.open()

    def _call(self, func: Callable[..., T], *args: object) -> T:
        try:
            future = self.executor.submit(func, *args)
        except RuntimeError as exc:
            raise StoreUnavailable("Durable store has been shut down.") from exc
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError as exc:
            future.cancel()
            raise StoreUnavailable(
                f"Durable store did not respond within {self.timeout:g}s."
            ) from exc
        except OSError as exc:
            raise StoreUnavailable(str(exc)) from exc


@lru_cache
def build_default_store() -> DurableStore:
    settings = get_settings()
    return DurableStore(
        collection=build_default_collection(),
        timeout=settings.store_timeout_seconds,
        history_limit=settings.history_limit,
    )
