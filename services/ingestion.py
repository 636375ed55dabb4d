"""Fan-out of incoming readings to the hot cache and the durable store."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from threading import Lock
from typing import Callable, Optional, Set, Union

from app.schemas import IngestRequest
from datastore.durable_store import DurableStore, build_default_store
from datastore.hot_cache import HotCache, build_default_cache
from errors import InvalidPayload, StoreError
from models.records import DurableRecord, Reading, ensure_utc
from settings import get_settings

logger = logging.getLogger(__name__)

ACCEPTED_MESSAGE = "Data received and stored"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def coerce_floor(value: Union[str, int, float, None]) -> Optional[str]:
    """Render a floor as a string; integral numbers lose their decimal part."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class IngestResult:
    accepted: bool
    message: str


@dataclass(frozen=True)
class WriteStats:
    """Outcome counters for background durable writes."""

    succeeded: int = 0
    failed: int = 0
    pending: int = 0


class IngestionCoordinator:
    """Writes each reading to the cache, then hands it to the durable store.

    The cache write is synchronous and always happens first. The durable
    append runs on a worker pool and its outcome is only logged and counted:
    a failed append never rolls back the cache and never fails the request.
    Durability is therefore best effort; the two tiers converge only when
    the store is reachable.
    """

    def __init__(
        self,
        cache: HotCache,
        store: DurableStore,
        workers: int = 4,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.cache = cache
        self.store = store
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest")
        self._clock = clock or _utcnow
        self._futures: Set[Future[None]] = set()
        self._state_lock = Lock()
        self._succeeded = 0
        self._failed = 0

    def normalize(self, payload: IngestRequest) -> Reading:
        room_id = (payload.room_id or "").strip()
        if not room_id:
            raise InvalidPayload("roomId is required.")

        if payload.timestamp is None:
            timestamp = self._clock()
        else:
            try:
                timestamp = ensure_utc(payload.timestamp)
            except OverflowError as exc:
                raise InvalidPayload("timestamp is outside the representable UTC range.") from exc

        return Reading(
            room_id=room_id,
            timestamp=timestamp,
            building_id=payload.building_id,
            floor=coerce_floor(payload.floor),
            temperature=payload.temperature,
            humidity=payload.humidity,
            wifi_devices=payload.wifi_devices,
            occupancy=payload.occupancy,
            sensor_status=payload.sensor_status,
        )

    def ingest(self, payload: IngestRequest) -> IngestResult:
        reading = self.normalize(payload)
        self.cache.put(reading)
        logger.debug(
            "Cached reading",
            extra={"room_id": reading.room_id, "building_id": reading.building_id},
        )
        self._dispatch(DurableRecord.from_reading(reading))
        return IngestResult(accepted=True, message=ACCEPTED_MESSAGE)

    def stats(self) -> WriteStats:
        with self._state_lock:
            return WriteStats(
                succeeded=self._succeeded,
                failed=self._failed,
                pending=len(self._futures),
            )

    def wait_for_pending(self, timeout: Optional[float] = None) -> bool:
        """Block until in-flight durable writes finish; ``False`` on timeout."""
        with self._state_lock:
            futures = set(self._futures)
        if not futures:
            return True
        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    def shutdown(self) -> None:
        """Drain pending durable writes and stop the worker pool."""
        self.executor.shutdown(wait=True)

    def _dispatch(self, record: DurableRecord) -> None:
        try:
            future = self.executor.submit(self._persist, record)
        except RuntimeError:
            self._record_outcome(succeeded=False)
            logger.error(
                "Durable write dropped, ingestion is shutting down",
                extra={"room_id": record.room_id, "status": "dropped"},
            )
            return
        with self._state_lock:
            self._futures.add(future)
        future.add_done_callback(self._clear_future)

    def _clear_future(self, future: Future[None]) -> None:
        with self._state_lock:
            self._futures.discard(future)

    def _persist(self, record: DurableRecord) -> None:
        start_time = time.perf_counter()
        try:
            self.store.append(record)
        except StoreError as exc:
            self._record_outcome(succeeded=False)
            logger.warning(
                "Durable write failed",
                extra={
                    "room_id": record.room_id,
                    "status": type(exc).__name__,
                    "reason": str(exc),
                },
            )
            return
        except Exception:  # pragma: no cover - defensive catch-all
            self._record_outcome(succeeded=False)
            logger.exception("Unexpected durable write error", extra={"room_id": record.room_id})
            return

        self._record_outcome(succeeded=True)
        logger.debug(
            "Saved reading to durable store",
            extra={
                "room_id": record.room_id,
                "duration_ms": int((time.perf_counter() - start_time) * 1000),
            },
        )

    def _record_outcome(self, succeeded: bool) -> None:
        with self._state_lock:
            if succeeded:
                self._succeeded += 1
            else:
                self._failed += 1


@lru_cache
def build_default_coordinator(workers: Optional[int] = None) -> IngestionCoordinator:
    """Factory that wires the coordinator with the process-wide tiers."""
    settings = get_settings()
    return IngestionCoordinator(
        cache=build_default_cache(),
        store=build_default_store(),
        workers=workers or settings.ingest_workers,
    )
