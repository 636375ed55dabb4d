from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from numbers import Real
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional
from urllib.parse import quote, unquote

from errors import StoreUnavailable, WriteRejected
from models.records import DurableRecord
from services.aggregator import Aggregator, RoomStats
from settings import get_settings

logger = logging.getLogger(__name__)

MANIFEST_NAME = "collection.json"
TIME_FIELD = "timestamp"
META_FIELD = "metadata"

# Bucket span per granularity, matching time-series collection defaults.
BUCKET_SPANS: Dict[str, timedelta] = {
    "seconds": timedelta(hours=1),
    "minutes": timedelta(days=1),
    "hours": timedelta(days=30),
}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)

Partition = Dict[datetime, List[DurableRecord]]


class TimeSeriesCollection:
    """Append-only collection partitioned by room and by time bucket.

    Records live in memory per ``(room_id, bucket_start)``. When a root path
    is configured every insert is also appended to a JSON-lines file per
    partition, and those files are replayed when the collection is opened.
    """

    def __init__(
        self,
        name: str,
        root_path: Optional[Path] = None,
        granularity: str = "seconds",
        aggregator: Optional[Aggregator] = None,
    ) -> None:
        if granularity not in BUCKET_SPANS:
            raise ValueError(f"Unsupported granularity {granularity!r}.")
        self.name = name
        self.root_path = root_path
        self.granularity = granularity
        self.bucket_span = BUCKET_SPANS[granularity]
        self.aggregator = aggregator or Aggregator()
        self._partitions: Dict[str, Partition] = {}
        self._lock = Lock()
        self._open = False

    @property
    def directory(self) -> Optional[Path]:
        if self.root_path is None:
            return None
        return self.root_path / self.name

    @property
    def is_open(self) -> bool:
        return self._open

    def exists(self) -> bool:
        directory = self.directory
        if directory is None:
            return True
        return (directory / MANIFEST_NAME).exists()

    def ensure_collection(self) -> bool:
        """Create the collection unless it already exists; report creation."""

        directory = self.directory
        if directory is None or self.exists():
            return False
        directory.mkdir(parents=True, exist_ok=True)
        manifest = {
            "timeseries": {
                "timeField": TIME_FIELD,
                "metaField": META_FIELD,
                "granularity": self.granularity,
            }
        }
        (directory / MANIFEST_NAME).write_text(json.dumps(manifest, indent=2, sort_keys=True))
        logger.info("Created time-series collection", extra={"collection": self.name})
        return True

    def open(self) -> None:
        with self._lock:
            if self._open:
                return
            if not self.exists():
                raise StoreUnavailable(f"Collection {self.name!r} does not exist.")
            if self.directory is not None:
                self._partitions = {}
                self._load_from_disk()
            self._open = True

    def close(self) -> None:
        with self._lock:
            self._open = False
            if self.directory is not None:
                self._partitions = {}

    def insert(self, record: DurableRecord) -> None:
        self._validate(record)
        bucket = self.bucket_start(record.timestamp)
        with self._lock:
            self._require_open()
            if self.directory is not None:
                self._append_to_disk(record, bucket)
            partition = self._partitions.setdefault(record.room_id, {})
            partition.setdefault(bucket, []).append(record)

    def find(self, room_id: str, since: datetime, limit: Optional[int] = None) -> List[DurableRecord]:
        records = self._select(room_id, since)
        records.sort(key=lambda record: record.timestamp)
        if limit is not None:
            return records[:limit]
        return records

    def aggregate(self, room_id: str, since: datetime) -> Optional[RoomStats]:
        stats = self.aggregator.aggregate(self._select(room_id, since))
        if stats.total_readings == 0:
            return None
        return stats

    def count(self, room_id: Optional[str] = None) -> int:
        with self._lock:
            self._require_open()
            if room_id is not None:
                partitions = [self._partitions.get(room_id, {})]
            else:
                partitions = list(self._partitions.values())
            return sum(len(bucket) for partition in partitions for bucket in partition.values())

    def bucket_start(self, timestamp: datetime) -> datetime:
        span = self.bucket_span
        offset = (timestamp - _EPOCH) // span
        try:
            return _EPOCH + offset * span
        except OverflowError:
            # The first bucket would start before year 1.
            return _EARLIEST

    def _select(self, room_id: str, since: datetime) -> List[DurableRecord]:
        first_bucket = self.bucket_start(since)
        with self._lock:
            self._require_open()
            partition = self._partitions.get(room_id, {})
            return [
                record
                for bucket, records in partition.items()
                if bucket >= first_bucket
                for record in records
                if record.timestamp >= since
            ]

    def _require_open(self) -> None:
        if not self._open:
            raise StoreUnavailable(f"Collection {self.name!r} is not connected.")

    @staticmethod
    def _validate(record: DurableRecord) -> None:
        if not isinstance(record.timestamp, datetime) or record.timestamp.tzinfo is None:
            raise WriteRejected("timestamp must be a timezone-aware datetime.")
        metadata = record.metadata
        if not isinstance(metadata.room_id, str) or not metadata.room_id:
            raise WriteRejected("metadata.roomId must be a non-empty string.")
        for name in ("building_id", "floor"):
            value = getattr(metadata, name)
            if value is not None and not isinstance(value, str):
                raise WriteRejected(f"metadata.{name} must be a string.")
        for name in ("temperature", "humidity", "wifi_devices", "occupancy"):
            value = getattr(record, name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, Real)):
                raise WriteRejected(f"{name} must be numeric.")
        if record.sensor_status is not None and not isinstance(record.sensor_status, str):
            raise WriteRejected("sensor_status must be a string.")

    def _partition_path(self, room_id: str, bucket: datetime) -> Path:
        assert self.directory is not None
        filename = bucket.strftime("%Y%m%dT%H%M%SZ") + ".jsonl"
        return self.directory / quote(room_id, safe="") / filename

    def _append_to_disk(self, record: DurableRecord, bucket: datetime) -> None:
        path = self._partition_path(record.room_id, bucket)
        line = json.dumps(record.to_document(), sort_keys=True)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            raise StoreUnavailable(f"Failed to write partition {path.name}: {exc}") from exc

    def _load_from_disk(self) -> None:
        directory = self.directory
        if directory is None:
            return

        loaded = 0
        for room_dir in sorted(path for path in directory.iterdir() if path.is_dir()):
            room_id = unquote(room_dir.name)
            for path in sorted(room_dir.glob("*.jsonl")):
                try:
                    lines = path.read_text(encoding="utf-8").splitlines()
                except OSError as exc:
                    raise StoreUnavailable(f"Failed to read partition {path}: {exc}") from exc
                for line_number, line in enumerate(lines, start=1):
                    if not line.strip():
                        continue
                    try:
                        record = DurableRecord.from_document(json.loads(line))
                    except (json.JSONDecodeError, ValueError, AttributeError):
                        logger.warning(
                            "Skipping malformed record in %s:%d",
                            path.name,
                            line_number,
                            extra={"room_id": room_id, "collection": self.name},
                        )
                        continue
                    bucket = self.bucket_start(record.timestamp)
                    self._partitions.setdefault(record.room_id, {}).setdefault(bucket, []).append(record)
                    loaded += 1

        if loaded:
            logger.info(
                "Loaded persisted records",
                extra={"collection": self.name, "record_count": loaded},
            )


@lru_cache
def build_default_collection(
    name: Optional[str] = None,
    root_path: Optional[str] = None,
) -> TimeSeriesCollection:
    settings = get_settings()
    collection_name = settings.collection_name if name is None else name
    collection_root = settings.store_root_path if root_path is None else root_path
    path = Path(collection_root) if collection_root else None
    return TimeSeriesCollection(
        name=collection_name,
        root_path=path,
        granularity=settings.granularity,
    )
