from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_COLLECTION_NAME_ENV = "SENSOR_STORE_COLLECTION"
_STORE_ROOT_ENV = "SENSOR_STORE_ROOT_PATH"
_GRANULARITY_ENV = "SENSOR_STORE_GRANULARITY"
_STORE_TIMEOUT_ENV = "STORE_TIMEOUT_SECONDS"
_HISTORY_LIMIT_ENV = "HISTORY_LIMIT"
_WINDOW_HOURS_ENV = "DEFAULT_WINDOW_HOURS"
_CACHE_SHARDS_ENV = "CACHE_SHARD_COUNT"
_WORKER_COUNT_ENV = "INGEST_WORKER_COUNT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

GRANULARITIES = ("seconds", "minutes", "hours")


@dataclass(frozen=True)
class Settings:
    collection_name: str
    store_root_path: Optional[str]
    granularity: str
    store_timeout_seconds: float
    history_limit: int
    default_window_hours: int
    cache_shards: int
    ingest_workers: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_granularity(default: str) -> str:
    candidate = _read_str_env(_GRANULARITY_ENV, default).lower()
    return candidate if candidate in GRANULARITIES else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        collection_name=_read_str_env(_COLLECTION_NAME_ENV, "sensor-readings"),
        store_root_path=_read_optional_env(_STORE_ROOT_ENV, "./tmp/sensor_store"),
        granularity=_read_granularity("seconds"),
        store_timeout_seconds=_read_positive_float(_STORE_TIMEOUT_ENV, 5.0),
        history_limit=_read_positive_int(_HISTORY_LIMIT_ENV, 1000),
        default_window_hours=_read_positive_int(_WINDOW_HOURS_ENV, 24),
        cache_shards=_read_positive_int(_CACHE_SHARDS_ENV, 16),
        ingest_workers=_read_positive_int(_WORKER_COUNT_ENV, 4),
        log_level=_read_log_level("INFO"),
    )
