from __future__ import annotations

import zlib
from dataclasses import replace
from datetime import datetime, timezone
from functools import lru_cache
from threading import Lock
from typing import Callable, Dict, List, Optional

from errors import RoomNotFound
from models.records import Reading
from settings import get_settings


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Shard:
    __slots__ = ("lock", "entries")

    def __init__(self) -> None:
        self.lock = Lock()
        self.entries: Dict[str, Reading] = {}


class HotCache:
    """Latest reading per room, held in memory only.

    Rooms are spread over independently locked shards. Entries are frozen
    and replaced whole, so a reader sees either the old or the new reading.
    """

    def __init__(self, shards: int = 16, clock: Optional[Callable[[], datetime]] = None) -> None:
        if shards < 1:
            raise ValueError("HotCache needs at least one shard.")
        self._shards: List[_Shard] = [_Shard() for _ in range(shards)]
        self._clock = clock or _utcnow

    @property
    def shard_count(self) -> int:
        return len(self._shards)

    def put(self, reading: Reading) -> Reading:
        entry = replace(reading, last_update=self._clock())
        shard = self._shard_for(entry.room_id)
        with shard.lock:
            shard.entries[entry.room_id] = entry
        return entry

    def get(self, room_id: str) -> Reading:
        shard = self._shard_for(room_id)
        with shard.lock:
            entry = shard.entries.get(room_id)
        if entry is None:
            raise RoomNotFound(room_id)
        return entry

    def list_all(self) -> Dict[str, Reading]:
        snapshot: Dict[str, Reading] = {}
        for shard in self._shards:
            with shard.lock:
                snapshot.update(shard.entries)
        return snapshot

    def clear(self) -> None:
        for shard in self._shards:
            with shard.lock:
                shard.entries.clear()

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total

    def _shard_for(self, room_id: str) -> _Shard:
        # Stable across processes.
        index = zlib.crc32(room_id.encode("utf-8")) % len(self._shards)
        return self._shards[index]


@lru_cache
def build_default_cache(shards: Optional[int] = None) -> HotCache:
    settings = get_settings()
    return HotCache(shards=shards or settings.cache_shards)
