"""
Process-wide TTL cache for upstream API responses.

Entries are plain strings (serialized JSON). There is no capacity limit:
an entry is visible while `now - created_at < ttl`, reads never evict, and
every write sweeps out all entries that have reached the TTL.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional

from loguru import logger


class _ReadWriteLock:
    """Many concurrent readers, one exclusive writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


@dataclass
class CacheEntry:
    value: str
    created_at: float


class TTLResponseCache:
    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self.ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = _ReadWriteLock()

    def _is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at < self.ttl

    def get(self, key: str) -> Optional[str]:
        with self._lock.read():
            entry = self._entries.get(key)
            if entry is None:
                logger.debug("Cache miss for key: {}", key)
                return None
            if not self._is_fresh(entry, self._clock()):
                logger.debug("Cache expired for key: {}", key)
                return None
            logger.debug("Cache hit for key: {}", key)
            return entry.value

    def set(self, key: str, value: str) -> None:
        with self._lock.write():
            self._entries[key] = CacheEntry(value=value, created_at=self._clock())
            now = self._clock()
            stale = [k for k, e in self._entries.items() if not self._is_fresh(e, now)]
            for k in stale:
                del self._entries[k]
        logger.debug("Cache updated for key: {} (swept {} stale)", key, len(stale))

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)
