from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger("vetclinic.realtime")

QueryKey = tuple[Hashable, ...]


@dataclass
class CacheEntry:
    data: Any
    fetched_at: float = field(default_factory=time.monotonic)
    stale: bool = False


def _as_key(key) -> QueryKey:
    if isinstance(key, tuple):
        return key
    if isinstance(key, list):
        return tuple(key)
    return (key,)


def key_matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryCache:
    """
    Per-session store of fetched query results.

    Keys are tuples; invalidate() and remove() match on key prefix, so
    invalidating ("animals",) also covers ("animals", "list") and
    ("animals", "detail", id). Invalidated entries stay readable through
    peek() but fetch() reloads them.

    Every key has a version that invalidate() bumps, also for keys that are
    still loading; a load that raced an invalidation is stored stale. A load
    that raced clear() is returned but not stored.
    """

    def __init__(self) -> None:
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._versions: dict[QueryKey, int] = {}
        self._loading: dict[QueryKey, int] = {}
        self._epoch = 0
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key) -> bool:
        with self._lock:
            return _as_key(key) in self._entries

    def is_empty(self) -> bool:
        return len(self) == 0

    def keys(self) -> list[QueryKey]:
        with self._lock:
            return list(self._entries)

    def peek(self, key) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(_as_key(key))

    def set(self, key, data: Any) -> None:
        with self._lock:
            self._entries[_as_key(key)] = CacheEntry(data=data)

    def fetch(self, key, loader: Callable[[], Any]) -> Any:
        k = _as_key(key)
        with self._lock:
            entry = self._entries.get(k)
            if entry is not None and not entry.stale:
                return entry.data
            version = self._versions.get(k, 0)
            epoch = self._epoch
            self._loading[k] = self._loading.get(k, 0) + 1
        try:
            data = loader()
        finally:
            with self._lock:
                self._done_loading(k)
        with self._lock:
            if epoch != self._epoch:
                logger.debug("cache_load_discarded key=%s", k)
                return data
            stale = self._versions.get(k, 0) != version
            if stale:
                logger.debug("cache_load_raced_invalidate key=%s", k)
            self._entries[k] = CacheEntry(data=data, stale=stale)
        return data

    def _done_loading(self, k: QueryKey) -> None:
        left = self._loading.get(k, 0) - 1
        if left > 0:
            self._loading[k] = left
        else:
            self._loading.pop(k, None)

    def _bump(self, p: QueryKey) -> None:
        for k in set(self._entries) | set(self._loading):
            if key_matches(k, p):
                self._versions[k] = self._versions.get(k, 0) + 1

    def invalidate(self, prefix) -> int:
        p = _as_key(prefix)
        count = 0
        with self._lock:
            self._bump(p)
            for k, entry in self._entries.items():
                if key_matches(k, p) and not entry.stale:
                    entry.stale = True
                    count += 1
        logger.debug("cache_invalidate prefix=%s entries=%s", p, count)
        return count

    def remove(self, prefix) -> int:
        p = _as_key(prefix)
        with self._lock:
            doomed = [k for k in self._entries if key_matches(k, p)]
            for k in doomed:
                del self._entries[k]
            self._bump(p)
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._versions.clear()
            self._epoch += 1
        logger.info("cache_cleared entries=%s", count)
