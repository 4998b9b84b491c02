"""
Compiled template cache.

Reads never lock: the entry table is replaced wholesale on every write,
so a reader always sees a complete table, and entries are immutable.
Hit counts and access times live beside the table and are advisory;
concurrent readers may lose updates to them. Entries go stale when the
backing file's modification time moves past the time recorded at
``set``; stale entries are evicted lazily on the next ``get``.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

MtimeLookup = Callable[[str], float | None]


def path_mtime(key: str) -> float | None:
    """Modification time of ``key`` when it names an existing file."""
    try:
        return os.stat(key).st_mtime
    except (OSError, ValueError):
        return None


@dataclass(frozen=True)
class CacheEntry:
    """A compiled template and the source time it was compiled from."""

    compiled_template: Any
    source_modified_time: float
    created_at: float


class TemplateCache:
    """
    Process-wide cache of compiled templates keyed by template path.

    Example:
        cache = TemplateCache()
        compiled = cache.get(key)
        if compiled is None:
            compiled = compile_template(key)
            cache.set(key, compiled)
    """

    def __init__(
        self,
        mtime_lookup: MtimeLookup | None = path_mtime,
        max_entries: int | None = None,
        ttl: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            mtime_lookup: Returns a key's current source modification time,
                or None when unknown; None disables staleness checks
            max_entries: Evict least recently used entries beyond this size
            ttl: Seconds after which an entry is treated as a miss
            clock: Time source
        """
        self._mtime_lookup = mtime_lookup
        self._max_entries = max_entries
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._last_access: dict[str, float] = {}
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Any | None:
        """
        Return the compiled template for ``key``, or None on a miss.

        Staleness and expiry count as misses. Never raises.
        """
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            logger.debug("Template cache miss: %s", key)
            return None

        if self._is_stale(key, entry):
            logger.debug("Template cache entry stale: %s", key)
            self._evict(key, entry)
            self._misses += 1
            return None

        self._hits += 1
        self._last_access[key] = self._clock()
        return entry.compiled_template

    def set(self, key: str, compiled: Any, source_mtime: float | None = None) -> None:
        """
        Store a compiled template, replacing any existing entry.

        Args:
            key: Template path
            compiled: Compiled template
            source_mtime: Source modification time; looked up if omitted
        """
        now = self._clock()
        if source_mtime is None:
            source_mtime = self._lookup(key)
        entry = CacheEntry(
            compiled_template=compiled,
            source_modified_time=source_mtime if source_mtime is not None else now,
            created_at=now,
        )
        with self._lock:
            entries = dict(self._entries)
            entries[key] = entry
            self._last_access[key] = now
            if self._max_entries is not None:
                while len(entries) > self._max_entries:
                    oldest = min(entries, key=lambda k: self._last_access.get(k, 0.0))
                    del entries[oldest]
                    self._last_access.pop(oldest, None)
                    logger.debug("Evicted template cache entry: %s", oldest)
            self._entries = entries

    def clear(self) -> None:
        """Drop all entries."""
        with self._lock:
            self._entries = {}
            self._last_access = {}
        logger.debug("Template cache cleared")

    def stats(self) -> dict[str, int]:
        return {
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
        }

    def _lookup(self, key: str) -> float | None:
        if self._mtime_lookup is None:
            return None
        try:
            return self._mtime_lookup(key)
        except OSError:
            return None

    def _is_stale(self, key: str, entry: CacheEntry) -> bool:
        if self._ttl is not None and self._clock() - entry.created_at > self._ttl:
            return True
        current = self._lookup(key)
        return current is not None and current > entry.source_modified_time

    def _evict(self, key: str, entry: CacheEntry) -> None:
        with self._lock:
            # Only drop the entry we judged stale, not a fresh replacement
            if self._entries.get(key) is entry:
                entries = dict(self._entries)
                del entries[key]
                self._entries = entries
                self._last_access.pop(key, None)
