"""
Time-bounded cache for decoded ribbon XML.

Ribbon retrieval is slow, so decoded XML is kept per ``entity:locationFilter``
for a fixed TTL. Services own the cache they are given; long-lived callers
(GraphQL resolvers, management commands) share the process-wide instance
from ``get_shared_ribbon_cache``.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600

_SHARED_CACHE: Optional["RibbonXmlCache"] = None
_SHARED_CACHE_LOCK = threading.Lock()


def make_ribbon_cache_key(entity: str, location_filter: str = "All") -> str:
    return f"{entity}:{location_filter}"


class RibbonXmlCache:
    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[str, tuple[float, str]] = {}
        self._lock = threading.Lock()

    def get(self, entity: str, location_filter: str = "All") -> Optional[str]:
        key = make_ribbon_cache_key(entity, location_filter)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug("Ribbon cache miss for %s", key)
                return None
            stored_at, xml = entry
            if self.clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                logger.debug("Ribbon cache entry expired for %s", key)
                return None
        logger.debug("Ribbon cache hit for %s", key)
        return xml

    def put(self, entity: str, location_filter: str, xml: str) -> None:
        key = make_ribbon_cache_key(entity, location_filter)
        with self._lock:
            self._entries[key] = (self.clock(), xml)

    def invalidate(
        self, entity: Optional[str] = None, location_filter: Optional[str] = None
    ) -> int:
        """
        Drop cached entries.

        With no arguments everything is cleared. With only ``entity`` every
        location filter for that entity is cleared. Returns the number of
        entries removed.
        """
        with self._lock:
            if entity is None:
                removed = len(self._entries)
                self._entries.clear()
            elif location_filter is not None:
                key = make_ribbon_cache_key(entity, location_filter)
                removed = 1 if self._entries.pop(key, None) is not None else 0
            else:
                prefix = f"{entity}:"
                keys = [key for key in self._entries if key.startswith(prefix)]
                for key in keys:
                    del self._entries[key]
                removed = len(keys)
        logger.debug("Invalidated %s ribbon cache entries", removed)
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def get_shared_ribbon_cache(ttl_seconds: int = DEFAULT_TTL_SECONDS) -> RibbonXmlCache:
    """Process-wide cache; ``ttl_seconds`` only applies on first use."""
    global _SHARED_CACHE
    if _SHARED_CACHE is not None:
        return _SHARED_CACHE
    with _SHARED_CACHE_LOCK:
        if _SHARED_CACHE is None:
            _SHARED_CACHE = RibbonXmlCache(ttl_seconds)
    return _SHARED_CACHE
