# realty/cache.py
"""
Process-wide named cache with single-flight loading.

Entries have no expiry: a slot is filled on the first read-through miss and
lives until it is invalidated (by a write, a reconciliation correction or an
admin action) or the process restarts. Values are always replaced wholesale.
"""
import threading
from typing import Any, Callable, Dict, List
from .utils import logger

ALL_CATALOG = "all-catalog-records"
FEATURED_CATALOG = "featured-catalog-records"
CITIES = "cities"
CATEGORIES = "categories"
STATISTICS = "statistics"
AGENT_LISTINGS_PREFIX = "agent-listings:"

# Entries whose content depends on the catalog as a whole.
CATALOG_SNAPSHOTS = (ALL_CATALOG, FEATURED_CATALOG, STATISTICS)


def agent_listings_key(agent_id: str) -> str:
    return f"{AGENT_LISTINGS_PREFIX}{agent_id}"


class _Flight:
    """One in-progress load that concurrent misses wait on."""

    def __init__(self):
        self.done = threading.Event()
        self.value = None
        self.error = None


class NamedCache:

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, Any] = {}
        self._flights: Dict[str, _Flight] = {}
        self._stats = {"hits": 0, "misses": 0, "loads": 0, "invalidations": 0}

    def get_or_load(self, name: str, loader: Callable[[], Any]) -> Any:
        """
        Return the cached value for `name`, loading it on a miss.

        At most one loader runs per name; callers arriving while it runs wait
        for its outcome. If the loader raises, nothing is stored and every
        waiting caller sees the same exception.
        """
        with self._lock:
            if name in self._entries:
                self._stats["hits"] += 1
                logger.debug("Cache HIT: %s", name)
                return self._entries[name]
            self._stats["misses"] += 1
            flight = self._flights.get(name)
            leader = flight is None
            if leader:
                flight = _Flight()
                self._flights[name] = flight
        if not leader:
            logger.debug("Cache MISS (waiting on in-flight load): %s", name)
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.value

        logger.debug("Cache MISS (loading): %s", name)
        try:
            value = loader()
        except BaseException as e:
            with self._lock:
                self._flights.pop(name, None)
            flight.error = e
            flight.done.set()
            raise
        with self._lock:
            # stored even if invalidated mid-load; the next invalidation clears it
            self._entries[name] = value
            self._flights.pop(name, None)
            self._stats["loads"] += 1
        flight.value = value
        flight.done.set()
        return value

    def get(self, name: str, default=None):
        with self._lock:
            return self._entries.get(name, default)

    def invalidate(self, name: str) -> bool:
        with self._lock:
            removed = self._entries.pop(name, _MISSING) is not _MISSING
            self._stats["invalidations"] += 1
        logger.debug("Cache invalidate: %s (present=%s)", name, removed)
        return removed

    def invalidate_many(self, names) -> None:
        for name in names:
            self.invalidate(name)

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [n for n in self._entries if n.startswith(prefix)]
            for n in doomed:
                del self._entries[n]
            self._stats["invalidations"] += len(doomed)
        logger.debug("Cache invalidate prefix %s: %d entries", prefix, len(doomed))
        return len(doomed)

    def invalidate_all(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._stats["invalidations"] += count
        logger.info("Cache cleared (%d entries)", count)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {**self._stats, "entries": len(self._entries), "in_flight": len(self._flights)}


_MISSING = object()
