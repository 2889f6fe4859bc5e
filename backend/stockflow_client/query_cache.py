# Overview: Thread-safe keyed cache for server reads, with stale marking and fetch cancellation.

"""
Query Cache

WHY: The UI reads the same payments and notifications from several places
(lists, the dashboard, the header bell). Reads are cached under tuple keys
so mutations can patch, invalidate or roll back every copy at once.

KEYS:
    ("payments", "detail", "12")
    ("payments", "list", '{"page": 1, "status": "PENDING"}')
    ("notifications", "unread-count")

Operations that take a prefix act on every key starting with it, so
("notifications",) addresses the whole notification cache.

CANCELLATION: Every key carries a generation counter. fetch() remembers the
generation it started under and drops its result if cancel() bumped the
counter meanwhile; the caller still receives the fetched value.
"""

from __future__ import annotations

import copy
import json
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable


Key = tuple


def filter_signature(filters: dict | None) -> str:
    """Stable string for a filter dict; None values are ignored."""
    cleaned = {k: v for k, v in (filters or {}).items() if v is not None}
    return json.dumps(cleaned, sort_keys=True, default=str)


def matches(key: Key, prefix: Key) -> bool:
    return key[:len(prefix)] == tuple(prefix)


class PaymentKeys:
    all = ("payments",)

    @staticmethod
    def detail(payment_id) -> Key:
        return ("payments", "detail", str(payment_id))

    @staticmethod
    def list(filters: dict | None = None) -> Key:
        if filters is None:
            return ("payments", "list")
        return ("payments", "list", filter_signature(filters))

    @staticmethod
    def recent(limit: int | None = None) -> Key:
        if limit is None:
            return ("payments", "recent")
        return ("payments", "recent", limit)

    @staticmethod
    def stats() -> Key:
        return ("payments", "stats")

    @staticmethod
    def by_invoice(invoice_id=None) -> Key:
        if invoice_id is None:
            return ("payments", "by-invoice")
        return ("payments", "by-invoice", str(invoice_id))

    @staticmethod
    def by_customer(customer_id=None) -> Key:
        if customer_id is None:
            return ("payments", "by-customer")
        return ("payments", "by-customer", str(customer_id))


class NotificationKeys:
    all = ("notifications",)

    @staticmethod
    def detail(notification_id) -> Key:
        return ("notifications", "detail", str(notification_id))

    @staticmethod
    def list(filters: dict | None = None) -> Key:
        if filters is None:
            return ("notifications", "list")
        return ("notifications", "list", filter_signature(filters))

    @staticmethod
    def recent(limit: int | None = None) -> Key:
        if limit is None:
            return ("notifications", "recent")
        return ("notifications", "recent", limit)

    @staticmethod
    def unread_count() -> Key:
        return ("notifications", "unread-count")


# =============================================================================
# COLLECTION HELPERS
# =============================================================================

def iter_items(value) -> Iterable[dict]:
    """Yield entity dicts from a cached list or a paginated {"data": [...]} payload."""
    if isinstance(value, list):
        items = value
    elif isinstance(value, dict) and isinstance(value.get("data"), list):
        items = value["data"]
    else:
        return
    for item in items:
        if isinstance(item, dict):
            yield item


def transform_items(value, func: Callable[[dict], dict | None]):
    """
    Return a copy of a cached collection with func applied to each item.

    func returns the replacement item, or None to drop it. Values that are not
    collections are returned unchanged.
    """
    def _apply(items):
        result = []
        for item in items:
            if not isinstance(item, dict):
                result.append(item)
                continue
            new_item = func(dict(item))
            if new_item is not None:
                result.append(new_item)
        return result

    if isinstance(value, list):
        return _apply(value)
    if isinstance(value, dict) and isinstance(value.get("data"), list):
        new_value = dict(value)
        new_value["data"] = _apply(value["data"])
        return new_value
    return value


# =============================================================================
# CACHE
# =============================================================================

@dataclass
class CacheEntry:
    data: Any
    stale: bool = False
    updated_at: float = field(default_factory=time.monotonic)


@dataclass(frozen=True)
class Snapshot:
    """Deep copies of cache entries taken before an optimistic change."""
    prefixes: tuple
    entries: dict


class QueryCache:
    def __init__(self):
        self._lock = threading.RLock()
        self._entries: dict[Key, CacheEntry] = {}
        self._generations: dict[Key, int] = {}

    # -- reads ---------------------------------------------------------------

    def get(self, key: Key, default=None):
        with self._lock:
            entry = self._entries.get(tuple(key))
            return default if entry is None else entry.data

    def has(self, key: Key) -> bool:
        with self._lock:
            return tuple(key) in self._entries

    def is_stale(self, key: Key) -> bool:
        """True when the key is missing or was invalidated."""
        with self._lock:
            entry = self._entries.get(tuple(key))
            return entry is None or entry.stale

    def keys(self, prefix: Key = ()) -> list[Key]:
        with self._lock:
            return [k for k in self._entries if matches(k, prefix)]

    def items(self, prefix: Key = ()) -> list[tuple[Key, Any]]:
        with self._lock:
            return [(k, e.data) for k, e in self._entries.items() if matches(k, prefix)]

    def fetch(self, key: Key, fetcher: Callable[[], Any], *, force: bool = False):
        """
        Return cached data for key, calling fetcher() when missing or stale.

        The fetcher runs outside the lock. Its result is stored only if the key
        was not cancelled while it ran.
        """
        key = tuple(key)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and not entry.stale and not force:
                return entry.data
            generation = self._generations.setdefault(key, 0)

        data = fetcher()

        with self._lock:
            if self._generations.get(key, 0) == generation:
                self._entries[key] = CacheEntry(copy.deepcopy(data))
        return data

    # -- writes --------------------------------------------------------------

    def set(self, key: Key, data) -> None:
        with self._lock:
            self._entries[tuple(key)] = CacheEntry(copy.deepcopy(data))

    def update(self, key: Key, func: Callable[[Any], Any]) -> bool:
        """Replace the cached value with func(value); no-op when key is absent."""
        key = tuple(key)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            entry.data = func(copy.deepcopy(entry.data))
            entry.updated_at = time.monotonic()
            return True

    def update_matching(self, prefix: Key, func: Callable[[Any], Any]) -> int:
        with self._lock:
            keys = [k for k in self._entries if matches(k, prefix)]
            for k in keys:
                self.update(k, func)
            return len(keys)

    def remove(self, prefix: Key) -> int:
        with self._lock:
            keys = [k for k in self._entries if matches(k, prefix)]
            for k in keys:
                del self._entries[k]
            return len(keys)

    def invalidate(self, prefix: Key) -> int:
        """Mark matching entries stale so the next fetch() goes to the server."""
        with self._lock:
            count = 0
            for k, entry in self._entries.items():
                if matches(k, prefix):
                    entry.stale = True
                    count += 1
            return count

    def cancel(self, prefix: Key) -> None:
        """Discard the results of fetches in flight for matching keys."""
        prefix = tuple(prefix)
        with self._lock:
            keys = set(k for k in self._entries if matches(k, prefix))
            keys.update(k for k in self._generations if matches(k, prefix))
            keys.add(prefix)
            for k in keys:
                self._generations[k] = self._generations.get(k, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            for k in list(self._generations):
                self._generations[k] += 1

    # -- snapshots -----------------------------------------------------------

    def snapshot(self, prefixes: Iterable[Key]) -> Snapshot:
        prefixes = tuple(tuple(p) for p in prefixes)
        with self._lock:
            entries = {
                k: copy.deepcopy(e)
                for k, e in self._entries.items()
                if any(matches(k, p) for p in prefixes)
            }
        return Snapshot(prefixes=prefixes, entries=entries)

    def restore(self, snapshot: Snapshot) -> None:
        """
        Put back every snapshotted value verbatim.

        Entries added under the snapshot prefixes since then are dropped. An
        entry invalidated since the snapshot stays stale.
        """
        with self._lock:
            for k in [k for k in self._entries if any(matches(k, p) for p in snapshot.prefixes)]:
                if k not in snapshot.entries:
                    del self._entries[k]
            for k, saved in snapshot.entries.items():
                current = self._entries.get(k)
                restored = copy.deepcopy(saved)
                if current is not None and current.stale:
                    restored.stale = True
                self._entries[k] = restored
