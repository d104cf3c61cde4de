"""Timeline merger — the single ordered, de-duplicated view of live and historical logs."""

import bisect
import logging
import threading
from collections import deque
from typing import Callable

from log_viewer.models import LogRecord

logger = logging.getLogger(__name__)


def _sort_key(record: LogRecord) -> float:
    return -record.timestamp


class TimelineMerger:
    """Owns the merged timeline, newest first, unique by `LogRecord.identity`.

    Live records are inserted before existing records with the same
    timestamp, page records after them. A record whose identity is already
    present replaces the stored one in place, so the latest mapping wins
    without reordering.

    Thread-safe: every public method holds one lock. Subscriber callbacks
    run after the lock is released.
    """

    def __init__(self, live_window: int = 50):
        self._lock = threading.Lock()
        self._records: list[LogRecord] = []
        self._by_key: dict[tuple, LogRecord] = {}
        self._recent_live: deque = deque(maxlen=live_window)
        self._cursor: float | None = None
        self._subscribers: list[Callable] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @property
    def cursor(self) -> float | None:
        """Timestamp of the oldest record loaded through `ingest_page`."""
        with self._lock:
            return self._cursor

    @property
    def oldest_timestamp(self) -> float | None:
        with self._lock:
            return self._records[-1].timestamp if self._records else None

    @property
    def recent_live_count(self) -> int:
        with self._lock:
            return len(self._recent_live)

    def recent_live(self) -> tuple:
        """Live arrivals still inside the tracking window, newest first."""
        with self._lock:
            return tuple(
                self._by_key[key] for key in self._recent_live if key in self._by_key
            )

    def ingest_live(self, record: LogRecord):
        with self._lock:
            self._insert(record, live=True)
            key = record.identity
            if key in self._recent_live:
                self._recent_live.remove(key)
            self._recent_live.appendleft(key)
            snapshot = tuple(self._records)
        self._notify(snapshot)

    def ingest_page(self, records):
        records = list(records)
        if not records:
            return
        with self._lock:
            for record in records:
                self._insert(record, live=False)
            oldest = min(r.timestamp for r in records)
            if self._cursor is None or oldest < self._cursor:
                self._cursor = oldest
            snapshot = tuple(self._records)
        logger.debug("Ingested page of %d records, timeline size %d", len(records), len(snapshot))
        self._notify(snapshot)

    def snapshot(self) -> tuple:
        with self._lock:
            return tuple(self._records)

    def clear(self):
        """Drop everything. Used when the whole session is reset."""
        with self._lock:
            self._records.clear()
            self._by_key.clear()
            self._recent_live.clear()
            self._cursor = None
        self._notify(())

    def subscribe(self, callback: Callable) -> Callable:
        """Register `callback(snapshot)`; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _insert(self, record: LogRecord, live: bool):
        """Insert or replace. Must be called with self._lock held."""
        key = record.identity
        existing = self._by_key.get(key)
        if existing is not None:
            index = self._index_of(existing)
            self._records[index] = record
            self._by_key[key] = record
            return

        if live:
            index = bisect.bisect_left(self._records, -record.timestamp, key=_sort_key)
        else:
            index = bisect.bisect_right(self._records, -record.timestamp, key=_sort_key)
        self._records.insert(index, record)
        self._by_key[key] = record

    def _index_of(self, record: LogRecord) -> int:
        lo = bisect.bisect_left(self._records, -record.timestamp, key=_sort_key)
        hi = bisect.bisect_right(self._records, -record.timestamp, key=_sort_key)
        for i in range(lo, hi):
            if self._records[i] is record:
                return i
        raise LookupError(f"record {record.identity} missing from timeline")

    def _notify(self, snapshot: tuple):
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Timeline subscriber %r failed", callback)
