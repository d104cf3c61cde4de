"""Filter/search view over a timeline snapshot, plus highlight and time-range helpers."""

import time
from typing import Iterable

from log_viewer.models import FilterPredicate, LogRecord

FILTER_TYPES = ("level", "host", "request_method")

HIGHLIGHT_MIN_LENGTH = 3

# Preset name -> lookback in seconds.
TIME_RANGES = {
    "15mins": 15 * 60,
    "30mins": 30 * 60,
    "1hr": 60 * 60,
    "2hrs": 2 * 60 * 60,
    "1day": 24 * 60 * 60,
    "2days": 2 * 24 * 60 * 60,
}


def matches_predicates(record: LogRecord, predicates: Iterable[FilterPredicate]) -> bool:
    """True if the record satisfies every predicate (AND)."""
    return all(p.matches(record) for p in predicates)


def matches_keyword(record: LogRecord, keyword: str) -> bool:
    """Case-insensitive substring match on log_string. An empty keyword matches all."""
    if not keyword:
        return True
    return keyword.lower() in (record.log_string or "").lower()


def apply(snapshot, predicates: Iterable[FilterPredicate] = (), keyword: str = "") -> tuple:
    """Return the records of `snapshot` passing all predicates and the keyword, in order."""
    predicates = tuple(predicates)
    if not predicates and not keyword:
        return tuple(snapshot)
    return tuple(
        r for r in snapshot
        if matches_predicates(r, predicates) and matches_keyword(r, keyword)
    )


def should_highlight(keyword: str, min_length: int = HIGHLIGHT_MIN_LENGTH) -> bool:
    """Highlighting kicks in at `min_length` characters; filtering does not depend on it."""
    return bool(keyword) and len(keyword) >= min_length


def highlight_spans(text: str, keyword: str, min_length: int = HIGHLIGHT_MIN_LENGTH) -> list[tuple[int, int]]:
    """Non-overlapping (start, end) spans of `keyword` in `text`, case-insensitive."""
    if not text or not should_highlight(keyword, min_length):
        return []
    haystack = text.lower()
    needle = keyword.lower()
    spans = []
    start = haystack.find(needle)
    while start != -1:
        end = start + len(needle)
        spans.append((start, end))
        start = haystack.find(needle, end)
    return spans


def time_range_start(preset: str | None, now: float | None = None) -> float | None:
    """Cutoff timestamp (seconds, millisecond precision) for a lookback preset.

    Empty/None preset means "no time range". Unknown presets raise ValueError.
    """
    if not preset:
        return None
    if preset not in TIME_RANGES:
        raise ValueError(
            f"Unknown time range {preset!r}, expected one of {', '.join(TIME_RANGES)}"
        )
    if now is None:
        now = time.time()
    return round(now - TIME_RANGES[preset], 3)


class PredicateSet:
    """The active filter chips. Set semantics, insertion order kept for display."""

    def __init__(self, predicates: Iterable[FilterPredicate] = ()):
        self._items: dict[FilterPredicate, None] = {}
        for p in predicates:
            self.add(p.type, p.value)

    def add(self, type_: str, value) -> bool:
        """Add a predicate. Returns False if empty or already present."""
        if not type_ or value is None or value == "":
            return False
        predicate = FilterPredicate(type_, value)
        if predicate in self._items:
            return False
        self._items[predicate] = None
        return True

    def remove(self, predicate: FilterPredicate) -> bool:
        if predicate not in self._items:
            return False
        del self._items[predicate]
        return True

    def clear(self):
        self._items.clear()

    def frozen(self) -> frozenset:
        return frozenset(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, predicate) -> bool:
        return predicate in self._items
