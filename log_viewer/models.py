"""Data model — frozen dataclasses for records, catalog, predicates and pages."""

from dataclasses import dataclass, field
from typing import Any

# Wire fields that LogRecord stores as attributes; everything else lands in `extra`.
RECORD_FIELDS = ("timestamp", "level", "host", "request_method", "log_string", "date_time")


@dataclass(frozen=True)
class LogRecord:
    timestamp: float
    level: Any = None
    host: Any = None
    request_method: Any = None
    log_string: str = ""
    date_time: str | None = None
    extra: dict = field(default_factory=dict, compare=False, hash=False)

    @property
    def identity(self) -> tuple[float, str]:
        """Key used to collapse duplicates when merging live and historical records."""
        return (self.timestamp, self.log_string)

    def get(self, name: str, default=None):
        """Look up a field by name, falling back to extra wire fields."""
        if name in RECORD_FIELDS:
            return getattr(self, name)
        return self.extra.get(name, default)

    def to_dict(self) -> dict:
        data = {name: getattr(self, name) for name in RECORD_FIELDS}
        data.update(self.extra)
        return data


@dataclass(frozen=True)
class FilterCatalog:
    """Reference data translating coded level/host/method ids into labels."""

    levels: dict = field(default_factory=dict)
    hosts: dict = field(default_factory=dict)
    request_methods: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "FilterCatalog":
        """Build a catalog from the filter-type endpoint payload.

        Rows missing an id or a label are ignored. Insertion order is kept so
        the option lists come out in the order the server sent them.
        """
        data = data or {}
        return cls(
            levels=_index(data.get("levels"), "level_type"),
            hosts=_index(data.get("hosts"), "host_name"),
            request_methods=_index(data.get("request_methods"), "request_method_type"),
        )

    def label(self, kind: str, raw_id):
        """Return the label for `raw_id` in table `kind`, or None if unknown."""
        table = self._table(kind)
        if table is None:
            return None
        return table.get(raw_id)

    def options(self) -> dict[str, list]:
        """Label lists per filter type, as offered to the user when adding a filter."""
        return {
            "level": list(self.levels.values()),
            "host": list(self.hosts.values()),
            "request_method": list(self.request_methods.values()),
        }

    def _table(self, kind: str) -> dict | None:
        return {
            "level": self.levels,
            "host": self.hosts,
            "request_method": self.request_methods,
        }.get(kind)


def _index(rows, label_key: str) -> dict:
    table = {}
    for row in rows or []:
        if not isinstance(row, dict):
            continue
        if "id" not in row or row.get(label_key) is None:
            continue
        table[row["id"]] = row[label_key]
    return table


@dataclass(frozen=True)
class FilterPredicate:
    type: str
    value: Any

    def matches(self, record: LogRecord) -> bool:
        """Exact equality on the named field; a missing or empty field never matches."""
        actual = record.get(self.type)
        if actual is None or actual == "":
            return False
        return actual == self.value

    def __str__(self) -> str:
        return f"{self.type}: {self.value}"


@dataclass(frozen=True)
class PageResult:
    records: tuple = ()
    cursor: float | None = None
    exhausted: bool = False

    def __len__(self) -> int:
        return len(self.records)
