"""Translate raw wire records into LogRecords using the filter catalog."""

import json
import logging
import math

from log_viewer.errors import ParseError
from log_viewer.models import RECORD_FIELDS, FilterCatalog, LogRecord

logger = logging.getLogger(__name__)

MAPPED_FIELDS = ("level", "host", "request_method")


def map_record(raw: dict, catalog: FilterCatalog) -> LogRecord:
    """Map one raw record. Unknown ids pass through unchanged.

    `raw` must already be validated (see `validate_raw`); the catalog lookup
    itself never fails.
    """
    mapped = {}
    for name in MAPPED_FIELDS:
        raw_value = raw.get(name)
        label = catalog.label(name, raw_value)
        mapped[name] = raw_value if label is None else label

    return LogRecord(
        timestamp=float(raw["timestamp"]),
        level=mapped["level"],
        host=mapped["host"],
        request_method=mapped["request_method"],
        log_string=str(raw["log_string"]),
        date_time=raw.get("date_time"),
        extra={k: v for k, v in raw.items() if k not in RECORD_FIELDS},
    )


def validate_raw(raw) -> dict:
    """Check that a decoded payload is a usable raw record; raise ParseError if not."""
    if not isinstance(raw, dict):
        raise ParseError(f"Error parsing log: expected object, got {type(raw).__name__}")
    if "timestamp" not in raw or "log_string" not in raw:
        raise ParseError("Error parsing log: missing timestamp or log_string")
    ts = raw["timestamp"]
    if isinstance(ts, bool):
        raise ParseError("Error parsing log: timestamp is not numeric")
    try:
        value = float(ts)
    except (TypeError, ValueError):
        raise ParseError("Error parsing log: timestamp is not numeric") from None
    if not math.isfinite(value):
        raise ParseError(f"Error parsing log: timestamp is not finite ({ts!r})")
    return raw


def parse_raw_record(payload) -> dict:
    """Decode one live message (text or bytes) into a validated raw record."""
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    try:
        raw = json.loads(payload)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"Error parsing log: {e}") from e
    return validate_raw(raw)


def map_page(raw_records, catalog: FilterCatalog) -> list[LogRecord]:
    """Map a fetched page, skipping (and logging) malformed rows."""
    records = []
    for raw in raw_records:
        try:
            validate_raw(raw)
        except ParseError as e:
            logger.warning("Skipping malformed historical record: %s", e.message)
            continue
        records.append(map_record(raw, catalog))
    return records
