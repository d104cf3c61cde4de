"""Tests for log_viewer/models.py"""

import pytest

from log_viewer.models import FilterCatalog, FilterPredicate, LogRecord, PageResult

from fakes import CATALOG_PAYLOAD, make_record


class TestFilterCatalog:
    def test_from_dict_builds_lookups(self, catalog):
        assert catalog.label("level", 3) == "ERROR"
        assert catalog.label("host", 2) == "web-2"
        assert catalog.label("request_method", 1) == "GET"

    def test_unknown_id_and_kind(self, catalog):
        assert catalog.label("level", 99) is None
        assert catalog.label("nope", 1) is None

    def test_options_keep_server_order(self, catalog):
        assert catalog.options() == {
            "level": ["INFO", "WARNING", "ERROR"],
            "host": ["web-1", "web-2"],
            "request_method": ["GET", "POST"],
        }

    def test_empty_and_partial_payloads(self):
        assert FilterCatalog.from_dict({}).options() == {
            "level": [], "host": [], "request_method": [],
        }
        catalog = FilterCatalog.from_dict({
            "levels": [{"id": 1}, {"level_type": "INFO"}, "junk", {"id": 2, "level_type": "ERROR"}],
        })
        assert catalog.levels == {2: "ERROR"}

    def test_frozen(self):
        catalog = FilterCatalog.from_dict(CATALOG_PAYLOAD)
        with pytest.raises(AttributeError):
            catalog.levels = {}


class TestLogRecord:
    def test_identity_is_timestamp_and_text(self):
        record = make_record(1000, "boot ok")
        assert record.identity == (1000.0, "boot ok")

    def test_get_falls_back_to_extra(self):
        record = LogRecord(timestamp=1.0, log_string="x", extra={"service": "auth"})
        assert record.get("service") == "auth"
        assert record.get("level") is None
        assert record.get("missing", "default") == "default"

    def test_to_dict_includes_extra(self):
        record = LogRecord(timestamp=1.0, level="INFO", log_string="x", extra={"id": 7})
        data = record.to_dict()
        assert data["level"] == "INFO"
        assert data["id"] == 7

    def test_extra_does_not_affect_equality(self):
        a = LogRecord(timestamp=1.0, log_string="x", extra={"id": 1})
        b = LogRecord(timestamp=1.0, log_string="x", extra={"id": 2})
        assert a == b
        assert hash(a) == hash(b)


class TestFilterPredicate:
    def test_exact_match(self):
        assert FilterPredicate("level", "ERROR").matches(make_record(1, level="ERROR"))

    def test_no_match(self):
        assert not FilterPredicate("level", "ERROR").matches(make_record(1, level="INFO"))

    def test_case_sensitive(self):
        assert not FilterPredicate("level", "error").matches(make_record(1, level="ERROR"))

    def test_missing_field_fails(self):
        record = make_record(1, host=None)
        assert not FilterPredicate("host", "web-1").matches(record)
        assert not FilterPredicate("region", "eu").matches(record)

    def test_hashable_set_semantics(self):
        assert len({FilterPredicate("level", "INFO"), FilterPredicate("level", "INFO")}) == 1

    def test_str(self):
        assert str(FilterPredicate("host", "web-1")) == "host: web-1"


def test_page_result_len():
    assert len(PageResult()) == 0
    assert len(PageResult(records=(make_record(1), make_record(2)))) == 2
