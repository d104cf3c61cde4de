"""Tests for log_viewer/stream.py"""

import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedError

from log_viewer.errors import ParseError, StreamClosed, StreamErrored
from log_viewer.models import FilterCatalog
from log_viewer.stream import StreamSession, StreamState

from fakes import CATALOG_PAYLOAD, FakeWebSocket, make_connect, make_raw, settle


class _Recorder:
    """Collects everything a StreamSession reports."""

    def __init__(self):
        self.records = []
        self.backfills = []
        self.errors = []

    def on_record(self, record):
        self.records.append(record)

    async def on_backfill(self, anchor):
        self.backfills.append(anchor)

    def on_error(self, error):
        self.errors.append(error)

    async def catalog(self):
        return FilterCatalog.from_dict(CATALOG_PAYLOAD)


def _make_stream(ws: FakeWebSocket, recorder: _Recorder, grace: float = 10.0) -> StreamSession:
    return StreamSession(
        "ws://logs.test/ws/log_entries/",
        on_record=recorder.on_record,
        on_backfill=recorder.on_backfill,
        on_error=recorder.on_error,
        catalog_provider=recorder.catalog,
        idle_grace_secs=grace,
        connect=make_connect(ws),
    )


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_connects_and_opens(self):
        ws, recorder = FakeWebSocket(), _Recorder()
        stream = _make_stream(ws, recorder)
        assert stream.state is StreamState.IDLE
        stream.start()
        assert stream.state is StreamState.CONNECTING
        await settle()
        assert stream.state is StreamState.OPEN
        assert ws.url == "ws://logs.test/ws/log_entries/"
        await stream.stop()

    @pytest.mark.asyncio
    async def test_start_twice_raises(self):
        ws, recorder = FakeWebSocket(), _Recorder()
        stream = _make_stream(ws, recorder)
        stream.start()
        with pytest.raises(RuntimeError):
            stream.start()
        await stream.stop()

    @pytest.mark.asyncio
    async def test_stop_is_silent(self):
        ws, recorder = FakeWebSocket(), _Recorder()
        stream = _make_stream(ws, recorder)
        stream.start()
        await settle()
        await stream.stop()
        assert stream.state is StreamState.CLOSED
        assert recorder.errors == []
        assert ws.exited is True

    @pytest.mark.asyncio
    async def test_server_close_is_fatal(self):
        ws, recorder = FakeWebSocket(), _Recorder()
        stream = _make_stream(ws, recorder)
        stream.start()
        await settle()
        ws.close()
        await stream.wait_closed()
        assert stream.state is StreamState.CLOSED
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], StreamClosed)
        assert recorder.errors[0].fatal is True

    @pytest.mark.asyncio
    async def test_protocol_error_is_fatal(self):
        ws, recorder = FakeWebSocket(), _Recorder()
        stream = _make_stream(ws, recorder)
        stream.start()
        await settle()
        ws.fail(ConnectionClosedError(None, None))
        await stream.wait_closed()
        assert stream.state is StreamState.ERRORED
        assert isinstance(recorder.errors[0], StreamErrored)

    @pytest.mark.asyncio
    async def test_connect_failure(self):
        ws, recorder = FakeWebSocket(connect_error=OSError("refused")), _Recorder()
        stream = _make_stream(ws, recorder)
        stream.start()
        await stream.wait_closed()
        assert stream.state is StreamState.ERRORED
        assert isinstance(recorder.errors[0], StreamErrored)
        assert recorder.backfills == []


class TestMessages:
    @pytest.mark.asyncio
    async def test_records_mapped_and_forwarded(self):
        ws, recorder = FakeWebSocket(), _Recorder()
        stream = _make_stream(ws, recorder)
        stream.start()
        ws.push(json.dumps(make_raw(1000, "boot ok", level=1)))
        await settle()
        assert len(recorder.records) == 1
        assert recorder.records[0].level == "INFO"
        assert recorder.records[0].log_string == "boot ok"
        assert stream.received == 1
        await stream.stop()

    @pytest.mark.asyncio
    async def test_parse_error_keeps_stream_open(self):
        ws, recorder = FakeWebSocket(), _Recorder()
        stream = _make_stream(ws, recorder)
        stream.start()
        ws.push("{broken")
        ws.push(json.dumps(make_raw(1000)))
        await settle()
        assert stream.state is StreamState.OPEN
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], ParseError)
        assert len(recorder.records) == 1
        assert stream.parse_errors == 1
        await stream.stop()

    @pytest.mark.asyncio
    async def test_nan_timestamp_is_a_parse_error(self):
        ws, recorder = FakeWebSocket(), _Recorder()
        stream = _make_stream(ws, recorder)
        stream.start()
        ws.push('{"timestamp": NaN, "log_string": "x"}')
        ws.push(json.dumps(make_raw(1000)))
        await settle()
        assert stream.parse_errors == 1
        assert isinstance(recorder.errors[0], ParseError)
        assert [r.timestamp for r in recorder.records] == [1000]
        assert recorder.backfills == [1000.0]
        await stream.stop()

    @pytest.mark.asyncio
    async def test_no_records_after_close(self):
        ws, recorder = FakeWebSocket(), _Recorder()
        stream = _make_stream(ws, recorder)
        stream.start()
        ws.push(json.dumps(make_raw(1000)))
        ws.close()
        ws.push(json.dumps(make_raw(1001)))
        await stream.wait_closed()
        await settle()
        assert [r.timestamp for r in recorder.records] == [1000]


class TestBackfill:
    @pytest.mark.asyncio
    async def test_first_message_triggers_anchored_backfill(self):
        ws, recorder = FakeWebSocket(), _Recorder()
        stream = _make_stream(ws, recorder)
        stream.start()
        ws.push(json.dumps(make_raw(1000)))
        ws.push(json.dumps(make_raw(1001)))
        ws.push(json.dumps(make_raw(1002)))
        await settle()
        assert recorder.backfills == [1000.0]
        assert stream.backfill_requested is True
        await stream.stop()

    @pytest.mark.asyncio
    async def test_malformed_first_message_does_not_trigger(self):
        ws, recorder = FakeWebSocket(), _Recorder()
        stream = _make_stream(ws, recorder)
        stream.start()
        ws.push("nope")
        await settle()
        assert recorder.backfills == []
        ws.push(json.dumps(make_raw(1000)))
        await settle()
        assert recorder.backfills == [1000.0]
        await stream.stop()

    @pytest.mark.asyncio
    async def test_idle_grace_triggers_recent_backfill(self):
        ws, recorder = FakeWebSocket(), _Recorder()
        stream = _make_stream(ws, recorder, grace=0.02)
        stream.start()
        await asyncio.sleep(0.06)
        assert recorder.backfills == [None]
        await stream.stop()

    @pytest.mark.asyncio
    async def test_backfills_mutually_exclusive(self):
        ws, recorder = FakeWebSocket(), _Recorder()
        stream = _make_stream(ws, recorder, grace=0.02)
        stream.start()
        await asyncio.sleep(0.06)
        ws.push(json.dumps(make_raw(1000)))
        await settle()
        assert recorder.backfills == [None]
        await stream.stop()

    @pytest.mark.asyncio
    async def test_first_message_cancels_grace_timer(self):
        ws, recorder = FakeWebSocket(), _Recorder()
        stream = _make_stream(ws, recorder, grace=0.03)
        stream.start()
        ws.push(json.dumps(make_raw(1000)))
        await asyncio.sleep(0.08)
        assert recorder.backfills == [1000.0]
        await stream.stop()
