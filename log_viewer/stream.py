"""Live stream subscriber — one WebSocket connection feeding the timeline."""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable

import websockets
from websockets.exceptions import ConnectionClosedOK, WebSocketException

from log_viewer.errors import ParseError, StreamClosed, StreamErrored
from log_viewer.mapper import map_record, parse_raw_record
from log_viewer.models import FilterCatalog, LogRecord

logger = logging.getLogger(__name__)


class StreamState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERRORED = "errored"


TERMINAL_STATES = (StreamState.CLOSED, StreamState.ERRORED)


class StreamSession:
    """Owns one connection lifetime: IDLE -> CONNECTING -> OPEN -> CLOSED | ERRORED.

    Terminal states are final; a new StreamSession is needed to reconnect.

    Callbacks:
    - on_record(LogRecord): each mapped live record.
    - on_backfill(anchor): coroutine function, asked at most once per
      connection to load history before `anchor` (None = most recent page).
      Fired by whichever comes first: the first parsed message or the idle
      grace timer.
    - on_error(LogViewerError): ParseError (non-fatal) or StreamClosed /
      StreamErrored (fatal).
    - catalog_provider(): coroutine returning the FilterCatalog used to map
      live records.
    """

    def __init__(
        self,
        url: str,
        on_record: Callable[[LogRecord], None],
        on_backfill: Callable[[float | None], Awaitable],
        on_error: Callable[[Exception], None],
        catalog_provider: Callable[[], Awaitable[FilterCatalog]],
        idle_grace_secs: float = 5.0,
        connect=None,
    ):
        self._url = url
        self._on_record = on_record
        self._on_backfill = on_backfill
        self._on_error = on_error
        self._catalog_provider = catalog_provider
        self._idle_grace_secs = idle_grace_secs
        self._connect = connect or websockets.connect

        self._state = StreamState.IDLE
        self._task: asyncio.Task | None = None
        self._grace_task: asyncio.Task | None = None
        self._backfill_task: asyncio.Task | None = None
        self._first_received = False
        self._backfill_requested = False
        self._stopping = False
        self.received = 0
        self.parse_errors = 0

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def backfill_requested(self) -> bool:
        return self._backfill_requested

    def start(self):
        """Open the connection in a background task."""
        if self._task is not None:
            raise RuntimeError("StreamSession already started")
        self._state = StreamState.CONNECTING
        self._task = asyncio.create_task(self._run())

    async def stop(self):
        """Close the connection without surfacing an error."""
        self._stopping = True
        for task in (self._grace_task, self._backfill_task, self._task):
            if task is not None and not task.done():
                task.cancel()
        for task in (self._backfill_task, self._task):
            if task is not None:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        if self._state not in TERMINAL_STATES:
            self._state = StreamState.CLOSED

    async def wait_closed(self):
        if self._task is not None:
            await asyncio.shield(self._task)

    async def _run(self):
        try:
            async with self._connect(self._url) as ws:
                self._state = StreamState.OPEN
                logger.info("WebSocket connection established: %s", self._url)
                self._grace_task = asyncio.create_task(self._idle_grace())
                async for message in ws:
                    await self._handle_message(message)
            self._terminate(StreamState.CLOSED, StreamClosed())
        except asyncio.CancelledError:
            self._state = StreamState.CLOSED
            raise
        except ConnectionClosedOK:
            self._terminate(StreamState.CLOSED, StreamClosed())
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            logger.warning("WebSocket error on %s: %s", self._url, e)
            self._terminate(StreamState.ERRORED, StreamErrored(f"WebSocket error: {e}"))
        finally:
            if self._grace_task is not None:
                self._grace_task.cancel()

    async def _handle_message(self, message):
        if self._state is not StreamState.OPEN:
            return
        try:
            raw = parse_raw_record(message)
        except ParseError as e:
            self.parse_errors += 1
            logger.warning("Dropping malformed live message: %s", e.message)
            self._on_error(e)
            return

        catalog = await self._catalog_provider()
        record = map_record(raw, catalog)
        self.received += 1
        self._on_record(record)

        if not self._first_received:
            self._first_received = True
            if self._grace_task is not None:
                self._grace_task.cancel()
            self._request_backfill(record.timestamp)

    async def _idle_grace(self):
        await asyncio.sleep(self._idle_grace_secs)
        if not self._first_received:
            logger.info(
                "No messages received after %.1fs, fetching historical logs",
                self._idle_grace_secs,
            )
            self._request_backfill(None)

    def _request_backfill(self, anchor: float | None):
        if self._backfill_requested:
            return
        self._backfill_requested = True
        self._backfill_task = asyncio.create_task(self._on_backfill(anchor))

    def _terminate(self, state: StreamState, error: Exception):
        if self._stopping:
            self._state = StreamState.CLOSED
            return
        self._state = state
        logger.info("WebSocket connection %s: %s", state.value, self._url)
        self._on_error(error)
