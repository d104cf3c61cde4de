"""Renderer-facing session: wires the stream, fetcher, timeline and filter view together."""

import logging
import math
from collections import deque
from typing import Callable, Iterable

from log_viewer import query
from log_viewer.api_client import LogApiClient
from log_viewer.config import Config
from log_viewer.errors import CatalogUnavailable, LogViewerError
from log_viewer.fetcher import HistoricalPageFetcher
from log_viewer.mapper import map_page
from log_viewer.models import FilterCatalog, FilterPredicate, PageResult
from log_viewer.stream import StreamSession, StreamState
from log_viewer.timeline import TimelineMerger

logger = logging.getLogger(__name__)


class LogViewerSession:
    """One viewing session.

    Lower-level failures never propagate to the caller: they are turned
    into `error` (blocking, cleared only by `retry()`) or appended to
    `warnings` (non-fatal). Subscribers registered with `subscribe()` are
    called with the new snapshot whenever the timeline changes.
    """

    def __init__(self, config: Config, api: LogApiClient | None = None, connect=None):
        self._config = config
        self._api = api or LogApiClient(config.api_base_url, timeout=config.request_timeout)
        self._connect = connect
        self.timeline = TimelineMerger(live_window=config.live_window)
        self.fetcher = HistoricalPageFetcher(self._api, self.timeline)
        self._stream: StreamSession | None = None
        self._predicates = query.PredicateSet()
        self._keyword = ""
        self._time_range: str | None = None
        self.error: LogViewerError | None = None
        self.warnings: deque = deque(maxlen=config.max_warnings)
        self._live_catalog_failed = False

    # -- lifecycle ---------------------------------------------------------

    def start(self):
        """Open the live stream. Must be called from a running event loop."""
        self._stream = StreamSession(
            self._config.ws_url,
            on_record=self.timeline.ingest_live,
            on_backfill=self._backfill,
            on_error=self._handle_error,
            catalog_provider=self._catalog_for_live,
            idle_grace_secs=self._config.idle_grace_secs,
            connect=self._connect,
        )
        self._stream.start()

    async def stop(self):
        if self._stream is not None:
            await self._stream.stop()

    async def close(self):
        await self.stop()
        await self._api.aclose()

    async def retry(self):
        """Full reset: drop all state and reconnect from scratch."""
        logger.info("Resetting session")
        await self.stop()
        self.error = None
        self.warnings.clear()
        self._live_catalog_failed = False
        self._time_range = None
        self.fetcher.reset()
        self.timeline.clear()
        self.start()

    @property
    def stream_state(self) -> StreamState:
        return self._stream.state if self._stream is not None else StreamState.IDLE

    @property
    def is_loading(self) -> bool:
        return self.fetcher.is_loading

    # -- timeline ----------------------------------------------------------

    def get_snapshot(self) -> tuple:
        return self.timeline.snapshot()

    def subscribe(self, on_change: Callable) -> Callable:
        return self.timeline.subscribe(on_change)

    async def request_more(self, cursor: float | None, limit: int) -> PageResult | None:
        """Fetch one historical page; failures become `error`."""
        try:
            return await self.fetcher.fetch_page(cursor, limit)
        except LogViewerError as e:
            self._handle_error(e)
            return None

    async def fetch_more(self) -> PageResult | None:
        """Scroll-triggered load: a quarter of the current timeline, older than the oldest record."""
        size = len(self.timeline)
        oldest = self.timeline.oldest_timestamp
        if oldest is None:
            return await self.request_more(None, self._config.page_size)
        limit = max(1, math.floor(size * self._config.fetch_more_ratio))
        return await self.request_more(oldest, limit)

    async def load_time_range(self, preset: str | None, now: float | None = None) -> int:
        """Replace the timeline with every record newer than the preset's cutoff.

        An empty preset only clears the selection. Returns the number of
        records loaded.
        """
        start = query.time_range_start(preset, now)
        self._time_range = preset or None
        if start is None:
            return 0
        self.error = None
        try:
            catalog = await self._api.fetch_catalog()
            raw_records = await self._api.fetch_custom(start)
        except LogViewerError as e:
            self._handle_error(e)
            return 0

        records = map_page(raw_records, catalog)
        self.timeline.clear()
        self.fetcher.reset()
        self.timeline.ingest_page(records)
        logger.info("Loaded %d records for time range %s", len(records), preset)
        return len(records)

    @property
    def time_range(self) -> str | None:
        return self._time_range

    # -- filtering ---------------------------------------------------------

    @property
    def predicates(self) -> frozenset:
        return self._predicates.frozen()

    @property
    def keyword(self) -> str:
        return self._keyword

    def set_predicates(self, predicates: Iterable[FilterPredicate]):
        self._predicates = query.PredicateSet(predicates)

    def add_predicate(self, type_: str, value) -> bool:
        return self._predicates.add(type_, value)

    def remove_predicate(self, predicate: FilterPredicate) -> bool:
        return self._predicates.remove(predicate)

    def set_keyword(self, keyword: str):
        self._keyword = keyword or ""

    def get_filtered_view(self) -> tuple:
        return query.apply(self.timeline.snapshot(), self._predicates, self._keyword)

    def highlight_spans(self, text: str) -> list[tuple[int, int]]:
        return query.highlight_spans(text, self._keyword, self._config.highlight_min_length)

    def filter_options(self) -> dict[str, list]:
        """Choices per filter type from the last known catalog (empty lists if none yet)."""
        catalog = self._api.cached_catalog or FilterCatalog()
        return catalog.options()

    # -- callbacks ---------------------------------------------------------

    async def _backfill(self, anchor: float | None):
        await self.request_more(anchor, self._config.page_size)

    async def _catalog_for_live(self) -> FilterCatalog:
        """Catalog for mapping live records.

        Fetched at most once; after a failure live records are mapped with an
        empty catalog until a page fetch (or `retry()`) loads one.
        """
        catalog = self._api.cached_catalog
        if catalog is not None:
            return catalog
        if self._live_catalog_failed:
            return FilterCatalog()
        try:
            return await self._api.fetch_catalog()
        except CatalogUnavailable as e:
            self._live_catalog_failed = True
            logger.warning("Mapping live records without catalog: %s", e.message)
            return FilterCatalog()

    def _handle_error(self, error: LogViewerError):
        if not error.fatal:
            self.warnings.append(error)
            return
        logger.error("%s", error.message)
        self.error = error
