"""Historical page fetcher — one page at a time, with exhaustion tracking."""

import logging

from log_viewer.api_client import LogApiClient
from log_viewer.errors import LogViewerError
from log_viewer.mapper import map_page
from log_viewer.models import PageResult
from log_viewer.timeline import TimelineMerger

logger = logging.getLogger(__name__)

_NOT_EXHAUSTED = object()


class HistoricalPageFetcher:
    """Fetches older pages and pushes them into the timeline.

    Only one fetch runs at a time; a call made while another is in flight
    returns None without touching the network. Once a page comes back
    empty, calls at or past that cursor short-circuit to an empty page
    until `reset()`. A fetch still in flight when `reset()` is called is
    discarded: its page is not ingested and its failure is not raised.
    """

    def __init__(self, api: LogApiClient, timeline: TimelineMerger):
        self._api = api
        self._timeline = timeline
        self._loading = False
        self._exhausted_at = _NOT_EXHAUSTED
        self._generation = 0

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def exhausted(self) -> bool:
        return self._exhausted_at is not _NOT_EXHAUSTED

    def is_exhausted_for(self, cursor: float | None) -> bool:
        if self._exhausted_at is _NOT_EXHAUSTED:
            return False
        if self._exhausted_at is None:
            return True
        return cursor is not None and cursor <= self._exhausted_at

    def reset(self):
        """Forget exhaustion and abandon any fetch in flight."""
        self._exhausted_at = _NOT_EXHAUSTED
        self._generation += 1
        self._loading = False

    async def fetch_page(self, cursor: float | None, limit: int) -> PageResult | None:
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")

        if self._loading:
            logger.debug("Page fetch already in flight, ignoring request (cursor=%s)", cursor)
            return None

        if self.is_exhausted_for(cursor):
            return PageResult(records=(), cursor=cursor, exhausted=True)

        generation = self._generation
        self._loading = True
        try:
            # Catalog first: without it the page cannot be mapped.
            catalog = await self._api.fetch_catalog()
            raw_records = await self._api.fetch_historical(cursor, limit)
        except LogViewerError:
            if generation != self._generation:
                logger.debug("Ignoring failure of a fetch started before reset (cursor=%s)", cursor)
                return None
            raise
        finally:
            if generation == self._generation:
                self._loading = False

        if generation != self._generation:
            logger.debug("Dropping page fetched before reset (cursor=%s)", cursor)
            return None

        if not raw_records:
            logger.info("No more historical logs before cursor=%s", cursor)
            self._exhausted_at = cursor
            return PageResult(records=(), cursor=cursor, exhausted=True)

        records = map_page(raw_records, catalog)
        if not records:
            # Every row was malformed; treat as a page with nothing to add.
            return PageResult(records=(), cursor=cursor, exhausted=False)

        self._timeline.ingest_page(records)
        new_cursor = records[-1].timestamp
        logger.debug("Fetched %d records, cursor %s -> %s", len(records), cursor, new_cursor)
        return PageResult(records=tuple(records), cursor=new_cursor, exhausted=False)
