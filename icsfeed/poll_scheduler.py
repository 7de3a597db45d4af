"""Periodic polling of all configured feeds with a coalesced refresh notification."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable
from datetime import date, datetime
from enum import Enum
from typing import Callable, Optional, Union

from .aggregator import DEFAULT_WINDOW_DAYS, aggregate
from .change_detector import ChangeDetector
from .event_parser import IcsEventParser
from .feed_fetcher import FeedFetcher
from .feed_store import FeedStore
from .models import EventOccurrence

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MINUTES = 1
REFRESH_EVENT = "refresh-events"

Listener = Callable[[str], Union[None, Awaitable[None]]]


class SchedulerState(str, Enum):
    """Lifecycle of a PollScheduler."""

    IDLE = "idle"
    POLLING = "polling"
    STOPPED = "stopped"


class PollScheduler:
    """Polls every feed in a FeedStore on a fixed interval.

    Each cycle fetches the feeds one after another, records the new metadata
    in the store and re-parses the feeds whose content changed. The latest
    occurrences of every feed are kept so that feeds answering "not modified"
    still contribute to ``events()``. When at least one feed changed during a
    cycle, every listener receives a single ``REFRESH_EVENT`` call.
    """

    def __init__(
        self,
        store: FeedStore,
        fetcher: FeedFetcher,
        detector: Optional[ChangeDetector] = None,
        parser: Optional[IcsEventParser] = None,
        interval_minutes: float = DEFAULT_INTERVAL_MINUTES,
        time_provider: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize poll scheduler.

        Args:
            store: Feed metadata keyed by URL; its URLs are the feeds polled
            fetcher: HTTP fetcher used for every feed
            detector: Change detector (default: ChangeDetector())
            parser: ICS parser (default: IcsEventParser())
            interval_minutes: Minutes between the end of one cycle and the next
            time_provider: Callable returning "now" for the display window

        Raises:
            ValueError: If interval_minutes is not positive
        """
        self.store = store
        self.fetcher = fetcher
        self.detector = detector or ChangeDetector()
        self.parser = parser or IcsEventParser()
        if interval_minutes <= 0:
            raise ValueError(f"interval_minutes must be positive, got {interval_minutes!r}")
        self.interval_seconds = float(interval_minutes) * 60
        self.time_provider = time_provider or datetime.now

        self._occurrences: dict[str, list[EventOccurrence]] = {}
        self._listeners: list[Listener] = []
        self._state = SchedulerState.IDLE
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def add_listener(self, listener: Listener) -> None:
        """Register a sync or async callable invoked with REFRESH_EVENT."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def occurrences(self, url: str) -> list[EventOccurrence]:
        """Latest parsed occurrences of one feed (empty before its first fetch)."""
        return list(self._occurrences.get(url, []))

    def events(
        self,
        window_start: Optional[Union[date, datetime]] = None,
        window_days: int = DEFAULT_WINDOW_DAYS,
    ) -> list[EventOccurrence]:
        """Aggregate the held occurrences of all configured feeds into the display window."""
        if window_start is None:
            window_start = self.time_provider()
        per_feed = [self._occurrences[url] for url in self.store.urls() if url in self._occurrences]
        return aggregate(per_feed, window_start, window_days)

    async def start(self) -> None:
        """Run one cycle immediately, then keep polling in a background task."""
        if self.is_running:
            logger.debug("Poll scheduler already running")
            return

        self._stop_event = asyncio.Event()
        self._state = SchedulerState.IDLE
        logger.info(
            "Starting poll scheduler for %d feeds (interval %gs)",
            len(self.store),
            self.interval_seconds,
        )

        await self._run_cycle_safely()
        if self._stop_event.is_set():
            return
        self._task = asyncio.create_task(self._poll_loop(self._stop_event))

    async def stop(self) -> None:
        """Stop polling. A cycle already in progress is allowed to finish."""
        if self._stop_event is not None:
            self._stop_event.set()

        task = self._task
        self._task = None
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                logger.debug("Poll loop task was cancelled")

        self._state = SchedulerState.STOPPED
        logger.info("Poll scheduler stopped")

    async def _poll_loop(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass
            logger.debug("Starting periodic poll cycle")
            await self._run_cycle_safely()

    async def _run_cycle_safely(self) -> None:
        try:
            await self.run_cycle()
        except Exception:
            logger.exception("Poll cycle failed")

    async def run_cycle(self) -> bool:
        """Poll every feed once and notify listeners if anything changed.

        Returns:
            True if at least one feed produced new occurrences
        """
        if self._state != SchedulerState.STOPPED:
            self._state = SchedulerState.POLLING

        changed_any = False
        urls = self.store.urls()
        for url in urls:
            try:
                if await self._poll_feed(url):
                    changed_any = True
            except Exception:
                logger.exception("Unexpected error while polling %s", url)

        # Forget occurrences of feeds removed from the store.
        for url in list(self._occurrences):
            if url not in self.store:
                del self._occurrences[url]

        self.store.save()

        if self._state == SchedulerState.POLLING:
            self._state = SchedulerState.IDLE

        logger.debug("Poll cycle finished for %d feeds (changed: %s)", len(urls), changed_any)

        if changed_any:
            await self._notify()
        return changed_any

    async def _poll_feed(self, url: str) -> bool:
        """Fetch, detect and (when needed) parse one feed.

        A feed with no held occurrences is fetched without validators so that
        a body is always available to parse.
        """
        feed = self.store.ensure(url)
        has_cached = url in self._occurrences

        result = await self.fetcher.fetch(url, feed if has_cached else None)
        changed, updated = self.detector.has_changed(result, feed)
        self.store.put(updated)

        if not result.success:
            logger.warning("Skipping feed %s this cycle: %s", url, result.reason)
            return False

        if (has_cached and not changed) or result.body is None:
            logger.debug("Feed %s unchanged", url)
            return False

        occurrences = self.parser.parse(result.body)
        self._occurrences[url] = occurrences
        logger.info("Feed %s refreshed: %d occurrences", url, len(occurrences))
        return True

    async def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                outcome = listener(REFRESH_EVENT)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Refresh listener %r failed", listener)
