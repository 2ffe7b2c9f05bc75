"""Public BitTorrent tracker list.

Fetches a plain-text list of public announce URLs (one per line) and
keeps it behind its own TTL. Only the very first request of the process
waits for the download; afterwards stale data is served while a refresh
runs in the background, and a failed refresh keeps the last good list.

Usage:
    source = PublicTrackerSource(cache)
    scheduler = TrackerRefreshScheduler(source)
    scheduler.start()   # warm-up + periodic refresh

    trackers = await source.get()
"""

import asyncio
from datetime import UTC, datetime

import httpx
import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.cache import ResultCache
from src.config import settings

logger = structlog.get_logger(__name__)

CACHE_KEY = "public_trackers"

# Request timeout in seconds
REQUEST_TIMEOUT = 10.0


def parse_tracker_list(text: str) -> list[str]:
    """Parse a tracker list body.

    Args:
        text: Response body, one URL per line

    Returns:
        Unique announce URLs in file order, blank and ``#`` lines dropped
    """
    trackers: list[str] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line not in trackers:
            trackers.append(line)
    return trackers


class PublicTrackerSource:
    """Cached access to the public tracker list."""

    def __init__(
        self,
        cache: ResultCache,
        url: str | None = None,
        ttl: int | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        """Initialize tracker source.

        Args:
            cache: Shared TTL cache
            url: Tracker list URL. Uses settings.trackers_list_url if None.
            ttl: Cache TTL in seconds. Uses settings.trackers_cache_ttl if None.
            timeout: Download timeout in seconds
        """
        self._cache = cache
        self._url = url or settings.trackers_list_url
        self._ttl = settings.trackers_cache_ttl if ttl is None else ttl
        self._timeout = timeout
        self._last_known: list[str] = []
        self._refresh_task: asyncio.Task[list[str]] | None = None

    async def get(self) -> list[str]:
        """Get public trackers, possibly empty.

        Returns:
            Tracker announce URLs
        """
        cached = self._cache.get(CACHE_KEY)
        if cached is not None:
            return cached

        if self._last_known:
            # Expired: serve the stale list, refresh without waiting
            self._schedule_refresh()
            return self._last_known

        return await self.refresh()

    async def refresh(self) -> list[str]:
        """Download the list now.

        Returns:
            Fresh list, or the last good list if the download failed
        """
        try:
            text = await self._download()
        except httpx.HTTPError as e:
            logger.error("trackers_fetch_failed", url=self._url, error=str(e))
            return self._last_known

        trackers = parse_tracker_list(text)
        if not trackers:
            logger.warning("trackers_list_empty", url=self._url)
            return self._last_known

        self._last_known = trackers
        self._cache.set(CACHE_KEY, trackers, self._ttl)
        logger.info("trackers_fetched", count=len(trackers))
        return trackers

    async def _download(self) -> str:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(self._url)
            response.raise_for_status()
            return response.text

    def _schedule_refresh(self) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        self._refresh_task = asyncio.create_task(self.refresh())


class TrackerRefreshScheduler:
    """Keeps the tracker list warm using APScheduler.

    The first run fires immediately so the list is usually loaded before
    the first stream request arrives.
    """

    def __init__(
        self,
        source: PublicTrackerSource,
        interval_hours: int | None = None,
    ):
        self._source = source
        self._interval_hours = interval_hours or settings.trackers_refresh_hours
        self._scheduler: AsyncIOScheduler | None = None
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        """Start periodic refreshes. Must be called with a running event loop."""
        if self._is_running:
            logger.warning("tracker_scheduler_already_running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._source.refresh,
            trigger=IntervalTrigger(hours=self._interval_hours),
            id="public_trackers_refresh",
            name="Public Trackers Refresh",
            replace_existing=True,
            max_instances=1,
            next_run_time=datetime.now(UTC),
        )
        self._scheduler.start()
        self._is_running = True

        logger.info("tracker_scheduler_started", interval_hours=self._interval_hours)

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler and self._is_running:
            self._scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("tracker_scheduler_stopped")
