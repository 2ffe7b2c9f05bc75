"""Tests for the public tracker list source and its refresh scheduler."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from src.cache import TTLCache
from src.search.trackers import (
    CACHE_KEY,
    PublicTrackerSource,
    TrackerRefreshScheduler,
    parse_tracker_list,
)

SAMPLE_LIST = """udp://tracker.opentrackr.org:1337/announce

udp://open.stealth.si:80/announce
# comment line
udp://tracker.opentrackr.org:1337/announce
  http://tracker.example.com:80/announce
"""

PARSED_LIST = [
    "udp://tracker.opentrackr.org:1337/announce",
    "udp://open.stealth.si:80/announce",
    "http://tracker.example.com:80/announce",
]


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestParseTrackerList:
    """Tests for parse_tracker_list."""

    def test_parse(self):
        """Blank lines, comments and duplicates are dropped."""
        assert parse_tracker_list(SAMPLE_LIST) == PARSED_LIST

    def test_empty_body(self):
        assert parse_tracker_list("") == []


class TestPublicTrackerSource:
    """Tests for PublicTrackerSource."""

    @pytest.mark.asyncio
    async def test_cold_start_downloads(self):
        """The first call waits for the download and caches it."""
        cache = TTLCache()
        source = PublicTrackerSource(cache, url="http://lists/trackers.txt", ttl=60)

        with patch.object(source, "_download", AsyncMock(return_value=SAMPLE_LIST)) as download:
            assert await source.get() == PARSED_LIST
            assert await source.get() == PARSED_LIST

            download.assert_awaited_once()
        assert cache.get(CACHE_KEY) == PARSED_LIST

    @pytest.mark.asyncio
    async def test_fetch_failure_returns_empty(self):
        """A failed first download yields an empty list."""
        source = PublicTrackerSource(TTLCache(), url="http://lists/trackers.txt")

        with patch.object(
            source, "_download", AsyncMock(side_effect=httpx.ConnectError("refused"))
        ):
            assert await source.get() == []

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_last_list(self):
        """A failed refresh keeps serving the previous list."""
        source = PublicTrackerSource(TTLCache(), url="http://lists/trackers.txt")

        with patch.object(source, "_download", AsyncMock(return_value=SAMPLE_LIST)):
            await source.refresh()
        with patch.object(
            source, "_download", AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        ):
            assert await source.refresh() == PARSED_LIST

    @pytest.mark.asyncio
    async def test_empty_download_not_cached(self):
        """An empty body does not replace anything."""
        cache = TTLCache()
        source = PublicTrackerSource(cache, url="http://lists/trackers.txt")

        with patch.object(source, "_download", AsyncMock(return_value="\n# nothing\n")):
            assert await source.refresh() == []
        assert cache.get(CACHE_KEY) is None

    @pytest.mark.asyncio
    async def test_stale_list_served_while_refreshing(self):
        """After expiry the stale list is returned and a refresh runs in the background."""
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        source = PublicTrackerSource(cache, url="http://lists/trackers.txt", ttl=60)

        with patch.object(source, "_download", AsyncMock(return_value=SAMPLE_LIST)):
            await source.get()

        clock.now += 61
        fresh_body = "udp://new.tracker:1337/announce\n"
        with patch.object(source, "_download", AsyncMock(return_value=fresh_body)):
            stale = await source.get()
            assert stale == PARSED_LIST

            await source._refresh_task

        assert await source.get() == ["udp://new.tracker:1337/announce"]

    @pytest.mark.asyncio
    async def test_download_uses_http(self):
        """_download fetches the body and checks the status."""
        source = PublicTrackerSource(TTLCache(), url="http://lists/trackers.txt")
        response = MagicMock(spec=httpx.Response)
        response.text = SAMPLE_LIST

        with patch("src.search.trackers.httpx.AsyncClient") as mock_client_cls:
            client = mock_client_cls.return_value
            client.__aenter__ = AsyncMock(return_value=client)
            client.__aexit__ = AsyncMock(return_value=None)
            client.get = AsyncMock(return_value=response)

            assert await source._download() == SAMPLE_LIST
            client.get.assert_awaited_once_with("http://lists/trackers.txt")
            response.raise_for_status.assert_called_once()


class FakeSource:
    """Tracker source stand-in with a real coroutine method."""

    def __init__(self):
        self.calls = 0

    async def refresh(self) -> list[str]:
        self.calls += 1
        return []


class TestTrackerRefreshScheduler:
    """Tests for TrackerRefreshScheduler."""

    @pytest.mark.asyncio
    async def test_start_stop(self):
        """Scheduler starts once and stops cleanly."""
        scheduler = TrackerRefreshScheduler(FakeSource(), interval_hours=6)

        scheduler.start()
        assert scheduler.is_running

        scheduler.start()
        assert scheduler.is_running

        scheduler.stop()
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_job_registered(self):
        """The refresh job uses the configured interval."""
        scheduler = TrackerRefreshScheduler(FakeSource(), interval_hours=3)

        scheduler.start()
        try:
            job = scheduler._scheduler.get_job("public_trackers_refresh")
            assert job is not None
            assert job.trigger.interval.total_seconds() == 3 * 3600
        finally:
            scheduler.stop()

    def test_stop_when_not_running(self):
        """Stopping an idle scheduler is a no-op."""
        scheduler = TrackerRefreshScheduler(FakeSource())
        scheduler.stop()
        assert not scheduler.is_running
