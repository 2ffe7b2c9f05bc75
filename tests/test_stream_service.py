"""Tests for the stream lookup service."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.cache import TTLCache
from src.media.resolver import MediaMetadata
from src.ranking.models import BYTES_PER_GIB, Candidate
from src.ranking.pipeline import RankingPipeline
from src.search.bitmagnet import BitMagnetError, BitMagnetUnavailableError
from src.streams.service import (
    StreamRequest,
    StreamService,
    create_stream_service,
    parse_stream_id,
    stream_cache_key,
)

# =============================================================================
# Helpers
# =============================================================================


def make_candidate(info_hash: str, name: str, seeders: int = 10, **extra) -> Candidate:
    data = {
        "infoHash": info_hash,
        "contentType": extra.pop("contentType", "movie"),
        "videoResolution": extra.pop("videoResolution", "1080p"),
        "seeders": seeders,
        "torrent": {
            "name": name,
            "size": 2 * BYTES_PER_GIB,
            "magnetUri": f"magnet:?xt=urn:btih:{info_hash}&tr=udp://embedded:1337",
        },
    }
    data.update(extra)
    return Candidate.model_validate(data)


def make_service(
    candidates=None,
    metadata=MediaMetadata(title="Dune", year=2021, source="tmdb"),
    trackers=None,
    cache=None,
    search_side_effect=None,
    pipeline=None,
):
    resolver = MagicMock()
    resolver.resolve = AsyncMock(return_value=metadata)

    search = MagicMock()
    if search_side_effect is not None:
        search.search = AsyncMock(side_effect=search_side_effect)
    else:
        search.search = AsyncMock(return_value=candidates or [])

    tracker_source = MagicMock()
    tracker_source.get = AsyncMock(return_value=trackers or ["udp://public:80"])

    service = StreamService(
        resolver=resolver,
        search=search,
        tracker_source=tracker_source,
        cache=cache if cache is not None else TTLCache(),
        pipeline=pipeline,
        cache_ttl=900,
    )
    return service


# =============================================================================
# Stream id parsing
# =============================================================================


class TestParseStreamId:
    """Tests for parse_stream_id."""

    def test_movie(self):
        assert parse_stream_id("movie", "tt1160419") == StreamRequest("tt1160419", "movie")

    def test_series(self):
        request = parse_stream_id("series", "tt0903747:1:2")
        assert request == StreamRequest("tt0903747", "series", 1, 2)

    @pytest.mark.parametrize(
        "stream_id",
        ["tt123", "tt123:1", "tt123:1:2:3", "tt123:a:2", ":1:2", ""],
    )
    def test_malformed_series(self, stream_id):
        assert parse_stream_id("series", stream_id) is None

    def test_unsupported_type(self):
        assert parse_stream_id("channel", "tt123") is None

    def test_cache_keys(self):
        """Cache keys include season and episode for series."""
        assert StreamRequest("tt1", "movie").cache_key == stream_cache_key("movie", "tt1")
        assert StreamRequest("tt2", "series", 1, 2).cache_key == "bitmagnet_streams_series_tt2:1:2"


# =============================================================================
# Service
# =============================================================================


class TestStreamService:
    """Tests for StreamService."""

    @pytest.mark.asyncio
    async def test_malformed_series_id(self):
        """A series id without season/episode gives no streams."""
        service = make_service()

        assert await service.get_streams("series", "tt123") == {"streams": []}
        service.search.search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_movie_streams(self):
        """Ranked candidates become Stremio stream dicts."""
        candidates = [
            make_candidate("aaa", "Dune.2021.1080p.mkv", seeders=5),
            make_candidate("bbb", "Dune.2021.2160p.mkv", seeders=50, videoResolution="2160p"),
        ]
        service = make_service(candidates=candidates)

        response = await service.get_streams("movie", "tt1160419")
        streams = response["streams"]

        assert [s["infoHash"] for s in streams] == ["bbb", "aaa"]
        first = streams[0]
        assert first["name"] == "Bitmagnet-2160p"
        assert first["title"] == "Dune (2021)"
        assert first["behaviorHints"] == {"bittorrent": True}
        assert set(first["sources"]) == {
            "tracker:udp://embedded:1337",
            "tracker:udp://public:80",
            "dht:bbb",
        }
        service.search.search.assert_awaited_once_with(
            "Dune 2021", content_type="movie", release_year=None
        )

    @pytest.mark.asyncio
    async def test_year_facet_fallback(self):
        """An empty broad search retries with the title and a year facet."""
        candidate = make_candidate("aaa", "Dune.1080p.mkv")
        service = make_service(search_side_effect=[[], [candidate]])

        response = await service.get_streams("movie", "tt1160419")

        assert len(response["streams"]) == 1
        second_call = service.search.search.await_args_list[1]
        assert second_call.args == ("Dune",)
        assert second_call.kwargs == {"content_type": "movie", "release_year": 2021}

    @pytest.mark.asyncio
    async def test_no_metadata_searches_by_id(self):
        """Without metadata the IMDb id is the query."""
        service = make_service(metadata=None)

        await service.get_streams("movie", "tt1160419")

        service.search.search.assert_awaited_once_with(
            "tt1160419", content_type="movie", release_year=None
        )

    @pytest.mark.asyncio
    async def test_search_failure_gives_empty(self):
        """Search backend errors give an empty stream list."""
        service = make_service(search_side_effect=BitMagnetUnavailableError("down"))

        assert await service.get_streams("movie", "tt1160419") == {"streams": []}

    @pytest.mark.asyncio
    async def test_unexpected_error_gives_empty(self):
        """The public entry point never raises."""
        service = make_service()
        service.resolver.resolve = AsyncMock(side_effect=RuntimeError("boom"))

        assert await service.get_streams("movie", "tt1160419") == {"streams": []}

    @pytest.mark.asyncio
    async def test_episode_filter_applied(self):
        """Series requests keep only candidates covering the episode."""
        candidates = [
            make_candidate("e2", "Show.S01E02.1080p", seeders=5, contentType="tv_show"),
            make_candidate("e3", "Show.S01E03.1080p", seeders=500, contentType="tv_show"),
            make_candidate("pack", "Show.S01.Complete.1080p", seeders=50, contentType="tv_show"),
        ]
        service = make_service(
            candidates=candidates,
            metadata=MediaMetadata(title="Show", year=2010),
        )

        response = await service.get_streams("series", "tt0000001:1:2")

        assert [s["infoHash"] for s in response["streams"]] == ["pack", "e2"]
        assert response["streams"][0]["title"] == "S01E02 Show"

    @pytest.mark.asyncio
    async def test_results_cached(self):
        """A second request is served from the cache."""
        cache = TTLCache()
        service = make_service(candidates=[make_candidate("aaa", "Dune.mkv")], cache=cache)

        first = await service.get_streams("movie", "tt1160419")
        second = await service.get_streams("movie", "tt1160419")

        assert first == second
        assert cache.get(stream_cache_key("movie", "tt1160419")) == first["streams"]
        service.search.search.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cached_list_not_shared(self):
        """Mutating a cached response leaves the cache entry intact."""
        cache = TTLCache()
        service = make_service(candidates=[make_candidate("aaa", "Dune.mkv")], cache=cache)

        miss = await service.get_streams("movie", "tt1160419")
        miss["streams"].clear()
        hit = await service.get_streams("movie", "tt1160419")
        hit["streams"].clear()

        assert len(cache.get(stream_cache_key("movie", "tt1160419"))) == 1
        assert len((await service.get_streams("movie", "tt1160419"))["streams"]) == 1

    @pytest.mark.asyncio
    async def test_empty_results_not_cached(self):
        """Empty answers are retried on the next request."""
        cache = TTLCache()
        service = make_service(candidates=[], cache=cache)

        await service.get_streams("movie", "tt1160419")

        assert cache.get(stream_cache_key("movie", "tt1160419")) is None

    @pytest.mark.asyncio
    async def test_truncation(self):
        """Fifteen candidates give the ten best seeded streams."""
        candidates = [make_candidate(f"h{i:02d}", f"Dune.{i}.mkv", seeders=i) for i in range(15)]
        service = make_service(candidates=candidates)

        streams = (await service.get_streams("movie", "tt1160419"))["streams"]

        assert len(streams) == 10
        assert [s["seeders"] for s in streams] == list(range(14, 4, -1))

    @pytest.mark.asyncio
    async def test_custom_pipeline(self):
        """The injected pipeline's limit applies."""
        candidates = [make_candidate(f"h{i}", f"Dune.{i}.mkv") for i in range(5)]
        service = make_service(candidates=candidates, pipeline=RankingPipeline(max_streams=2))

        streams = (await service.get_streams("movie", "tt1160419"))["streams"]

        assert len(streams) == 2

    @pytest.mark.asyncio
    async def test_rank_series_without_episode(self):
        """rank() for a series needs season and episode."""
        service = make_service()
        assert await service.rank("tt0903747", "series") == {"streams": []}

    @pytest.mark.asyncio
    async def test_bitmagnet_error_on_both_strategies(self):
        """Both search strategies failing is still an empty answer."""
        service = make_service(search_side_effect=BitMagnetError("bad query"))

        assert await service.get_streams("movie", "tt1160419") == {"streams": []}
        assert service.search.search.await_count == 2


class TestCreateStreamService:
    """Tests for create_stream_service."""

    def test_overrides(self):
        """Explicit limits override settings."""
        service = create_stream_service(TTLCache(), max_streams=3, max_size_gb=15)

        assert service.pipeline.max_streams == 3
        assert service.pipeline.max_size_gb == 15

    def test_shared_cache(self):
        """All components share the given cache."""
        cache = TTLCache()
        service = create_stream_service(cache)

        assert service.cache is cache
        assert service.tracker_source._cache is cache
        assert service.resolver._cache is cache
