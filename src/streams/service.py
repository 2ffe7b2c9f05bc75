"""Stream lookup service.

Entry point for stream requests: resolves the title, searches BitMagnet,
ranks the hits and attaches peer-discovery sources to the survivors.

Usage:
    service = create_stream_service()
    response = await service.get_streams("series", "tt0903747:1:2")
    # {"streams": [{"infoHash": ..., "name": "Bitmagnet-1080p", ...}]}

The public methods never raise. Any failure is logged and answered with
an empty stream list.
"""

from dataclasses import dataclass
from typing import Any, Protocol

from src.cache import ResultCache, TTLCache
from src.config import settings
from src.logger import get_logger
from src.media.resolver import MediaMetadata, MetadataResolver
from src.ranking.models import Candidate
from src.ranking.pipeline import RankingPipeline, default_sort_policy
from src.ranking.quality import QualityClassifier
from src.ranking.trackers import TrackerReconciler
from src.search.bitmagnet import BitMagnetError, BitMagnetSearch
from src.search.trackers import PublicTrackerSource
from src.streams.formatting import build_output_stream

logger = get_logger(__name__)

SUPPORTED_TYPES = ("movie", "series")


# =============================================================================
# Collaborator interfaces
# =============================================================================


class CandidateSearch(Protocol):
    async def search(
        self,
        query: str,
        content_type: str | None = None,
        release_year: int | None = None,
    ) -> list[Candidate]: ...


class TrackerSource(Protocol):
    async def get(self) -> list[str]: ...


class MetadataSource(Protocol):
    async def resolve(self, media_id: str, media_type: str) -> MediaMetadata | None: ...


# =============================================================================
# Request parsing
# =============================================================================


@dataclass(frozen=True)
class StreamRequest:
    """A parsed stream id."""

    media_id: str
    content_type: str
    season: int | None = None
    episode: int | None = None

    @property
    def cache_key(self) -> str:
        if self.season is None or self.episode is None:
            return stream_cache_key(self.content_type, self.media_id)
        return stream_cache_key(
            self.content_type, f"{self.media_id}:{self.season}:{self.episode}"
        )


def stream_cache_key(content_type: str, stream_id: str) -> str:
    return f"bitmagnet_streams_{content_type}_{stream_id}"


def parse_stream_id(content_type: str, stream_id: str) -> StreamRequest | None:
    """Parse a stream id.

    Movies use the bare IMDb id; series ids must read
    ``<imdb id>:<season>:<episode>``.

    Returns:
        StreamRequest, or None for malformed ids and unsupported types
    """
    if content_type not in SUPPORTED_TYPES or not stream_id:
        return None

    if content_type == "movie":
        media_id = stream_id.split(":", 1)[0]
        return StreamRequest(media_id=media_id, content_type=content_type) if media_id else None

    parts = stream_id.split(":")
    if len(parts) != 3 or not parts[0]:
        return None
    try:
        season, episode = int(parts[1]), int(parts[2])
    except ValueError:
        return None
    if season < 0 or episode < 0:
        return None
    return StreamRequest(parts[0], content_type, season, episode)


# =============================================================================
# Service
# =============================================================================


class StreamService:
    """Builds ranked stream lists for movies and episodes."""

    def __init__(
        self,
        resolver: MetadataSource,
        search: CandidateSearch,
        tracker_source: TrackerSource,
        cache: ResultCache,
        pipeline: RankingPipeline | None = None,
        reconciler: TrackerReconciler | None = None,
        cache_ttl: int | None = None,
    ):
        """Initialize the service.

        Args:
            resolver: Title/year lookup
            search: Torrent candidate search
            tracker_source: Public tracker list
            cache: Shared TTL cache for finished stream lists
            pipeline: Ranking pipeline (default RankingPipeline())
            reconciler: Source builder (default TrackerReconciler())
            cache_ttl: Stream list TTL. Uses settings.stream_cache_ttl if None.
        """
        self.resolver = resolver
        self.search = search
        self.tracker_source = tracker_source
        self.cache = cache
        self.pipeline = pipeline or RankingPipeline()
        self.reconciler = reconciler or TrackerReconciler()
        self.cache_ttl = settings.stream_cache_ttl if cache_ttl is None else cache_ttl

    async def get_streams(self, content_type: str, stream_id: str) -> dict[str, list[dict[str, Any]]]:
        """Answer a stream request by raw id.

        Args:
            content_type: "movie" or "series"
            stream_id: IMDb id, with ``:season:episode`` for series

        Returns:
            ``{"streams": [...]}``, empty for malformed ids or on failure
        """
        request = parse_stream_id(content_type, stream_id)
        if request is None:
            logger.warning("invalid_stream_id", content_type=content_type, stream_id=stream_id)
            return {"streams": []}
        return await self.rank(request.media_id, request.content_type, request.season, request.episode)

    async def rank(
        self,
        media_id: str,
        content_type: str,
        season: int | None = None,
        episode: int | None = None,
    ) -> dict[str, list[dict[str, Any]]]:
        """Ranked streams for a movie or an episode.

        Args:
            media_id: IMDb id
            content_type: "movie" or "series"
            season: Season number (series only)
            episode: Episode number (series only)

        Returns:
            ``{"streams": [...]}``
        """
        request = StreamRequest(media_id, content_type, season, episode)
        if content_type == "series" and (season is None or episode is None):
            logger.warning("series_request_without_episode", media_id=media_id)
            return {"streams": []}

        cached = self.cache.get(request.cache_key)
        if cached is not None:
            logger.info("streams_cache_hit", key=request.cache_key, count=len(cached))
            return {"streams": list(cached)}

        try:
            streams = await self._build_streams(request)
        except Exception as e:
            logger.exception("stream_lookup_failed", media_id=media_id, error=str(e))
            return {"streams": []}

        if streams:
            self.cache.set(request.cache_key, list(streams), self.cache_ttl)
        return {"streams": streams}

    async def _build_streams(self, request: StreamRequest) -> list[dict[str, Any]]:
        metadata = await self.resolver.resolve(request.media_id, request.content_type)
        candidates = await self._search_candidates(request, metadata)

        ranked = self.pipeline.run(
            candidates,
            series=request.content_type == "series",
            season=request.season,
            episode=request.episode,
        )
        if not ranked:
            logger.info("no_streams_found", media_id=request.media_id, searched=len(candidates))
            return []

        public_trackers = await self.tracker_source.get()

        streams = []
        for candidate in ranked:
            sources = self.reconciler.build(candidate, public_trackers)
            stream = build_output_stream(
                candidate,
                metadata,
                request.media_id,
                request.content_type,
                sources,
                season=request.season,
                episode=request.episode,
            )
            streams.append(stream.to_stremio_dict())

        logger.info(
            "streams_ranked",
            media_id=request.media_id,
            season=request.season,
            episode=request.episode,
            candidates=len(candidates),
            streams=len(streams),
        )
        return streams

    async def _search_candidates(
        self,
        request: StreamRequest,
        metadata: MediaMetadata | None,
    ) -> list[Candidate]:
        """Broad ``title year`` query first, then title plus a year facet."""
        if metadata is None:
            return await self._safe_search(request.media_id, request.content_type)

        broad_query = f"{metadata.title} {metadata.year}" if metadata.year else metadata.title
        candidates = await self._safe_search(broad_query, request.content_type)

        if not candidates and metadata.year:
            logger.info("retrying_search_with_year_facet", title=metadata.title, year=metadata.year)
            candidates = await self._safe_search(
                metadata.title, request.content_type, release_year=metadata.year
            )

        return candidates

    async def _safe_search(
        self,
        query: str,
        content_type: str,
        release_year: int | None = None,
    ) -> list[Candidate]:
        try:
            return await self.search.search(query, content_type=content_type, release_year=release_year)
        except BitMagnetError as e:
            logger.error("bitmagnet_search_failed", query=query, error=str(e))
            return []


def create_stream_service(
    cache: ResultCache | None = None,
    max_streams: int | None = None,
    max_size_gb: float | None = None,
) -> StreamService:
    """Wire a StreamService from settings.

    Args:
        cache: Shared cache. A fresh TTLCache if None.
        max_streams: Overrides settings.max_streams_per_item
        max_size_gb: Overrides settings.max_size_gb

    Returns:
        Ready StreamService
    """
    cache = cache if cache is not None else TTLCache()
    classifier = QualityClassifier()
    pipeline = RankingPipeline(
        classifier=classifier,
        sort_policy=default_sort_policy(classifier, settings.preferred_languages),
        max_streams=settings.max_streams_per_item if max_streams is None else max_streams,
        max_size_gb=settings.max_size_gb if max_size_gb is None else max_size_gb,
    )
    return StreamService(
        resolver=MetadataResolver(cache),
        search=BitMagnetSearch(),
        tracker_source=PublicTrackerSource(cache),
        cache=cache,
        pipeline=pipeline,
    )
