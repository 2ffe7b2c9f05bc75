"""Title and year resolution for IMDb ids.

TMDB and OMDb are queried concurrently; TMDB wins when it returns a
title, OMDb fills in otherwise. Either source failing (or being
unconfigured) only removes its contribution.
"""

import asyncio

import structlog
from pydantic import BaseModel

from src.cache import ResultCache
from src.config import settings
from src.media.omdb import OMDBClient, OMDBError, OMDBResult
from src.media.tmdb import MediaType, TMDBClient, TMDBError, TMDBTitle

logger = structlog.get_logger(__name__)


class MediaMetadata(BaseModel):
    """Title and year used for searching and display."""

    title: str
    year: int | None = None
    source: str = ""


def metadata_cache_key(media_type: str, media_id: str) -> str:
    return f"combined_meta_{media_type}_{media_id}"


class MetadataResolver:
    """Resolves an IMDb id to a title and year.

    Example:
        resolver = MetadataResolver(cache)
        metadata = await resolver.resolve("tt1160419", "movie")
    """

    def __init__(
        self,
        cache: ResultCache,
        tmdb_api_key: str | None = None,
        omdb_api_key: str | None = None,
        ttl: int | None = None,
    ):
        """Initialize resolver.

        Args:
            cache: Shared TTL cache
            tmdb_api_key: TMDB key. Uses settings.tmdb_api_key if None.
            omdb_api_key: OMDb key. Uses settings.omdb_api_key if None.
            ttl: Cache TTL in seconds. Uses settings.metadata_cache_ttl if None.
        """
        if tmdb_api_key is None and settings.has_tmdb:
            tmdb_api_key = settings.tmdb_api_key.get_secret_value()
        if omdb_api_key is None and settings.has_omdb:
            omdb_api_key = settings.omdb_api_key.get_secret_value()

        self._cache = cache
        self._tmdb_api_key = tmdb_api_key or None
        self._omdb_api_key = omdb_api_key or None
        self._ttl = settings.metadata_cache_ttl if ttl is None else ttl

    async def resolve(self, media_id: str, media_type: str) -> MediaMetadata | None:
        """Resolve title and year.

        Args:
            media_id: IMDb id (e.g., "tt0903747")
            media_type: Stremio type ("movie" or "series")

        Returns:
            MediaMetadata, or None if no source knows the title
        """
        cache_key = metadata_cache_key(media_type, media_id)
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("metadata_cache_hit", media_id=media_id)
            return cached

        tmdb_result, omdb_result = await asyncio.gather(
            self._fetch_tmdb(media_id, media_type),
            self._fetch_omdb(media_id),
            return_exceptions=True,
        )

        for source, result in (("tmdb", tmdb_result), ("omdb", omdb_result)):
            if isinstance(result, BaseException):
                logger.warning(
                    "metadata_source_failed",
                    source=source,
                    media_id=media_id,
                    error=str(result),
                )

        metadata = self._combine(tmdb_result, omdb_result)
        if metadata is None:
            logger.warning("metadata_not_found", media_id=media_id, media_type=media_type)
            return None

        self._cache.set(cache_key, metadata, self._ttl)
        logger.info(
            "metadata_resolved",
            media_id=media_id,
            title=metadata.title,
            year=metadata.year,
            source=metadata.source,
        )
        return metadata

    @staticmethod
    def _combine(
        tmdb_result: TMDBTitle | BaseException | None,
        omdb_result: OMDBResult | BaseException | None,
    ) -> MediaMetadata | None:
        if isinstance(tmdb_result, TMDBTitle) and tmdb_result.title:
            return MediaMetadata(
                title=tmdb_result.title,
                year=tmdb_result.get_year(),
                source="tmdb",
            )
        if isinstance(omdb_result, OMDBResult) and omdb_result.title:
            return MediaMetadata(
                title=omdb_result.title,
                year=omdb_result.get_year(),
                source="omdb",
            )
        return None

    async def _fetch_tmdb(self, media_id: str, media_type: str) -> TMDBTitle | None:
        tmdb_type = MediaType.from_stremio(media_type)
        if not self._tmdb_api_key or tmdb_type is None:
            return None
        try:
            async with TMDBClient(api_key=self._tmdb_api_key) as client:
                return await client.find_by_imdb_id(media_id, tmdb_type)
        except TMDBError as e:
            logger.info("tmdb_lookup_failed", media_id=media_id, error=str(e))
            return None

    async def _fetch_omdb(self, media_id: str) -> OMDBResult | None:
        if not self._omdb_api_key:
            return None
        try:
            async with OMDBClient(api_key=self._omdb_api_key) as client:
                return await client.search_by_imdb_id(media_id)
        except OMDBError as e:
            logger.info("omdb_lookup_failed", media_id=media_id, error=str(e))
            return None
