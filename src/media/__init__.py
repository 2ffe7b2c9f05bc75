"""Media metadata module.

Resolves IMDb ids to a title and release year:
- TMDB (The Movie Database) as the primary source
- OMDb as the fallback

Both clients are async; the resolver queries them concurrently.
"""

from src.media.omdb import OMDBClient, OMDBError, OMDBResult
from src.media.resolver import MediaMetadata, MetadataResolver, metadata_cache_key
from src.media.tmdb import (
    MediaType,
    TMDBAuthError,
    TMDBClient,
    TMDBError,
    TMDBNotFoundError,
    TMDBRateLimitError,
    TMDBTitle,
)

__all__ = [
    # TMDB
    "TMDBClient",
    "TMDBError",
    "TMDBAuthError",
    "TMDBNotFoundError",
    "TMDBRateLimitError",
    "TMDBTitle",
    "MediaType",
    # OMDb
    "OMDBClient",
    "OMDBError",
    "OMDBResult",
    # Resolver
    "MediaMetadata",
    "MetadataResolver",
    "metadata_cache_key",
]
