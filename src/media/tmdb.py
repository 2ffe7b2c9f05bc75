"""TMDB (The Movie Database) API client.

Resolves an IMDb id to a TMDB movie or TV show: ``/find/{imdb_id}`` first,
then the details endpoint for the matched id. Only the fields needed to
build a search query and a display title are kept.

API Documentation: https://developers.themoviedb.org/3
"""

from enum import Enum
from typing import Any

import httpx
import structlog
from pydantic import BaseModel

from src.config import settings

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

TMDB_BASE_URL = "https://api.themoviedb.org/3"

# Request timeout in seconds
REQUEST_TIMEOUT = 10.0

# Default language for requests
DEFAULT_LANGUAGE = "en-US"

USER_AGENT = "Stremio-BitMagnet-Addon/1.0"


# =============================================================================
# Enums
# =============================================================================


class MediaType(str, Enum):
    """Type of media content."""

    MOVIE = "movie"
    TV = "tv"

    @classmethod
    def from_stremio(cls, content_type: str) -> "MediaType | None":
        """Map a Stremio type ("movie"/"series") to a TMDB media type."""
        return {"movie": cls.MOVIE, "series": cls.TV}.get(content_type)


# =============================================================================
# Exceptions
# =============================================================================


class TMDBError(Exception):
    """Base exception for TMDB API errors."""

    pass


class TMDBNotFoundError(TMDBError):
    """Raised when requested resource is not found."""

    pass


class TMDBRateLimitError(TMDBError):
    """Raised when rate limit is exceeded."""

    def __init__(self, retry_after: int = 1):
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded. Retry after {retry_after} seconds")


class TMDBAuthError(TMDBError):
    """Raised when API key is invalid."""

    pass


# =============================================================================
# Data Models
# =============================================================================


class TMDBTitle(BaseModel):
    """Movie or TV show details from TMDB."""

    id: int
    media_type: MediaType
    title: str
    original_title: str = ""
    release_date: str = ""  # release_date for movies, first_air_date for TV
    imdb_id: str | None = None

    def get_year(self) -> int | None:
        """Extract year from release date.

        Returns:
            Year as integer or None if no release date
        """
        if self.release_date and len(self.release_date) >= 4:
            try:
                return int(self.release_date[:4])
            except ValueError:
                return None
        return None


# =============================================================================
# TMDB Client
# =============================================================================


class TMDBClient:
    """Async client for TMDB API.

    Example:
        async with TMDBClient() as client:
            title = await client.find_by_imdb_id("tt1375666", MediaType.MOVIE)
            print(title.title, title.get_year())
    """

    def __init__(
        self,
        api_key: str | None = None,
        language: str = DEFAULT_LANGUAGE,
        timeout: float = REQUEST_TIMEOUT,
    ):
        """Initialize TMDB client.

        Args:
            api_key: TMDB API key. Uses settings.tmdb_api_key if None.
            language: Language for API responses (default: en-US)
            timeout: Request timeout in seconds
        """
        if api_key is None and settings.tmdb_api_key is not None:
            api_key = settings.tmdb_api_key.get_secret_value()
        if not api_key:
            raise TMDBAuthError("TMDB API key is not configured")

        self._api_key = api_key
        self._language = language
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "TMDBClient":
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            headers={"User-Agent": USER_AGENT},
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, ensuring it's initialized.

        Raises:
            RuntimeError: If client is not initialized (not in context manager).
        """
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        return self._client

    async def _request(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make a request to TMDB API.

        Args:
            endpoint: API endpoint (e.g., "/find/tt1375666")
            params: Additional query parameters

        Returns:
            JSON response as dictionary

        Raises:
            TMDBNotFoundError: Resource not found (404)
            TMDBRateLimitError: Rate limit exceeded (429)
            TMDBAuthError: Invalid API key (401)
            TMDBError: Other API errors
        """
        full_params = {
            "api_key": self._api_key,
            "language": self._language,
        }
        if params:
            full_params.update(params)

        url = f"{TMDB_BASE_URL}{endpoint}"
        logger.debug("tmdb_request", endpoint=endpoint, params=params)

        try:
            response = await self.client.get(url, params=full_params)
        except httpx.TimeoutException as e:
            logger.warning("tmdb_timeout", endpoint=endpoint)
            raise TMDBError(f"Request timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.warning("tmdb_http_error", endpoint=endpoint, error=str(e))
            raise TMDBError(f"HTTP error: {e}") from e

        if response.status_code == 200:
            try:
                return response.json()
            except ValueError as e:
                raise TMDBError(f"Invalid JSON from TMDB: {e}") from e

        if response.status_code == 401:
            raise TMDBAuthError("Invalid TMDB API key")
        if response.status_code == 404:
            raise TMDBNotFoundError(f"Resource not found: {endpoint}")
        if response.status_code == 429:
            retry_after = int(response.headers.get("Retry-After", 1))
            raise TMDBRateLimitError(retry_after)

        error_msg = response.text[:200] if response.text else "Unknown error"
        raise TMDBError(f"TMDB API error {response.status_code}: {error_msg}")

    async def find_by_imdb_id(self, imdb_id: str, media_type: MediaType) -> TMDBTitle:
        """Find a movie or TV show by IMDb id and fetch its details.

        Args:
            imdb_id: IMDb id (e.g., "tt1375666")
            media_type: Which result list to look in

        Returns:
            TMDBTitle with title and release date

        Raises:
            TMDBNotFoundError: No result of the requested type
            TMDBError: On API errors
        """
        data = await self._request(f"/find/{imdb_id}", {"external_source": "imdb_id"})

        results_key = "movie_results" if media_type == MediaType.MOVIE else "tv_results"
        results = data.get(results_key) or []
        if not results:
            logger.info("tmdb_find_no_results", imdb_id=imdb_id, media_type=media_type.value)
            raise TMDBNotFoundError(f"No {media_type.value} found for {imdb_id}")

        tmdb_id = results[0]["id"]
        details = await self._request(f"/{media_type.value}/{tmdb_id}")
        merged = {**results[0], **details}

        if media_type == MediaType.MOVIE:
            title = TMDBTitle(
                id=merged["id"],
                media_type=media_type,
                title=merged.get("title") or "",
                original_title=merged.get("original_title") or "",
                release_date=merged.get("release_date") or "",
                imdb_id=merged.get("imdb_id") or imdb_id,
            )
        else:
            title = TMDBTitle(
                id=merged["id"],
                media_type=media_type,
                title=merged.get("name") or "",
                original_title=merged.get("original_name") or "",
                release_date=merged.get("first_air_date") or "",
                imdb_id=imdb_id,
            )

        logger.info("tmdb_find_by_imdb_id", imdb_id=imdb_id, tmdb_id=title.id, title=title.title)
        return title
