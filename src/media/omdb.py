"""OMDB API client for title lookups by IMDb id.

OMDB (Open Movie Database) is used as the fallback metadata source when
TMDB has no answer. Get a free key at http://www.omdbapi.com/apikey.aspx
"""

import re

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.config import settings

logger = structlog.get_logger(__name__)

OMDB_API_BASE = "http://www.omdbapi.com/"

# OMDB's placeholder for missing values
NOT_AVAILABLE = "N/A"

_YEAR = re.compile(r"\d{4}")


class OMDBResult(BaseModel):
    """OMDB API response."""

    title: str = Field("", alias="Title")
    year: str | None = Field(None, alias="Year")  # "2021" or "2008–2013"
    released: str | None = Field(None, alias="Released")  # "22 Oct 2021"
    imdb_id: str | None = Field(None, alias="imdbID")
    type: str | None = Field(None, alias="Type")
    total_seasons: str | None = Field(None, alias="totalSeasons")
    response: str = Field(alias="Response")  # "True" or "False"
    error: str | None = Field(None, alias="Error")

    model_config = ConfigDict(populate_by_name=True)

    def get_year(self) -> int | None:
        """Year from ``Released``, else the first four digits of ``Year``."""
        for value in (self.released, self.year):
            if not value or value == NOT_AVAILABLE:
                continue
            match = _YEAR.search(value)
            if match:
                return int(match.group(0))
        return None


class OMDBError(Exception):
    """OMDB API error."""

    pass


class OMDBClient:
    """Async client for OMDB API.

    Usage:
        async with OMDBClient() as client:
            result = await client.search_by_imdb_id("tt1160419")
    """

    def __init__(self, api_key: str | None = None, timeout: float = 10.0):
        """Initialize OMDB client.

        Args:
            api_key: OMDB API key. Uses settings.omdb_api_key if None.
            timeout: Request timeout in seconds
        """
        if api_key is None and settings.omdb_api_key is not None:
            api_key = settings.omdb_api_key.get_secret_value()
        if not api_key:
            raise OMDBError("OMDB API key is not configured")

        self.api_key = api_key
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "OMDBClient":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, _exc_type, _exc_val, _exc_tb) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get HTTP client, raise if not in context manager."""
        if not self._client:
            raise OMDBError("OMDBClient must be used as async context manager")
        return self._client

    async def search_by_imdb_id(self, imdb_id: str) -> OMDBResult:
        """Look up a title by IMDB ID.

        Args:
            imdb_id: IMDB ID (e.g., "tt1160419")

        Returns:
            OMDBResult

        Raises:
            OMDBError: If the title is not found or on API error
        """
        params = {
            "apikey": self.api_key,
            "i": imdb_id,
        }

        logger.info("omdb_search_by_imdb_id", imdb_id=imdb_id)

        try:
            response = await self.client.get(OMDB_API_BASE, params=params)
            response.raise_for_status()
            result = OMDBResult(**response.json())
        except httpx.HTTPStatusError as e:
            logger.error("omdb_http_error", status=e.response.status_code, error=str(e))
            raise OMDBError(f"HTTP error: {e}") from e
        except httpx.RequestError as e:
            logger.error("omdb_request_error", error=str(e))
            raise OMDBError(f"Request failed: {e}") from e
        except (ValueError, ValidationError) as e:
            logger.error("omdb_invalid_response", error=str(e))
            raise OMDBError(f"Invalid response: {e}") from e

        if result.response == "False":
            logger.warning("omdb_title_not_found", imdb_id=imdb_id, error=result.error)
            raise OMDBError(result.error or "Title not found")

        logger.info("omdb_search_success", title=result.title, year=result.get_year())
        return result
