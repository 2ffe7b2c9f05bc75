"""BitMagnet torrent search client.

Queries a BitMagnet instance's GraphQL API for torrent content matching a
title. BitMagnet classifies each torrent (resolution, codec, source,
season/episodes) on its side; those classifications come back as
``Candidate`` models for the ranking pipeline.
"""

import re
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from src.config import settings
from src.ranking.models import Candidate

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

USER_AGENT = "Stremio-BitMagnet-Addon/1.0"

# Request timeout in seconds
REQUEST_TIMEOUT = 15.0

# Stremio type -> BitMagnet content type facet
CONTENT_TYPES = {
    "movie": "movie",
    "series": "tv_show",
}

SEARCH_QUERY = """
fragment TorrentContentFields on TorrentContent {
  id
  infoHash
  contentType
  title
  languages {
    id
    name
  }
  episodes {
    label
    seasons {
      season
      episodes
    }
  }
  video3d
  videoCodec
  videoModifier
  videoResolution
  videoSource
  releaseGroup
  seeders
  leechers
  publishedAt
  torrent {
    name
    size
    fileType
    tagNames
    magnetUri
  }
}

query TorrentContentSearch($input: TorrentContentSearchQueryInput!) {
  torrentContent {
    search(input: $input) {
      items {
        ...TorrentContentFields
      }
      totalCount
      hasNextPage
    }
  }
}
"""

# Punctuation that BitMagnet's full-text search treats as noise
_TITLE_NOISE = re.compile(r"[()\[\]{}'\".,\-_!?/:;&]")
_WHITESPACE = re.compile(r"\s+")


# =============================================================================
# Exceptions
# =============================================================================


class BitMagnetError(Exception):
    """Base exception for BitMagnet errors."""

    pass


class BitMagnetUnavailableError(BitMagnetError):
    """Raised when BitMagnet is unreachable or answers with a non-2xx status."""

    pass


# =============================================================================
# Helper Functions
# =============================================================================


def sanitize_title(title: str | None) -> str:
    """Replace punctuation with spaces and collapse whitespace.

    Args:
        title: Raw title (e.g. "Spider-Man: No Way Home")

    Returns:
        Search-friendly title (e.g. "Spider Man No Way Home")
    """
    if not title:
        return ""
    return _WHITESPACE.sub(" ", _TITLE_NOISE.sub(" ", title)).strip()


def build_search_variables(
    query: str,
    content_type: str | None = None,
    release_year: int | None = None,
    limit: int = 50,
) -> dict[str, Any]:
    """Build GraphQL variables for a torrent content search.

    Args:
        query: Search text (sanitized here)
        content_type: Stremio type ("movie" or "series")
        release_year: Optional release year facet
        limit: Maximum number of items

    Returns:
        Variables dict for ``TorrentContentSearch``
    """
    facet_type = CONTENT_TYPES.get(content_type or "", content_type)
    facets: dict[str, Any] = {
        "contentType": {"filter": [facet_type] if facet_type else []},
    }
    if release_year is not None:
        facets["releaseYear"] = {"filter": [str(release_year)]}

    return {
        "input": {
            "queryString": sanitize_title(query),
            "limit": limit,
            "orderBy": [
                {"field": "seeders", "descending": True},
                {"field": "size", "descending": True},
            ],
            "facets": facets,
            "cached": True,
        }
    }


# =============================================================================
# BitMagnet Client
# =============================================================================


class BitMagnetClient:
    """Async client for BitMagnet's GraphQL search.

    Example:
        async with BitMagnetClient() as client:
            candidates = await client.search("Dune 2021", content_type="movie")
    """

    def __init__(
        self,
        endpoint: str | None = None,
        limit: int | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        """Initialize BitMagnet client.

        Args:
            endpoint: GraphQL endpoint. Uses settings.bitmagnet_graphql_endpoint if None.
            limit: Items per query. Uses settings.bitmagnet_search_limit if None.
            timeout: Request timeout in seconds.
        """
        self.endpoint = endpoint or settings.bitmagnet_graphql_endpoint
        self.limit = limit or settings.bitmagnet_search_limit
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "BitMagnetClient":
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={
                "User-Agent": USER_AGENT,
                "Content-Type": "application/json",
            },
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

    async def _post(self, variables: dict[str, Any]) -> dict[str, Any]:
        """Send the search query and return the decoded JSON body.

        Raises:
            BitMagnetUnavailableError: Transport failure or non-2xx status.
            BitMagnetError: Undecodable body.
        """
        try:
            response = await self.client.post(
                self.endpoint,
                json={"query": SEARCH_QUERY, "variables": variables},
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error("bitmagnet_timeout", endpoint=self.endpoint, error=str(e))
            raise BitMagnetUnavailableError(f"Request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            logger.error("bitmagnet_http_error", status=e.response.status_code)
            raise BitMagnetUnavailableError(
                f"BitMagnet returned error {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error("bitmagnet_connection_error", endpoint=self.endpoint, error=str(e))
            raise BitMagnetUnavailableError(f"Cannot connect to BitMagnet: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            logger.error("bitmagnet_json_error", error=str(e))
            raise BitMagnetError(f"Failed to parse BitMagnet response: {e}") from e

    async def search(
        self,
        query: str,
        content_type: str | None = None,
        release_year: int | None = None,
    ) -> list[Candidate]:
        """Search BitMagnet for torrent content.

        Args:
            query: Title, optionally followed by a year
            content_type: Stremio type ("movie" or "series")
            release_year: Restrict to this release year

        Returns:
            Candidates in BitMagnet's order (seeders, then size)

        Raises:
            BitMagnetUnavailableError: If BitMagnet is unreachable.
            BitMagnetError: For GraphQL or decoding errors.
        """
        variables = build_search_variables(query, content_type, release_year, self.limit)
        logger.info(
            "searching_bitmagnet",
            query=variables["input"]["queryString"],
            content_type=content_type,
            release_year=release_year,
        )

        data = await self._post(variables)

        if data.get("errors"):
            logger.error("bitmagnet_graphql_errors", errors=data["errors"])
            raise BitMagnetError(f"GraphQL errors: {data['errors']}")

        try:
            items = data["data"]["torrentContent"]["search"]["items"] or []
        except (KeyError, TypeError) as e:
            logger.error("bitmagnet_unexpected_shape", error=str(e))
            raise BitMagnetError(f"Unexpected response shape: {e}") from e

        candidates: list[Candidate] = []
        for item in items:
            try:
                candidates.append(Candidate.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    "failed_to_parse_bitmagnet_item",
                    info_hash=item.get("infoHash") if isinstance(item, dict) else None,
                    error=str(e),
                )

        logger.info("bitmagnet_results_found", count=len(candidates))
        return candidates


# =============================================================================
# CandidateSearch Adapter
# =============================================================================


class BitMagnetSearch:
    """Candidate search backed by a short-lived ``BitMagnetClient`` per query.

    Example:
        search = BitMagnetSearch()
        candidates = await search.search("Dune 2021", content_type="movie")
    """

    def __init__(
        self,
        endpoint: str | None = None,
        limit: int | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.endpoint = endpoint
        self.limit = limit
        self.timeout = timeout

    async def search(
        self,
        query: str,
        content_type: str | None = None,
        release_year: int | None = None,
    ) -> list[Candidate]:
        async with BitMagnetClient(self.endpoint, self.limit, self.timeout) as client:
            return await client.search(query, content_type=content_type, release_year=release_year)
