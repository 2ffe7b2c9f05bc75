"""Tests for OMDB API client."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.media.omdb import OMDBClient, OMDBError, OMDBResult

SAMPLE_MOVIE_RESPONSE = {
    "Title": "Dune",
    "Year": "2021",
    "Released": "22 Oct 2021",
    "imdbID": "tt1160419",
    "Type": "movie",
    "Response": "True",
}

SAMPLE_SERIES_RESPONSE = {
    "Title": "Breaking Bad",
    "Year": "2008–2013",
    "Released": "N/A",
    "imdbID": "tt0903747",
    "Type": "series",
    "totalSeasons": "5",
    "Response": "True",
}

SAMPLE_NOT_FOUND_RESPONSE = {"Response": "False", "Error": "Incorrect IMDb ID."}


@pytest.fixture
def mock_response():
    """Create a mock HTTP response."""

    def _create_response(data: dict, status_code: int = 200):
        response = MagicMock(spec=httpx.Response)
        response.status_code = status_code
        response.json.return_value = data
        if status_code >= 400:
            response.raise_for_status.side_effect = httpx.HTTPStatusError(
                "error", request=MagicMock(), response=response
            )
        return response

    return _create_response


class TestOMDBResult:
    """Tests for OMDBResult year parsing."""

    def test_year_from_released(self):
        """Released date wins over Year."""
        result = OMDBResult(**{**SAMPLE_MOVIE_RESPONSE, "Year": "2020"})
        assert result.get_year() == 2021

    def test_year_range(self):
        """Series year ranges use the first year."""
        assert OMDBResult(**SAMPLE_SERIES_RESPONSE).get_year() == 2008

    def test_not_available(self):
        """N/A values count as missing."""
        result = OMDBResult(Title="X", Year="N/A", Released="N/A", Response="True")
        assert result.get_year() is None

    def test_missing_fields(self):
        assert OMDBResult(Title="X", Response="True").get_year() is None


class TestOMDBClient:
    """Tests for OMDBClient."""

    def test_client_not_in_context(self):
        """Test client raises error when not in context manager."""
        client = OMDBClient(api_key="key")
        with pytest.raises(OMDBError, match="context manager"):
            _ = client.client

    @pytest.mark.asyncio
    async def test_search_by_imdb_id(self, mock_response):
        """Test lookup by IMDb id."""
        async with OMDBClient(api_key="key") as client:
            client._client = MagicMock(spec=httpx.AsyncClient)
            client._client.get = AsyncMock(return_value=mock_response(SAMPLE_MOVIE_RESPONSE))

            result = await client.search_by_imdb_id("tt1160419")

            assert result.title == "Dune"
            assert result.get_year() == 2021
            params = client._client.get.call_args.kwargs["params"]
            assert params == {"apikey": "key", "i": "tt1160419"}

    @pytest.mark.asyncio
    async def test_not_found(self, mock_response):
        """Test Response=False raises OMDBError."""
        async with OMDBClient(api_key="key") as client:
            client._client = MagicMock(spec=httpx.AsyncClient)
            client._client.get = AsyncMock(return_value=mock_response(SAMPLE_NOT_FOUND_RESPONSE))

            with pytest.raises(OMDBError, match="Incorrect IMDb ID"):
                await client.search_by_imdb_id("tt0000000")

    @pytest.mark.asyncio
    async def test_http_error(self, mock_response):
        """Test non-2xx raises OMDBError."""
        async with OMDBClient(api_key="key") as client:
            client._client = MagicMock(spec=httpx.AsyncClient)
            client._client.get = AsyncMock(return_value=mock_response({}, status_code=401))

            with pytest.raises(OMDBError, match="HTTP error"):
                await client.search_by_imdb_id("tt1160419")

    @pytest.mark.asyncio
    async def test_request_error(self):
        """Test transport failures raise OMDBError."""
        async with OMDBClient(api_key="key") as client:
            client._client = MagicMock(spec=httpx.AsyncClient)
            client._client.get = AsyncMock(side_effect=httpx.ConnectError("refused"))

            with pytest.raises(OMDBError, match="Request failed"):
                await client.search_by_imdb_id("tt1160419")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        """Test undecodable bodies raise OMDBError."""
        response = MagicMock(spec=httpx.Response)
        response.json.side_effect = ValueError("no json")

        async with OMDBClient(api_key="key") as client:
            client._client = MagicMock(spec=httpx.AsyncClient)
            client._client.get = AsyncMock(return_value=response)

            with pytest.raises(OMDBError, match="Invalid response"):
                await client.search_by_imdb_id("tt1160419")
