"""Unit tests for db.tmdb (catalog client and error normalization)."""

import httpx
import pytest

from db.tmdb import (
    CatalogFetchError,
    CatalogTransportError,
    CatalogUpstreamError,
    TmdbCatalogClient,
)
from implementation.classes.enums import FetchMode
from implementation.classes.fetch_state import DEFAULT_PAYLOAD_ERROR, GENERIC_FETCH_ERROR


def _client(handler) -> TmdbCatalogClient:
    transport = httpx.MockTransport(handler)
    return TmdbCatalogClient(
        httpx.AsyncClient(transport=transport, base_url="https://api.themoviedb.org/3")
    )


def _page_payload() -> dict:
    return {
        "page": 1,
        "total_pages": 1200,
        "total_results": 24000,
        "results": [
            {"id": 268, "title": "Batman", "poster_path": "/b.jpg", "vote_average": 7.2,
             "release_date": "1989-06-23", "original_language": "en", "popularity": 40.1},
            {"id": 999, "title": "Batman Untitled", "poster_path": None, "vote_average": 0,
             "release_date": ""},
        ],
    }


@pytest.mark.asyncio
async def test_search_mode_hits_search_endpoint_with_encoded_query() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_page_payload())

    async with _client(handler) as client:
        page = await client.fetch_page(FetchMode.SEARCH, "batman & robin", 3)

    assert seen[0].url.path == "/3/search/movie"
    assert seen[0].url.params["query"] == "batman & robin"
    assert seen[0].url.params["page"] == "3"
    assert page.total_pages == 1200
    assert [movie.id for movie in page.results] == [268, 999]
    assert page.results[1].release_date is None


@pytest.mark.asyncio
async def test_discover_mode_sorts_by_popularity_and_ignores_query() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_page_payload())

    async with _client(handler) as client:
        await client.fetch_page(FetchMode.DISCOVER, "", 1)

    assert seen[0].url.path == "/3/discover/movie"
    assert seen[0].url.params["sort_by"] == "popularity.desc"
    assert "query" not in seen[0].url.params


@pytest.mark.asyncio
async def test_non_2xx_status_raises_upstream_error_with_generic_message() -> None:
    async with _client(lambda request: httpx.Response(500, text="oops")) as client:
        with pytest.raises(CatalogUpstreamError) as exc_info:
            await client.fetch_page(FetchMode.DISCOVER, "", 1)

    assert exc_info.value.status_code == 500
    assert exc_info.value.user_message == GENERIC_FETCH_ERROR


@pytest.mark.asyncio
async def test_transport_failure_raises_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(CatalogTransportError) as exc_info:
            await client.fetch_page(FetchMode.SEARCH, "dune", 1)

    assert isinstance(exc_info.value, CatalogFetchError)
    assert exc_info.value.user_message == GENERIC_FETCH_ERROR
    assert "connection refused" in exc_info.value.detail


@pytest.mark.parametrize(
    ("payload", "expected_message"),
    [
        ({"Response": "false", "Error": "Movie not found!"}, "Movie not found!"),
        ({"Response": False}, DEFAULT_PAYLOAD_ERROR),
        ({"success": False, "status_message": "Invalid API key"}, "Invalid API key"),
    ],
)
@pytest.mark.asyncio
async def test_error_payload_is_normalized_to_upstream_error(payload: dict, expected_message: str) -> None:
    async with _client(lambda request: httpx.Response(200, json=payload)) as client:
        with pytest.raises(CatalogUpstreamError) as exc_info:
            await client.fetch_page(FetchMode.SEARCH, "x", 1)

    assert exc_info.value.user_message == expected_message
    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_non_json_body_raises_upstream_error() -> None:
    async with _client(lambda request: httpx.Response(200, text="<html>maintenance</html>")) as client:
        with pytest.raises(CatalogUpstreamError):
            await client.fetch_page(FetchMode.DISCOVER, "", 1)


@pytest.mark.asyncio
async def test_malformed_results_raise_upstream_error() -> None:
    payload = {"results": [{"title": "No id"}], "total_pages": 1}
    async with _client(lambda request: httpx.Response(200, json=payload)) as client:
        with pytest.raises(CatalogUpstreamError):
            await client.fetch_page(FetchMode.DISCOVER, "", 1)


@pytest.mark.asyncio
async def test_null_results_become_empty_page() -> None:
    payload = {"results": None, "total_pages": None}
    async with _client(lambda request: httpx.Response(200, json=payload)) as client:
        page = await client.fetch_page(FetchMode.SEARCH, "nothing", 1)

    assert page.results == []
    assert page.total_pages == 0


@pytest.mark.asyncio
async def test_fetch_movie_details_flattens_appended_sections() -> None:
    seen: list[httpx.Request] = []
    payload = {
        "id": 438631,
        "title": "Dune",
        "poster_path": "/d.jpg",
        "vote_average": 7.8,
        "release_date": "2021-09-15",
        "runtime": 155,
        "genres": [{"id": 878, "name": "Science Fiction"}, {"id": 12, "name": "Adventure"}],
        "videos": {"results": [
            {"key": "teaser1", "type": "Teaser"},
            {"key": "trailer1", "type": "Trailer"},
        ]},
        "credits": {"cast": [{"id": n, "name": f"Actor {n}", "character": "x"} for n in range(10)]},
        "similar": {"results": [{"id": 1000 + n, "title": f"Similar {n}"} for n in range(12)]},
    }

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=payload)

    async with _client(handler) as client:
        details = await client.fetch_movie_details(438631)

    assert seen[0].url.path == "/3/movie/438631"
    assert seen[0].url.params["append_to_response"] == "videos,credits,similar"
    assert details.genres == ["Science Fiction", "Adventure"]
    assert details.trailer_key == "trailer1"
    assert len(details.cast) == 6
    assert len(details.similar) == 8
    assert details.runtime == 155


def test_missing_access_token_fails_fast(monkeypatch) -> None:
    monkeypatch.delenv("TMDB_ACCESS_TOKEN", raising=False)
    with pytest.raises(RuntimeError, match="TMDB_ACCESS_TOKEN"):
        TmdbCatalogClient()


@pytest.mark.asyncio
async def test_default_client_sends_bearer_token(monkeypatch) -> None:
    monkeypatch.setenv("TMDB_ACCESS_TOKEN", "secret-token")
    client = TmdbCatalogClient()
    try:
        assert client._client.headers["Authorization"] == "Bearer secret-token"
        assert str(client._client.base_url).startswith("https://api.themoviedb.org/3")
    finally:
        await client.aclose()
