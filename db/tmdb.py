"""
TMDB API client for fetching catalog pages and movie details.

Uses httpx.AsyncClient with Bearer token authentication. Every failure mode
(transport errors, non-2xx statuses, error payloads, malformed bodies) is
normalized here into the CatalogFetchError family so callers never have to
inspect raw TMDB response shapes.
"""

import logging
import os
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from implementation.classes.enums import FetchMode
from implementation.classes.fetch_state import DEFAULT_PAYLOAD_ERROR, GENERIC_FETCH_ERROR
from implementation.classes.schemas import CatalogPage, MovieDetails

logger = logging.getLogger(__name__)

_TMDB_BASE_URL = "https://api.themoviedb.org/3"
_TIMEOUT_SECONDS = 10.0
_DISCOVER_SORT = "popularity.desc"
# TMDB flags application-level failures with either of these shapes
_FALSE_FLAG_VALUES = (False, "false", "False")


class CatalogFetchError(Exception):
    """Base error for any catalog fetch that produced no usable page."""

    def __init__(self, detail: str, user_message: str = GENERIC_FETCH_ERROR) -> None:
        super().__init__(detail)
        self.detail = detail
        self.user_message = user_message


class CatalogTransportError(CatalogFetchError):
    """Network unreachable, connection reset, timeout."""


class CatalogUpstreamError(CatalogFetchError):
    """Non-2xx status, unreadable body, or an application-level error payload."""

    def __init__(
        self,
        detail: str,
        status_code: int | None = None,
        user_message: str = GENERIC_FETCH_ERROR,
    ) -> None:
        super().__init__(detail, user_message=user_message)
        self.status_code = status_code


class CatalogClient(Protocol):
    async def fetch_page(self, mode: FetchMode, query: str, page: int) -> CatalogPage: ...


def _access_token() -> str:
    token = os.getenv("TMDB_ACCESS_TOKEN")
    if not token:
        raise RuntimeError("TMDB_ACCESS_TOKEN environment variable is not set")
    return token


def _raise_for_error_payload(payload: Any) -> None:
    """
    Raise CatalogUpstreamError if a 2xx body is really an error report.

    The server-provided message is kept as the user-facing message since it
    describes the request, not our infrastructure.
    """
    if not isinstance(payload, dict):
        raise CatalogUpstreamError(f"Expected a JSON object, got {type(payload).__name__}")

    if payload.get("Response") in _FALSE_FLAG_VALUES or payload.get("success") in _FALSE_FLAG_VALUES:
        message = payload.get("Error") or payload.get("status_message") or DEFAULT_PAYLOAD_ERROR
        raise CatalogUpstreamError(f"Error payload: {message}", user_message=message)


class TmdbCatalogClient:
    """
    CatalogClient backed by the TMDB v3 REST API.

    A preconfigured httpx.AsyncClient can be injected (tests pass one built on
    httpx.MockTransport); otherwise one is created from TMDB_ACCESS_TOKEN.
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=_TMDB_BASE_URL,
            headers={
                "Accept": "application/json",
                "Authorization": f"Bearer {_access_token()}",
            },
            timeout=_TIMEOUT_SECONDS,
        )

    async def __aenter__(self) -> "TmdbCatalogClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        try:
            response = await self._client.get(path, params=params)
        except httpx.TransportError as exc:
            raise CatalogTransportError(f"{type(exc).__name__} on {path}: {exc}") from exc

        if response.is_error:
            raise CatalogUpstreamError(
                f"TMDB returned HTTP {response.status_code} for {path}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise CatalogUpstreamError(f"TMDB returned a non-JSON body for {path}") from exc

    async def fetch_page(self, mode: FetchMode, query: str, page: int) -> CatalogPage:
        """
        Fetch one page of movies.

        Args:
            mode:  SEARCH matches titles against `query`; DISCOVER ignores it and
                   browses the catalog by descending popularity.
            query: Raw search text; httpx handles URL encoding.
            page:  1-indexed page number, already sanitized by the caller.

        Raises:
            CatalogTransportError: the request never produced a response.
            CatalogUpstreamError:  the response was not a usable page.
        """
        if mode is FetchMode.SEARCH:
            path = "/search/movie"
            params: dict[str, Any] = {"query": query, "page": page}
        else:
            path = "/discover/movie"
            params = {"sort_by": _DISCOVER_SORT, "page": page}

        payload = await self._get_json(path, params)
        _raise_for_error_payload(payload)

        try:
            catalog_page = CatalogPage.model_validate(payload)
        except ValidationError as exc:
            raise CatalogUpstreamError(f"Malformed {mode} page from TMDB: {exc}") from exc

        logger.debug(
            "Fetched %s page %d (%d results, %d total pages)",
            mode, page, len(catalog_page.results), catalog_page.total_pages,
        )
        return catalog_page

    async def fetch_movie_details(self, movie_id: int) -> MovieDetails:
        """Fetch a single movie with its videos, credits and similar titles appended."""
        path = f"/movie/{movie_id}"
        payload = await self._get_json(path, {"append_to_response": "videos,credits,similar"})
        _raise_for_error_payload(payload)

        try:
            return MovieDetails.from_tmdb(payload)
        except ValidationError as exc:
            raise CatalogUpstreamError(f"Malformed details for movie {movie_id}: {exc}") from exc
