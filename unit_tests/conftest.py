"""Shared pytest fixtures for unit tests."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable
from pathlib import Path
import sys

import pytest

# Ensure project root is importable when tests run from repository root.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from implementation.classes.enums import FetchMode
from implementation.classes.schemas import CatalogPage, Movie, TrendingEntry


class InMemorySessionStore:
    """SessionStore that keeps the remembered page in a plain attribute."""

    def __init__(self, remembered_page: int | None = None) -> None:
        self.remembered_page = remembered_page
        self.writes: list[int] = []

    def read_remembered_page(self) -> int | None:
        return self.remembered_page

    def write_remembered_page(self, page: int) -> None:
        self.remembered_page = page
        self.writes.append(page)


class InMemoryPopularityStore:
    """PopularityStore over a dict, ordering ties by an increasing update counter."""

    def __init__(self) -> None:
        self.entries: dict[int, TrendingEntry] = {}
        self._tick = 0

    async def increment(self, movie_id: int, title: str, poster_url: str | None) -> None:
        self._tick += 1
        previous = self.entries.get(movie_id)
        self.entries[movie_id] = TrendingEntry(
            movie_id=movie_id,
            title=title,
            poster_url=poster_url,
            search_count=(previous.search_count if previous else 0) + 1,
            updated_at=datetime.fromtimestamp(self._tick, tz=timezone.utc),
        )

    async def top_n(self, limit: int) -> list[TrendingEntry]:
        ordered = sorted(
            self.entries.values(),
            key=lambda entry: (entry.search_count, entry.updated_at),
            reverse=True,
        )
        return ordered[:limit]


class ScriptedCatalog:
    """
    CatalogClient whose responses are controlled by the test.

    Every call is recorded as (mode, query, page). By default a call resolves
    immediately with `default_page`; `hold()` makes the next call block until
    the test releases it, which lets tests interleave overlapping requests.
    """

    def __init__(self, default_page: CatalogPage | None = None) -> None:
        self.calls: list[tuple[FetchMode, str, int]] = []
        self.default_page = default_page or CatalogPage(results=[], total_pages=0)
        self._held: list[asyncio.Future] = []
        self._hold_next = 0

    def hold(self, count: int = 1) -> None:
        self._hold_next += count

    def release(self, index: int, outcome: CatalogPage | BaseException) -> None:
        future = self._held[index]
        if isinstance(outcome, BaseException):
            future.set_exception(outcome)
        else:
            future.set_result(outcome)

    async def fetch_page(self, mode: FetchMode, query: str, page: int) -> CatalogPage:
        self.calls.append((mode, query, page))
        if self._hold_next:
            self._hold_next -= 1
            future = asyncio.get_running_loop().create_future()
            self._held.append(future)
            return await future
        if isinstance(self.default_page, BaseException):
            raise self.default_page
        return self.default_page


@pytest.fixture
def movie_factory() -> Callable[..., Movie]:
    """Return a factory that builds a valid Movie with optional overrides."""

    def _factory(**overrides: Any) -> Movie:
        base_data: dict[str, Any] = {
            "id": 1,
            "title": "Dune",
            "poster_path": "/dune.jpg",
            "vote_average": 7.8,
            "release_date": "2021-09-15",
            "original_language": "en",
            "overview": "A noble family becomes embroiled in a war for a desert planet.",
        }
        base_data.update(overrides)
        return Movie(**base_data)

    return _factory


@pytest.fixture
def catalog_page_factory(movie_factory) -> Callable[..., CatalogPage]:
    """Return a factory that builds a CatalogPage of `count` distinct movies."""

    def _factory(count: int = 3, total_pages: int = 10, first_id: int = 1) -> CatalogPage:
        movies = [
            movie_factory(id=movie_id, title=f"Movie {movie_id}")
            for movie_id in range(first_id, first_id + count)
        ]
        return CatalogPage(results=movies, total_pages=total_pages)

    return _factory


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def popularity_store() -> InMemoryPopularityStore:
    return InMemoryPopularityStore()
