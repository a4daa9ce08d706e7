"""
Discovery orchestrator: the state machine behind the browse/search screen.

Fuses the debounced search term with the current page, issues one catalog
fetch per change, and publishes the outcome as a FetchState. Successful
searches also credit their top hit in the popularity store.

Every fetch is described by an immutable FetchRequest carrying a generation
number. Only the response for the newest generation is applied; responses for
superseded requests are dropped silently when they eventually arrive.
"""

import asyncio
import logging
from typing import Callable, Coroutine, Optional

from db.session_store import SessionStore
from db.tmdb import CatalogClient, CatalogFetchError
from implementation.classes.enums import FetchMode
from implementation.classes.fetch_state import (
    GENERIC_FETCH_ERROR,
    Failed,
    FetchRequest,
    FetchState,
    Idle,
    Loading,
    Success,
)
from implementation.classes.schemas import Movie, TrendingEntry
from implementation.discovery.debounce import DEFAULT_DEBOUNCE_SECONDS, DebouncedQueryController
from implementation.discovery.pagination import PageController, sanitize_page
from implementation.discovery.popularity import DEFAULT_TRENDING_LIMIT, PopularityAggregator

logger = logging.getLogger(__name__)

StateListener = Callable[[FetchState], None]


class DiscoveryOrchestrator:
    def __init__(
        self,
        catalog: CatalogClient,
        aggregator: PopularityAggregator,
        session_store: SessionStore,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        trending_limit: int = DEFAULT_TRENDING_LIMIT,
    ) -> None:
        self._catalog = catalog
        self._aggregator = aggregator
        self.trending_limit = trending_limit

        self.pages = PageController(
            session_store,
            is_busy=lambda: self.is_loading,
            on_change=self._on_page_change,
        )
        self.debouncer = DebouncedQueryController(self._on_stable_query, delay=debounce_seconds)

        self.query = ""
        self.state: FetchState = Idle()
        self.trending: list[TrendingEntry] = []
        self.page_transitioning = False

        self._generation = 0
        self._active: Optional[FetchRequest] = None
        self._fetch_task: Optional[asyncio.Task] = None
        self._record_tasks: set[asyncio.Task] = set()
        # Superseded fetches keep running until their response arrives
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[StateListener] = []

    # -----------------------------
    #        READ-ONLY VIEW
    # -----------------------------

    @property
    def is_loading(self) -> bool:
        return self._active is not None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def results(self) -> tuple[Movie, ...]:
        return self.state.results if isinstance(self.state, Success) else ()

    @property
    def error_message(self) -> Optional[str]:
        return self.state.message if isinstance(self.state, Failed) else None

    def add_listener(self, listener: StateListener) -> None:
        """Call `listener` with every new FetchState."""
        self._listeners.append(listener)

    def _set_state(self, state: FetchState) -> None:
        self.state = state
        for listener in self._listeners:
            listener(state)

    # -----------------------------
    #            INPUTS
    # -----------------------------

    def set_search_term(self, raw_query: str) -> None:
        """Feed one raw keystroke-level value of the search box."""
        self.debouncer.update(raw_query)

    def _on_stable_query(self, query: str) -> None:
        if query == self.query:
            return
        self.query = query
        page = self.pages.reset_for_new_query()
        logger.info("Search term settled on %r, starting at page %d", query, page)
        self._trigger()

    def _on_page_change(self, page: int) -> None:
        self.page_transitioning = True
        self._trigger()

    async def start(self) -> None:
        """Initial browse fetch on the remembered (or first) page plus a trending load."""
        self._trigger()
        await self.refresh_trending()

    async def refresh_trending(self, limit: Optional[int] = None) -> list[TrendingEntry]:
        self.trending = await self._aggregator.top_n(self.trending_limit if limit is None else limit)
        return self.trending

    # -----------------------------
    #          FETCH CYCLE
    # -----------------------------

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _trigger(self) -> FetchRequest:
        """Supersede any in-flight fetch with one for the current (query, page)."""
        self._generation += 1
        request = FetchRequest(query=self.query, page=self.pages.current, generation=self._generation)
        self._active = request
        self._set_state(Loading())
        self._fetch_task = self._spawn(self._run(request))
        return request

    def _is_stale(self, request: FetchRequest) -> bool:
        return request.generation != self._generation

    def _finish(self, state: FetchState) -> None:
        self._active = None
        self.page_transitioning = False
        self._set_state(state)

    async def _run(self, request: FetchRequest) -> None:
        page = sanitize_page(request.page)
        mode = request.mode

        try:
            catalog_page = await self._catalog.fetch_page(mode, request.query, page)
        except CatalogFetchError as exc:
            if self._is_stale(request):
                logger.debug("Dropping failure of superseded request %d", request.generation)
                return
            logger.warning("Catalog %s fetch for %r page %d failed: %s", mode, request.query, page, exc.detail)
            self._finish(Failed(exc.user_message))
            return
        except Exception:
            if self._is_stale(request):
                logger.debug("Dropping failure of superseded request %d", request.generation)
                return
            logger.exception("Unexpected error during %s fetch for %r page %d", mode, request.query, page)
            self._finish(Failed(GENERIC_FETCH_ERROR))
            return

        if self._is_stale(request):
            logger.debug(
                "Discarding response for request %d; request %d is current",
                request.generation, self._generation,
            )
            return

        if self.pages.update_total_pages(catalog_page.total_pages):
            # Requested page no longer exists for this query; fetch the last one instead
            self._trigger()
            return

        results = tuple(catalog_page.results)
        self._finish(Success(results=results, total_pages=catalog_page.total_pages))

        if mode is FetchMode.SEARCH and results:
            record_task = self._spawn(self._aggregator.record(request.query, results[0]))
            self._record_tasks.add(record_task)
            record_task.add_done_callback(self._record_tasks.discard)

    async def wait_idle(self) -> None:
        """Wait for the current fetch, including any follow-up it triggers, and pending popularity writes."""
        while True:
            pending = {task for task in self._record_tasks if not task.done()}
            if self._fetch_task is not None and not self._fetch_task.done():
                pending.add(self._fetch_task)
            if not pending:
                return
            await asyncio.wait(pending)

    async def close(self) -> None:
        """Cancel the debounce timer and every outstanding task."""
        self.debouncer.cancel()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._active = None
