"""
Terminal playground for the discovery controller.

Replays a short browsing session against the live TMDB API and Redis:
initial browse, a search typed one keystroke at a time, a couple of page
moves, then the trending list. Useful for eyeballing debounce timing and
stale-response handling without a UI.

Usage:
    python evaluations/playground.py [search term]
"""

import asyncio
import logging
import sys
from pathlib import Path
from dotenv import load_dotenv

# Add parent directory to path to import from db and implementation
sys.path.insert(0, str(Path(__file__).parent.parent))
from db.redis import RedisPopularityStore, close_redis, init_redis
from db.session_store import JsonFileSessionStore
from db.tmdb import TmdbCatalogClient
from implementation.classes.fetch_state import Failed, FetchState, Loading, Success
from implementation.discovery.orchestrator import DiscoveryOrchestrator
from implementation.discovery.popularity import PopularityAggregator

load_dotenv()

KEYSTROKE_INTERVAL_SECONDS = 0.1


def describe_state(state: FetchState) -> str:
    if isinstance(state, Loading):
        return "loading..."
    if isinstance(state, Failed):
        return f"failed: {state.message}"
    if isinstance(state, Success):
        titles = ", ".join(movie.title for movie in state.results[:5])
        return f"{len(state.results)} results / {state.total_pages} pages: {titles}"
    return "idle"


async def run_session(search_term: str) -> None:
    await init_redis()
    try:
        async with TmdbCatalogClient() as catalog:
            discovery = DiscoveryOrchestrator(
                catalog=catalog,
                aggregator=PopularityAggregator(RedisPopularityStore()),
                session_store=JsonFileSessionStore(),
            )
            discovery.add_listener(
                lambda state: print(f"[page {discovery.pages.current}] {describe_state(state)}")
            )

            await discovery.start()
            await discovery.wait_idle()

            # Type the search term one character at a time
            for end in range(1, len(search_term) + 1):
                discovery.set_search_term(search_term[:end])
                await asyncio.sleep(KEYSTROKE_INTERVAL_SECONDS)
            await asyncio.sleep(discovery.debouncer.delay)
            await discovery.wait_idle()

            discovery.pages.next()
            await discovery.wait_idle()
            discovery.pages.last()
            await discovery.wait_idle()

            trending = await discovery.refresh_trending()
            print("\nTrending:")
            for rank, entry in enumerate(trending, start=1):
                print(f"  {rank}. {entry.title} ({entry.search_count} searches)")

            await discovery.close()
    finally:
        await close_redis()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    term = " ".join(sys.argv[1:]) or "batman"
    asyncio.run(run_session(term))
